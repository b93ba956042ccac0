"""TagAll — tag registry and mention broadcaster for WhatsApp groups."""

__version__ = "0.3.0"
