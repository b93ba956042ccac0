"""Phone number validation and WhatsApp identifier helpers.

Members are stored as raw digits only. The full network identifier
(``<digits>@s.whatsapp.net``) is derived when a reply is built and is
never persisted. No country-code or locale checks are applied.
"""

MIN_DIGITS = 10
MAX_DIGITS = 15

USER_JID_SUFFIX = "@s.whatsapp.net"
GROUP_JID_SUFFIX = "@g.us"


def validate_phone_number(candidate: str) -> tuple[bool, str]:
    """Validate a candidate member identifier.

    Args:
        candidate: Raw text as typed in the command

    Returns:
        (True, "") when valid, (False, reason) otherwise
    """
    number = (candidate or "").strip()
    if not number:
        return False, "empty number"
    # str.isdigit() accepts superscripts and other unicode digits
    if not (number.isascii() and number.isdigit()):
        return False, f"'{number}' contains non-digit characters"
    if not MIN_DIGITS <= len(number) <= MAX_DIGITS:
        return False, f"'{number}' must have {MIN_DIGITS}-{MAX_DIGITS} digits (got {len(number)})"
    return True, ""


def is_valid_phone_number(candidate: str) -> bool:
    ok, _ = validate_phone_number(candidate)
    return ok


def to_jid(number: str) -> str:
    """Raw digits → user JID. Values that already carry a domain pass through."""
    number = number.strip()
    if "@" in number:
        return number
    return f"{number}{USER_JID_SUFFIX}"


def jid_local_part(jid: str) -> str:
    """'628123:12@s.whatsapp.net' → '628123'."""
    return jid.split("@", 1)[0].split(":", 1)[0]


def normalize_jid(jid: str) -> str:
    """Strip the device suffix: '628123:12@s.whatsapp.net' → '628123@s.whatsapp.net'."""
    jid = (jid or "").strip()
    if "@" not in jid:
        return jid
    local, domain = jid.split("@", 1)
    return f"{local.split(':', 1)[0]}@{domain}"


def is_group_jid(jid: str) -> bool:
    return (jid or "").endswith(GROUP_JID_SUFFIX)
