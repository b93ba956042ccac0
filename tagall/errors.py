"""Error taxonomy and user-facing error classification."""

import asyncio
import json
import subprocess


# ════════════════════════════════════════════════════════
# Exception hierarchy — command handlers raise these with the
# reply to send; the dispatcher turns every one of them into
# that reply, none of them escape to the transport.
# ════════════════════════════════════════════════════════

class TagallError(Exception):
    """Base class for all tag bot errors.

    ``reply`` is the chat reply that reports the error, when the raiser
    has one ready.
    """

    def __init__(self, message: str = "", reply=None):
        super().__init__(message)
        self.reply = reply

class ValidationError(TagallError):
    """Malformed command grammar or no valid phone number."""
    pass

class AuthorizationError(TagallError):
    """Sender is not an operator of the group."""
    pass

class NotFoundError(TagallError):
    """Operation on a tag that does not exist."""
    pass

class ConflictError(TagallError):
    """Rename target already exists, or rename to the same name."""
    pass

class CollaboratorFailure(TagallError):
    """Roster fetch or reply send failed (or timed out)."""
    pass

class PersistenceWarning(TagallError):
    """Registry write failed. In-memory state is kept, nothing is raised."""
    pass


def classify_error(e: Exception) -> str:
    """Classify any exception into a short message suitable for a chat reply."""
    if isinstance(e, ValidationError):
        return f"Invalid command: {e}"
    if isinstance(e, AuthorizationError):
        return "Only group admins can use this command."
    if isinstance(e, NotFoundError):
        return f"Not found: {e}"
    if isinstance(e, ConflictError):
        return f"Conflict: {e}"
    if isinstance(e, CollaboratorFailure):
        return "WhatsApp did not respond. Please try again later."

    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out. Please try again."
    if isinstance(e, (subprocess.SubprocessError, FileNotFoundError)):
        return "WhatsApp client is not available. Please try again later."
    if isinstance(e, json.JSONDecodeError):
        return "Unexpected response from WhatsApp client. Please try again."
    if isinstance(e, OSError):
        return "Storage error. Please try again later."

    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
