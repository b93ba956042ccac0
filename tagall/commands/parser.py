"""Chat command parser.

Turns one inbound text line into a typed command:

  tagall!                          → TagAll
  !PUSH @9198...@9198... #exam     → Push(numbers, tag)
  !POP @9198... #exam              → Pop(numbers, tag)
  !RENAME #exam #finals            → Rename(old, new)
  tagexam!                         → CustomTag(tag)

Lines that start with a command keyword but do not fit its grammar
become Malformed(kind) so the caller can answer with usage help.
Anything else is not a command and parses to None.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class TagAll:
    kind: str = field(default="tagall", init=False)


@dataclass(frozen=True)
class Push:
    numbers: list[str]
    tag: str
    kind: str = field(default="push", init=False)


@dataclass(frozen=True)
class Pop:
    numbers: list[str]
    tag: str
    kind: str = field(default="pop", init=False)


@dataclass(frozen=True)
class Rename:
    old: str
    new: str
    kind: str = field(default="rename", init=False)


@dataclass(frozen=True)
class CustomTag:
    tag: str
    kind: str = field(default="tag", init=False)


@dataclass(frozen=True)
class Malformed:
    kind: str    # kind of the command whose keyword matched


Command = Union[TagAll, Push, Pop, Rename, CustomTag, Malformed]

TAG_ALL_LITERAL = "tagall!"
CUSTOM_TAG_PREFIX = "tag"
CUSTOM_TAG_SUFFIX = "!"


def _split_before_hash(body: str) -> Optional[tuple[str, str]]:
    """Split at the first whitespace run that is followed by '#'.

    Returns (head, tail-after-#) or None. Head must be non-empty.
    """
    i = 1
    while i < len(body):
        if body[i].isspace():
            j = i
            while j < len(body) and body[j].isspace():
                j += 1
            if j < len(body) and body[j] == "#":
                return body[:i], body[j + 1:]
            i = j
        else:
            i += 1
    return None


def _parse_members_body(body: str) -> Optional[tuple[list[str], str]]:
    """'@111@222 #exam' → (['111', '222'], 'exam')."""
    if not body.startswith("@"):
        return None
    parts = _split_before_hash(body)
    if parts is None:
        return None
    head, tail = parts
    numbers = [n.strip() for n in head.split("@") if n.strip()]
    tag = tail.strip().lower()
    if not numbers or not tag:
        return None
    return numbers, tag


def _parse_rename_body(body: str) -> Optional[tuple[str, str]]:
    """'#old name #new name' → ('old name', 'new name')."""
    if not body.startswith("#"):
        return None
    parts = _split_before_hash(body[1:])
    if parts is None:
        return None
    old, new = parts[0].strip().lower(), parts[1].strip().lower()
    if not old or not new:
        return None
    return old, new


def parse_command(text: str) -> Optional[Command]:
    """Classify a chat line. Returns None when it is not a command."""
    text = (text or "").strip()
    if not text:
        return None

    if text.lower() == TAG_ALL_LITERAL:
        return TagAll()

    tokens = text.split(None, 1)
    keyword = tokens[0].upper()
    body = tokens[1].strip() if len(tokens) > 1 else ""

    if keyword in ("!PUSH", "!POP"):
        kind = keyword[1:].lower()
        parsed = _parse_members_body(body)
        if parsed is None:
            return Malformed(kind)
        numbers, tag = parsed
        return Push(numbers, tag) if kind == "push" else Pop(numbers, tag)

    if keyword == "!RENAME":
        parsed = _parse_rename_body(body)
        if parsed is None:
            return Malformed("rename")
        return Rename(*parsed)

    lowered = text.lower()
    if (
        lowered.startswith(CUSTOM_TAG_PREFIX)
        and lowered.endswith(CUSTOM_TAG_SUFFIX)
        and len(text) > len(CUSTOM_TAG_PREFIX) + len(CUSTOM_TAG_SUFFIX)
    ):
        tag = lowered[len(CUSTOM_TAG_PREFIX):-len(CUSTOM_TAG_SUFFIX)].strip()
        if tag:
            return CustomTag(tag)

    return None
