"""Reply templates — one pure function per command outcome.

Every function returns a Reply whose ``mentions`` are exactly the
identifiers rendered with an ``@`` marker in its text (plus the sender
when the reply attributes a tagging action to them). Numbers that are
only reported (duplicates, invalid, not found) are listed as plain text
and are not mentioned.
"""

from dataclasses import dataclass, field
from typing import Iterable

from ..phone import jid_local_part, normalize_jid, to_jid
from ..store import AddResult, RemoveResult, RenameStatus


@dataclass(frozen=True)
class Reply:
    text: str
    mentions: list[str] = field(default_factory=list)


_COMMAND_LABELS = {
    "tagall": "the tagall command",
    "tag": "tag commands",
    "push": "the PUSH command",
    "pop": "the POP command",
    "rename": "the RENAME command",
}

_ERROR_ACTIONS = {
    "tagall": "trying to tag all members",
    "tag": "trying to tag the saved numbers",
    "push": "saving the phone numbers",
    "pop": "removing the phone numbers",
    "rename": "renaming the tag",
}

_USAGE = {
    "push": (
        "❌ Invalid PUSH format!\n\n"
        "✅ Correct formats:\n"
        "• Single: `!PUSH @919876543210 #tagname`\n"
        "• Multiple: `!PUSH @919876543210@919876543211@919876543212 #tagname`\n\n"
        "Example: `!PUSH @919876543210@919876543211 #2nd years`"
    ),
    "pop": (
        "❌ Invalid POP format!\n\n"
        "✅ Correct formats:\n"
        "• Single: `!POP @919876543210 #tagname`\n"
        "• Multiple: `!POP @919876543210@919876543211@919876543212 #tagname`\n\n"
        "Example: `!POP @919876543210@919876543211 #2nd years`"
    ),
    "rename": (
        "❌ Invalid RENAME format!\n\n"
        "✅ Correct format: `!RENAME #oldtagname #newtagname`\n\n"
        "Example: `!RENAME #2nd years #second years`"
    ),
}


def _dedupe(ids: Iterable[str]) -> list[str]:
    out: list[str] = []
    for i in ids:
        if i not in out:
            out.append(i)
    return out


def _mention_text(identifiers: Iterable[str]) -> str:
    return " ".join(f"@{jid_local_part(i)}" for i in identifiers)


def _usage_hint(tag: str) -> str:
    return f'💡 Use "tag{tag}!" to tag all saved numbers'


def format_denial(kind: str) -> Reply:
    label = _COMMAND_LABELS.get(kind, "this command")
    return Reply(f"❌ Only group admins can use {label}!")


def format_usage(kind: str) -> Reply:
    return Reply(_USAGE.get(kind, "❌ Invalid command format!"))


def format_error(kind: str) -> Reply:
    action = _ERROR_ACTIONS.get(kind, "processing the command")
    return Reply(f"❌ An error occurred while {action}. Please try again later.")


# ── Tagging ────────────────────────────────────────────────────

def format_tag_all(member_ids: list[str], sender_id: str) -> Reply:
    text = (
        "🔔 *TAG ALL MEMBERS* 🔔\n\n"
        f"{_mention_text(member_ids)}\n\n"
        f"_Tagged by admin: @{jid_local_part(sender_id)}_"
    )
    return Reply(text, _dedupe(normalize_jid(m) for m in [*member_ids, sender_id]))


def format_custom_tag(tag: str, numbers: list[str], sender_id: str) -> Reply:
    text = (
        f"🔔 *TAG: {tag.upper()}* 🔔\n\n"
        f"{_mention_text(numbers)}\n\n"
        f"_Tagged by admin: @{jid_local_part(sender_id)}_\n"
        f"_Total numbers: {len(numbers)}_"
    )
    return Reply(text, _dedupe([*(to_jid(n) for n in numbers), normalize_jid(sender_id)]))


def format_tag_empty(tag: str) -> Reply:
    return Reply(
        f'❌ No phone numbers found for tag "{tag}". '
        "Use the !PUSH command to add numbers first."
    )


# ── Registry mutations ─────────────────────────────────────────

def format_push_no_valid(invalid: list[str]) -> Reply:
    text = "❌ No valid phone numbers found! Please use valid phone numbers with country code (10-15 digits)."
    if invalid:
        text += f"\n\nSkipped: {', '.join(invalid)}"
    return Reply(text)


def format_push(tag: str, result: AddResult, total: int) -> Reply:
    lines = []
    if result.added:
        lines.append(f'✅ {len(result.added)} phone number(s) added to tag "{tag}":')
        lines.append(_mention_text(result.added))
        lines.append("")
    if result.duplicates:
        lines.append(f"⚠️ {len(result.duplicates)} number(s) already existed: {', '.join(result.duplicates)}")
    if result.invalid:
        lines.append(f"❌ {len(result.invalid)} invalid number(s) skipped: {', '.join(result.invalid)}")
    if result.duplicates or result.invalid:
        lines.append("")
    lines.append(f'📊 Total numbers in "{tag}": {total}')
    if result.added:
        lines.append("")
        lines.append(_usage_hint(tag))
    return Reply("\n".join(lines), [to_jid(n) for n in result.added])


def format_pop_missing(tag: str) -> Reply:
    return Reply(f'❌ Tag "{tag}" doesn\'t exist or is empty!')


def format_pop(tag: str, result: RemoveResult, remaining: int) -> Reply:
    lines = []
    if result.removed:
        lines.append(f'✅ {len(result.removed)} phone number(s) removed from tag "{tag}":')
        lines.append(_mention_text(result.removed))
        lines.append("")
    if result.not_found:
        lines.append(
            f'⚠️ {len(result.not_found)} number(s) not found in tag "{tag}": {", ".join(result.not_found)}'
        )
        lines.append("")
    label = "Remaining numbers" if result.removed else "Total numbers"
    lines.append(f'📊 {label} in "{tag}": {remaining}')
    return Reply("\n".join(lines), [to_jid(n) for n in result.removed])


def format_rename(status: RenameStatus, old: str, new: str, count: int = 0) -> Reply:
    if status is RenameStatus.NOT_FOUND:
        return Reply(f'❌ Tag "{old}" doesn\'t exist!')
    if status is RenameStatus.ALREADY_EXISTS:
        return Reply(f'❌ Tag "{new}" already exists! Please choose a different name.')
    if status is RenameStatus.SAME_NAME:
        return Reply("❌ Old and new tag names are the same! Please choose a different name.")
    return Reply(
        "✅ Tag renamed successfully!\n\n"
        f'🏷️ Old name: "{old}"\n'
        f'🏷️ New name: "{new}"\n\n'
        f"📊 Numbers in renamed tag: {count}\n\n"
        f"{_usage_hint(new)}"
    )
