"""Tag registry — persistent mapping of tag name → ordered phone numbers.

The registry is a single JSON object on disk::

    {
      "2nd years": ["919876543210", "919876543211"],
      "exam": ["919111111111"]
    }

It is loaded once when the store is created and rewritten in full after
every successful mutation. Invariants held by this module:

- tag keys are trimmed and lowercased
- a tag's member list is never empty (emptying a tag deletes it)
- a member appears at most once per tag
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .errors import PersistenceWarning
from .phone import is_valid_phone_number

logger = logging.getLogger("tagall.store")


def normalize_tag(name: str) -> str:
    """Canonical registry key for a tag name."""
    return (name or "").strip().lower()


@dataclass
class AddResult:
    added: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)


@dataclass
class RemoveResult:
    removed: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    tag_found: bool = True


class RenameStatus(Enum):
    OK = "ok"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    SAME_NAME = "same_name"


class TagStore:
    """Owns the tag registry and its on-disk copy.

    Mutation success is defined by the in-memory change. A failed write is
    logged and kept in ``last_persist_error``; it never rolls back the
    mutation. A crash between mutation and write loses that mutation.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._tags: dict[str, list[str]] = {}
        self.last_persist_error: Optional[PersistenceWarning] = None
        self._load()

    # ── Persistence ─────────────────────────────────────────────

    def _load(self):
        if not self.path.exists():
            logger.info(f"No tag registry at {self.path}, starting empty")
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading tag registry {self.path}: {e}")
            return

        if not isinstance(data, dict):
            logger.error(f"Tag registry {self.path} is not a JSON object, ignoring it")
            return

        for raw_name, members in data.items():
            name = normalize_tag(str(raw_name))
            if not name or not isinstance(members, list):
                continue
            existing = self._tags.setdefault(name, [])
            for member in members:
                member = str(member).strip()
                if member and member not in existing:
                    existing.append(member)
            if not existing:
                del self._tags[name]

        logger.info(f"Loaded {len(self._tags)} tag(s) from {self.path}")

    def save(self) -> bool:
        """Write the whole registry to disk. Returns False (and logs) on failure."""
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._tags, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
            self.last_persist_error = None
            return True
        except OSError as e:
            self.last_persist_error = PersistenceWarning(f"Failed to save {self.path}: {e}")
            logger.warning(str(self.last_persist_error))
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False

    # ── Reads ───────────────────────────────────────────────────

    def get(self, tag: str) -> Optional[list[str]]:
        members = self._tags.get(normalize_tag(tag))
        return list(members) if members else None

    def names(self) -> list[str]:
        return sorted(self._tags)

    def snapshot(self) -> dict[str, list[str]]:
        return {name: list(members) for name, members in self._tags.items()}

    def __contains__(self, tag: str) -> bool:
        return normalize_tag(tag) in self._tags

    def __len__(self) -> int:
        return len(self._tags)

    # ── Mutations ───────────────────────────────────────────────

    def add_members(self, tag: str, candidates: Iterable[str]) -> AddResult:
        """Add phone numbers to a tag, creating the tag on first successful add.

        Invalid candidates are dropped before the duplicate check. Numbers
        already in the tag are reported as duplicates and not re-added.
        Repeats inside ``candidates`` collapse to the first occurrence.
        """
        name = normalize_tag(tag)
        result = AddResult()
        existing = self._tags.get(name, [])

        seen: set[str] = set()
        for candidate in candidates:
            number = (candidate or "").strip()
            if not is_valid_phone_number(number):
                result.invalid.append(number)
                continue
            if number in seen:
                continue
            seen.add(number)
            if number in existing:
                result.duplicates.append(number)
            else:
                result.added.append(number)

        if result.added:
            self._tags[name] = existing + result.added
            logger.info(f"Added {len(result.added)} number(s) to tag '{name}'")
            self.save()
        return result

    def remove_members(self, tag: str, candidates: Iterable[str]) -> RemoveResult:
        """Remove phone numbers from a tag. Deletes the tag once it is empty."""
        name = normalize_tag(tag)
        members = self._tags.get(name)
        if not members:
            return RemoveResult(tag_found=False)

        result = RemoveResult()
        for candidate in candidates:
            number = (candidate or "").strip()
            if not number:
                continue
            if number in members:
                members.remove(number)
                result.removed.append(number)
            else:
                result.not_found.append(number)

        if not members:
            del self._tags[name]
            logger.info(f"Tag '{name}' is empty, removed")

        if result.removed:
            logger.info(f"Removed {len(result.removed)} number(s) from tag '{name}'")
            self.save()
        return result

    def rename(self, old: str, new: str) -> RenameStatus:
        old_name = normalize_tag(old)
        new_name = normalize_tag(new)

        if old_name not in self._tags:
            return RenameStatus.NOT_FOUND
        if old_name == new_name:
            return RenameStatus.SAME_NAME
        if new_name in self._tags:
            return RenameStatus.ALREADY_EXISTS

        self._tags[new_name] = self._tags.pop(old_name)
        logger.info(f"Renamed tag '{old_name}' → '{new_name}'")
        self.save()
        return RenameStatus.OK
