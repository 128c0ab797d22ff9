"""Directory listing types shared by providers and the cache."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """One entry of a remote directory listing.

    Attributes:
        name: Entry name, unique within a listing.
        path: Absolute path, unique within a listing.
        is_dir: True for directories.
        size: Size in bytes (0 for directories on most providers).
        mod_time: Last modification time.
    """

    name: str
    path: str
    is_dir: bool
    size: int = 0
    mod_time: datetime | None = None

    def renamed(self, new_path: str, new_name: str) -> ResourceDescriptor:
        return replace(self, path=new_path, name=new_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "is_dir": self.is_dir,
            "size": self.size,
            "mod_time": self.mod_time.isoformat() if self.mod_time else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceDescriptor:
        """Build a descriptor from a provider's JSON listing item."""
        return cls(
            name=str(data["name"]),
            path=str(data["path"]),
            is_dir=bool(data.get("is_dir", False)),
            size=int(data.get("size") or 0),
            mod_time=parse_mod_time(data.get("mod_time")),
        )


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Outcome of a create/delete/rename/copy call."""

    success: bool
    error: str | None = None


def parse_mod_time(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch seconds into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value))


def sort_key(entry: ResourceDescriptor) -> tuple[bool, str]:
    # Directories first, then by name
    return (not entry.is_dir, entry.name)


def sort_entries(entries: Iterable[ResourceDescriptor]) -> list[ResourceDescriptor]:
    return sorted(entries, key=sort_key)


def same_listing(
    old: list[ResourceDescriptor] | None, new: list[ResourceDescriptor] | None
) -> bool:
    """Order-sensitive comparison of (name, mod_time) pairs.

    Size and permission-only changes are not detected.
    """
    if old is None or new is None:
        return False
    if len(old) != len(new):
        return False
    return all(
        a.name == b.name and a.mod_time == b.mod_time for a, b in zip(old, new)
    )


def parent_path(path: str) -> str:
    """Parent directory of an absolute POSIX path ("/" for top-level entries)."""
    parent = posixpath.dirname(path.rstrip("/"))
    return parent or "/"


def join_path(directory: str, name: str) -> str:
    return posixpath.join(directory, name)
