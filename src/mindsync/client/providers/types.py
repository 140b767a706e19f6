"""Provider-neutral types shared by adapters and the sync engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class FileHandle:
    """A remote file and its revision indicators.

    Revision indicators are opaque and only compared for equality.
    Dropbox reports rev; Google Drive reports headRevisionId, version and
    md5Checksum (any of which may be missing).
    """

    id: str
    name: str
    rev: str | None = None
    head_revision_id: str | None = None
    version: str | None = None
    md5_checksum: str | None = None
    modified_time: str | None = None
    size: int | None = None

    # Ordered fallback list of equally valid revision indicators
    REVISION_FIELDS = ("rev", "head_revision_id", "version", "md5_checksum")

    def revision_indicators(self) -> list[tuple[str, str]]:
        """List (field, value) of available revision indicators, in order."""
        return [
            (name, str(getattr(self, name)))
            for name in self.REVISION_FIELDS
            if getattr(self, name) not in (None, "")
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored metadata shape."""
        return {
            "id": self.id,
            "name": self.name,
            "rev": self.rev,
            "headRevisionId": self.head_revision_id,
            "version": self.version,
            "md5Checksum": self.md5_checksum,
            "modifiedTime": self.modified_time,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileHandle:
        """Create from the stored metadata shape (or a Drive file resource)."""
        version = data.get("version")
        size = data.get("size")
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            rev=data.get("rev"),
            head_revision_id=data.get("headRevisionId"),
            version=str(version) if version is not None else None,
            md5_checksum=data.get("md5Checksum"),
            modified_time=data.get("modifiedTime"),
            size=int(size) if size is not None else None,
        )


@dataclass
class UserInfo:
    """Connected account."""

    id: str
    email: str | None = None
    name: str | None = None
