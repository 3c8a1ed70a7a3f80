from __future__ import annotations

import json
import socket
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import MANIFEST_VERSION
from .errors import CorruptArchive


def iso_now(now: Optional[datetime] = None) -> str:
    """UTC timestamp in ``YYYY-MM-DDTHH:MM:SS.mmmZ`` form."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Manifest:
    created_at: str
    hostname: str
    categories: List[str] = field(default_factory=list)
    file_count: int = 0
    total_bytes: int = 0
    version: str = MANIFEST_VERSION
    # Sibling workspace basenames archived under the workspace category;
    # None for archives written before this was recorded
    workspaces: Optional[List[str]] = None

    @classmethod
    def new(
        cls, categories: List[str], file_count: int, total_bytes: int, workspaces: Optional[List[str]] = None
    ) -> "Manifest":
        return cls(
            created_at=iso_now(),
            hostname=socket.gethostname(),
            categories=list(categories),
            file_count=file_count,
            total_bytes=total_bytes,
            workspaces=list(workspaces or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "version": self.version,
            "createdAt": self.created_at,
            "hostname": self.hostname,
            "categories": list(self.categories),
            "fileCount": self.file_count,
            "totalBytes": self.total_bytes,
        }
        if self.workspaces is not None:
            out["workspaces"] = list(self.workspaces)
        return out

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=2).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "Manifest":
        """Parse a stored manifest; anything malformed raises ``CorruptArchive``."""
        try:
            obj = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise CorruptArchive(f"Manifest is not valid JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise CorruptArchive("Manifest must be a JSON object")
        try:
            cats = obj.get("categories", [])
            if not isinstance(cats, list):
                raise TypeError("categories must be a list")
            ws = obj.get("workspaces")
            if ws is not None and not isinstance(ws, list):
                raise TypeError("workspaces must be a list")
            return cls(
                version=str(obj.get("version", MANIFEST_VERSION)),
                created_at=str(obj["createdAt"]),
                hostname=str(obj.get("hostname", "")),
                categories=[str(c) for c in cats],
                file_count=int(obj.get("fileCount", 0)),
                total_bytes=int(obj.get("totalBytes", 0)),
                workspaces=None if ws is None else [str(w) for w in ws],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptArchive(f"Manifest is missing or has invalid fields: {exc}") from exc

    def with_total_bytes(self, total_bytes: int) -> "Manifest":
        return replace(self, total_bytes=total_bytes)
