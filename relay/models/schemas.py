"""
Data models for the file relay.

Shared between the directory relay client and the ingestion server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


# =====================================================
# Client Models
# =====================================================

@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A newly created entry observed in the watched directory."""

    directory: Path
    name: str

    @property
    def path(self) -> Path:
        """Absolute path of the created entry."""
        return (self.directory / self.name).absolute()


@dataclass(slots=True)
class SendResult:
    """Outcome of one relay attempt. Informational only."""

    filename: str
    ok: bool
    frames_sent: int = 0
    error: Optional[str] = None


# =====================================================
# Server Models
# =====================================================

@dataclass(slots=True)
class Session:
    """Frames received on one connection, minus the sentinel."""

    filename: str
    lines: List[str] = field(default_factory=list)

    def render(self) -> str:
        """Return the file content: one newline-terminated line per frame."""
        return "".join(f"{line}\n" for line in self.lines)
