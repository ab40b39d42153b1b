"""
Session persistence for playlist sessions.

Enables save/resume of a learner's module playlist between player mounts.
Sessions are stored as JSON files in ~/.playlist/sessions/, one file per
(enrollment, module) pair, each written whole so a reader never sees a
half-written session.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from loguru import logger
from pydantic import ValidationError

from src.playlist.errors import InvalidSessionError, PlaylistContractError
from src.playlist.models import AdaptiveConfiguration, LearningUnit, Session

# Default session directory
SESSION_DIR = Path.home() / ".playlist" / "sessions"


@dataclass
class StoredSession:
    """A persisted session with the configuration it was built under."""

    session: Session
    config: AdaptiveConfiguration
    saved_at: str  # ISO format
    expiry_hours: int = 24 * 30

    def is_expired(self) -> bool:
        """Check if the stored session is older than its expiry window."""
        saved = datetime.fromisoformat(self.saved_at)
        return datetime.now() - saved > timedelta(hours=self.expiry_hours)

    def to_dict(self) -> dict[str, Any]:
        return {
            "savedAt": self.saved_at,
            "expiryHours": self.expiry_hours,
            "config": self.config.model_dump(mode="json"),
            "session": self.session.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredSession:
        if not isinstance(data, dict):
            raise InvalidSessionError("Stored session must be a JSON object")
        try:
            config = AdaptiveConfiguration.model_validate(data.get("config") or {})
        except ValidationError as e:
            raise InvalidSessionError(f"Stored configuration is invalid: {e}") from e
        return cls(
            session=Session.from_dict(data["session"]),
            config=config,
            saved_at=data["savedAt"],
            expiry_hours=int(data.get("expiryHours", 24 * 30)),
        )


class SessionStore:
    """
    Manages playlist session persistence.

    Files are named {enrollment_id}__{module_id}.json with each id
    percent-encoded (underscores included), so distinct pairs never share
    a file.
    """

    def __init__(self, session_dir: Optional[Path] = None, expiry_hours: int = 24 * 30):
        self.session_dir = Path(session_dir) if session_dir else SESSION_DIR
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self.expiry_hours = expiry_hours

    def path_for(self, enrollment_id: str, module_id: str) -> Path:
        name = f"{_safe(enrollment_id)}__{_safe(module_id)}.json"
        return self.session_dir / name

    def save(self, session: Session, config: AdaptiveConfiguration) -> Path:
        """Write the whole session to disk, replacing any previous copy."""
        record = StoredSession(
            session=session,
            config=config,
            saved_at=datetime.now().isoformat(),
            expiry_hours=self.expiry_hours,
        )
        filepath = self.path_for(session.enrollment_id, session.module_id)

        fd, tmp_name = tempfile.mkstemp(dir=self.session_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
            os.replace(tmp_name, filepath)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info(f"Saved session to {filepath}")
        return filepath

    def load(self, enrollment_id: str, module_id: str) -> Optional[StoredSession]:
        """Load the session for an (enrollment, module) pair, if any."""
        filepath = self.path_for(enrollment_id, module_id)
        if not filepath.exists():
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            record = StoredSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {filepath}: {e}")
            return None

        stored = (record.session.enrollment_id, record.session.module_id)
        if stored != (enrollment_id, module_id):
            logger.warning(
                f"Ignoring session file {filepath}: it belongs to enrollment "
                f"'{stored[0]}', module '{stored[1]}'"
            )
            return None
        return record

    def delete(self, enrollment_id: str, module_id: str) -> bool:
        """Delete a session file."""
        filepath = self.path_for(enrollment_id, module_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def list_sessions(self) -> list[StoredSession]:
        """List all readable, non-expired sessions, most recent first."""
        sessions = []
        for filepath in self.session_dir.glob("*.json"):
            try:
                with open(filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                record = StoredSession.from_dict(data)
                if not record.is_expired():
                    sessions.append(record)
            except (KeyError, TypeError, ValueError):
                continue

        return sorted(sessions, key=lambda x: x.saved_at, reverse=True)

    def cleanup_expired(self) -> int:
        """Remove expired and corrupted session files."""
        removed = 0
        for filepath in self.session_dir.glob("*.json"):
            try:
                with open(filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not StoredSession.from_dict(data).is_expired():
                    continue
            except (KeyError, TypeError, ValueError):
                pass
            filepath.unlink()
            removed += 1

        return removed


def load_catalog(path: Path) -> list[LearningUnit]:
    """
    Read a catalog JSON file.

    Accepts either a list of units or an object with a "units" list.

    Raises:
        PlaylistContractError: If the file does not describe learning units
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("units", [])
    if not isinstance(data, list):
        raise PlaylistContractError(f"Catalog {path} must contain a list of units")

    try:
        return [LearningUnit.from_dict(item) for item in data]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise PlaylistContractError(f"Malformed learning unit in {path}: {e}") from e


def _safe(value: str) -> str:
    return quote(value, safe="").replace("_", "%5F")
