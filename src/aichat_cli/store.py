"""File-backed storage of named conversation contexts.

Each context lives in ``<contexts dir>/<name>.json``:

    {"name": ..., "messages": [{"role": ..., "content": ...}, ...],
     "createdAt": "<ISO-8601>", "updatedAt": "<ISO-8601>"}

Saves replace the whole file. There is no locking: two processes saving the
same context race and the last write wins.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from .core import Context, ContextSummary, Message

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_name(name: str) -> bool:
    """Context names become file names, so keep them to a single path segment."""
    if not name or name.startswith("."):
        return False
    return not any(sep in name for sep in ("/", "\\", "\0"))


class ContextStore:
    """Name-keyed persistence of transcripts."""

    def __init__(self, base_dir: Path, now: Callable[[], datetime] = _utcnow):
        self.base_dir = Path(base_dir)
        self._now = now

    def path_for(self, name: str) -> Path:
        return self.base_dir / f"{name}.json"

    def exists(self, name: str) -> bool:
        return is_valid_name(name) and self.path_for(name).is_file()

    def save(self, name: str, messages: Iterable[Message]) -> bool:
        """Write the full transcript for ``name``, keeping its original createdAt."""
        if not is_valid_name(name):
            logger.error("Error saving context: invalid name %r", name)
            return False

        path = self.path_for(name)
        now = self._now()
        created = self._read_created_at(path) or now
        record = {
            "name": name,
            "messages": [m.to_dict() for m in messages],
            "createdAt": created.isoformat(),
            "updatedAt": now.isoformat(),
        }

        tmp = path.with_name(path.name + ".tmp")
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except (OSError, ValueError) as e:
            # ValueError covers UnicodeEncodeError from lone surrogates in message text.
            logger.error("Error saving context %s: %s", name, e)
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp)
            return False
        logger.debug("Saved context %s (%d messages)", name, len(record["messages"]))
        return True

    def load(self, name: str) -> Context | None:
        """Return the stored context, or None if it is missing or unreadable."""
        if not is_valid_name(name):
            return None
        path = self.path_for(name)
        if not path.is_file():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Context(
                name=data.get("name", name),
                messages=[Message.from_dict(m) for m in data["messages"]],
                created_at=_parse_timestamp(data.get("createdAt")),
                updated_at=_parse_timestamp(data.get("updatedAt")),
            )
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error("Error loading context %s: %s", name, e)
            return None

    def list(self) -> list[ContextSummary]:
        """Return summaries of all contexts, most recently updated first."""
        if not self.base_dir.is_dir():
            return []

        summaries = []
        for ctx_file in self.base_dir.glob("*.json"):
            try:
                data = json.loads(ctx_file.read_text(encoding="utf-8"))
                summaries.append(ContextSummary(
                    name=data.get("name", ctx_file.stem),
                    message_count=len(data.get("messages", [])),
                    created_at=_parse_timestamp(data.get("createdAt")),
                    updated_at=_parse_timestamp(data.get("updatedAt")),
                ))
            except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping unreadable context file %s: %s", ctx_file, e)
                continue

        summaries.sort(key=lambda s: s.updated_at or _epoch(), reverse=True)
        return summaries

    def delete(self, name: str) -> bool:
        """Remove a context. Returns False when there was nothing to delete."""
        if not is_valid_name(name):
            return False
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Error deleting context %s: %s", name, e)
            return False
        return True

    def clear(self, name: str) -> bool:
        """Empty a context's transcript. createdAt survives the clear."""
        return self.save(name, [])

    # ── Private helpers ──────────────────────────────────────────────

    def _read_created_at(self, path: Path) -> datetime | None:
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return _parse_timestamp(data.get("createdAt"))
        except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Existing context %s is unreadable, resetting createdAt: %s", path, e)
            return None


def _parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp, including the ``Z`` suffix JavaScript writes."""
    if not value:
        return None
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _epoch() -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc)
