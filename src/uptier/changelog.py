"""Append-only change log that lets another process notice database writes.

Best effort: a write that fails is logged at debug level and dropped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class ChangeLog:
    def __init__(
        self,
        path: str | Path,
        max_bytes: int = 100 * 1024,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.path = Path(path)
        self.max_bytes = max_bytes
        self.clock = clock

    def notify(self, entity: str, op: str, entity_id: str | None = None) -> None:
        entry = {"ts": self.clock().isoformat(), "type": entity, "op": op, "id": entity_id}
        try:
            if self.path.exists() and self.path.stat().st_size > self.max_bytes:
                self.path.write_text("")
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.debug("Change log write skipped", extra={"path": str(self.path), "error": str(exc)})

    def read(self) -> list[dict]:
        """Entries currently in the file, oldest first. Unreadable lines are skipped."""
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError:
            return []
        entries = []
        for line in lines:
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries
