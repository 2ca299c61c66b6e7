# habit_tracker/client/offline_queue.py
"""Device-side buffer for completions recorded without connectivity.

Entries are keyed by (habit_id, completion_date); replaying them is safe to
repeat because the server upserts one ledger row per habit and day.
"""
import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PendingCompletion(BaseModel):
    habit_id: int
    completion_date: date
    payload: Dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=_now)
    attempts: int = 0
    last_error: Optional[str] = None

    @property
    def key(self) -> Tuple[int, date]:
        return (self.habit_id, self.completion_date)


@dataclass
class ReplayReport:
    sent: List[PendingCompletion] = field(default_factory=list)
    failed: List[PendingCompletion] = field(default_factory=list)
    skipped: bool = False


Submit = Callable[[PendingCompletion], Awaitable[Any]]


class OfflineQueue:
    """Buffered completions plus the last habit listing fetched while online.

    With a `path` both are kept on disk: the entries in `path` and the listing
    in a `.snapshot.json` file beside it.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self.snapshot_path = self.path.with_suffix(".snapshot.json") if self.path is not None else None
        self._entries: Dict[Tuple[int, date], PendingCompletion] = {}
        self._snapshot: Optional[Dict[str, Any]] = None
        self._replay_lock = asyncio.Lock()
        if self.path is not None and self.path.exists():
            self._load()
        if self.snapshot_path is not None and self.snapshot_path.exists():
            self._load_snapshot()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def pending_sync(self) -> bool:
        return bool(self._entries)

    def entries(self) -> List[PendingCompletion]:
        """Buffered entries in replay order (oldest recording first)."""
        return sorted(self._entries.values(), key=lambda e: (e.recorded_at, e.habit_id))

    def add(
        self,
        habit_id: int,
        completion_date: date,
        payload: Optional[Dict[str, Any]] = None,
        recorded_at: Optional[datetime] = None,
    ) -> PendingCompletion:
        """Buffer a completion. A later edit for the same habit and day replaces the earlier one."""
        entry = PendingCompletion(
            habit_id=habit_id,
            completion_date=completion_date,
            payload=dict(payload or {}),
            recorded_at=recorded_at or _now(),
        )
        self._entries[entry.key] = entry
        self._save()
        return entry

    def discard(self, habit_id: int, completion_date: date) -> bool:
        removed = self._entries.pop((habit_id, completion_date), None) is not None
        if removed:
            self._save()
        return removed

    async def replay(self, submit: Submit) -> ReplayReport:
        """Send every entry through `submit` in timestamp order.

        Successful entries leave the buffer; failures stay for the next
        reconnect. A replay already running is not started a second time.
        """
        report = ReplayReport()
        if self._replay_lock.locked():
            logger.info("Offline replay already in progress; skipping")
            report.skipped = True
            return report

        async with self._replay_lock:
            for entry in self.entries():
                try:
                    await submit(entry)
                except (httpx.HTTPError, OSError) as exc:
                    entry.attempts += 1
                    entry.last_error = str(exc)
                    report.failed.append(entry)
                    logger.warning(
                        "Replay of habit %s on %s failed (attempt %s): %s",
                        entry.habit_id, entry.completion_date, entry.attempts, exc,
                    )
                    continue
                # only drop the entry if it was not edited again while in flight
                if self._entries.get(entry.key) is entry:
                    del self._entries[entry.key]
                report.sent.append(entry)
            self._save()

        if report.sent or report.failed:
            logger.info("Offline replay: %s sent, %s still pending", len(report.sent), len(self._entries))
        return report

    @property
    def snapshot(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._snapshot)

    def save_snapshot(self, listing: Dict[str, Any]) -> None:
        """Remember a `GET /habits` payload for reads while offline."""
        self._snapshot = copy.deepcopy(listing)
        if self.snapshot_path is not None:
            _write_json(self.snapshot_path, self._snapshot)

    def offline_view(self) -> Optional[Dict[str, Any]]:
        """Last-known listing with buffered edits applied, or None before the first fetch."""
        if self._snapshot is None:
            return None
        return self.overlay(self._snapshot)

    def overlay(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Apply buffered edits to a last-known `GET /habits` payload.

        Only entries for the snapshot's day change a habit's status. The input
        is left untouched.
        """
        view = copy.deepcopy(snapshot)
        day = view.get("date")
        for habit in view.get("habits", []):
            entry = self._entries.get((habit.get("id"), _as_date(day)))
            habit["pending_sync"] = entry is not None
            if entry is None:
                continue
            status = habit.setdefault("today_status", {})
            target = status.get("target_count") or habit.get("target_count") or 1
            status["completed"] = True
            status["count"] = min(entry.payload.get("count", 1), target)
            status["target_count"] = target
        view["completed_habits"] = sum(
            1 for h in view.get("habits", []) if h.get("today_status", {}).get("completed")
        )
        view["pending_sync"] = self.pending_sync
        return view

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read offline queue %s: %s", self.path, exc)
            return
        for item in raw:
            entry = PendingCompletion.model_validate(item)
            self._entries[entry.key] = entry

    def _load_snapshot(self) -> None:
        try:
            self._snapshot = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read habit snapshot %s: %s", self.snapshot_path, exc)

    def _save(self) -> None:
        if self.path is None:
            return
        _write_json(self.path, [e.model_dump(mode="json") for e in self.entries()])


def _write_json(path: Path, data: Any) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None
