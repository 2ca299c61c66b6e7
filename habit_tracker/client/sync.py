# habit_tracker/client/sync.py
"""Network-aware wrappers that fall back to the offline queue."""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional
import httpx
from habit_tracker.client.api import HabitApiClient
from habit_tracker.client.offline_queue import OfflineQueue, PendingCompletion

logger = logging.getLogger(__name__)


@dataclass
class CompletionAttempt:
    offline: bool
    result: Optional[Dict[str, Any]] = None
    pending: Optional[PendingCompletion] = None


def is_unreachable(exc: httpx.HTTPError) -> bool:
    """Connection problems and server errors; a 4xx is the request's own fault."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return True


async def complete_or_buffer(
    api: HabitApiClient,
    queue: OfflineQueue,
    habit_id: int,
    payload: Optional[Dict[str, Any]] = None,
    completion_date: Optional[date] = None,
) -> CompletionAttempt:
    """Record a completion online, or buffer it when the server cannot be reached.

    Rejections such as an archived or unknown habit are raised, since replaying
    them later would fail the same way.
    """
    day = completion_date or api.today()
    try:
        result = await api.complete_habit(habit_id, payload, completion_date=day)
    except httpx.HTTPError as exc:
        if not is_unreachable(exc):
            raise
        logger.info("Habit %s completion on %s buffered offline: %s", habit_id, day, exc)
        return CompletionAttempt(offline=True, pending=queue.add(habit_id, day, payload))

    # an online success supersedes an older buffered edit for the same day
    queue.discard(habit_id, day)
    return CompletionAttempt(offline=False, result=result)


async def load_habits(api: HabitApiClient, queue: OfflineQueue) -> Dict[str, Any]:
    """Fetch the habit listing and remember it; offline, serve the remembered one.

    Either way buffered edits are applied on top. Raises the network error when
    nothing has been fetched yet.
    """
    try:
        listing = await api.list_habits()
    except httpx.HTTPError as exc:
        view = queue.offline_view()
        if view is None or not is_unreachable(exc):
            raise
        logger.info("Serving habits from the offline snapshot: %s", exc)
        return view
    queue.save_snapshot(listing)
    return queue.overlay(listing)
