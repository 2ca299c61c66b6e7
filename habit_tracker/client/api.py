# habit_tracker/client/api.py
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo
import httpx
from habit_tracker.config import settings

logger = logging.getLogger(__name__)


class HabitApiClient:
    """Thin async client for the habit endpoints, used by devices and the offline queue."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timezone: Optional[str] = None,
        local_date: Optional[date] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.token = token
        self.timezone = timezone or settings.DEFAULT_TIMEZONE
        # pinned calendar day; None lets the server derive it from the timezone
        self.local_date = local_date
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "HabitApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def today(self) -> date:
        """The calendar day completions are filed under when no date is given."""
        if self.local_date is not None:
            return self.local_date
        return datetime.now(ZoneInfo(self.timezone)).date()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "X-Timezone": self.timezone,
        }
        if self.local_date is not None:
            headers["X-Local-Date"] = self.local_date.isoformat()
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self.http.request(method, url, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response.json()

    async def list_habits(self, category: Optional[str] = None, active: Optional[bool] = None) -> Dict[str, Any]:
        params = {}
        if category:
            params["category"] = category
        if active is not None:
            params["active"] = str(active).lower()
        return await self._request("GET", "/habits", params=params)

    async def get_habit(self, habit_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/habits/{habit_id}")

    async def complete_habit(
        self, habit_id: int, payload: Optional[Dict[str, Any]] = None, completion_date: Optional[date] = None
    ) -> Dict[str, Any]:
        body = dict(payload or {})
        if completion_date is not None:
            body["completion_date"] = completion_date.isoformat()
        return await self._request("POST", f"/habits/{habit_id}/complete", json=body)

    async def undo_completion(self, habit_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/habits/{habit_id}/complete")

    async def submit_pending(self, entry) -> Dict[str, Any]:
        """Send one buffered offline completion. Used as the offline queue's submit callable."""
        logger.debug("Replaying completion for habit %s on %s", entry.habit_id, entry.completion_date)
        return await self.complete_habit(entry.habit_id, entry.payload, completion_date=entry.completion_date)
