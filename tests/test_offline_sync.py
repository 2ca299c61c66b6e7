import httpx
import pytest

from habit_tracker.client.api import HabitApiClient
from habit_tracker.client.offline_queue import OfflineQueue
from habit_tracker.client.sync import complete_or_buffer, load_habits
from habit_tracker.core.security import create_access_token

from helpers import TODAY


def api_for(client, user_id):
    token = create_access_token({"sub": str(user_id)})
    return HabitApiClient("http://test", token, timezone="UTC", local_date=TODAY, http=client)


def unreachable_client(status_code=None):
    def handler(request):
        if status_code is None:
            raise httpx.ConnectError("network unreachable", request=request)
        return httpx.Response(status_code, json={"detail": "unavailable"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


async def create_habit(client, title="Meditate"):
    response = await client.post("/habits", json={"title": title})
    return response.json()["habit"]["id"]


async def test_online_completion_goes_straight_to_server(client, api_user):
    habit_id = await create_habit(client)
    queue = OfflineQueue()
    api = api_for(client, api_user)

    attempt = await complete_or_buffer(api, queue, habit_id, {"count": 1})

    assert attempt.offline is False
    assert attempt.result["created"] is True
    assert attempt.result["completion"]["completion_date"] == "2026-03-18"
    assert queue.pending_sync is False

    detail = await api.get_habit(habit_id)
    assert detail["habit"]["current_streak"] == 1
    undone = await api.undo_completion(habit_id)
    assert undone["new_streak"] == 0


async def test_rejected_completion_is_not_buffered(client, api_user):
    queue = OfflineQueue()

    with pytest.raises(httpx.HTTPStatusError) as info:
        await complete_or_buffer(api_for(client, api_user), queue, 9999)

    assert info.value.response.status_code == 404
    assert len(queue) == 0


@pytest.mark.parametrize("status_code", [None, 503])
async def test_unreachable_server_buffers_completion(status_code):
    queue = OfflineQueue()
    async with unreachable_client(status_code) as http:
        api = HabitApiClient("http://test", "token", timezone="UTC", local_date=TODAY, http=http)
        attempt = await complete_or_buffer(api, queue, 4, {"count": 2})

    assert attempt.offline is True
    assert attempt.result is None
    assert attempt.pending.key == (4, TODAY)
    assert queue.entries()[0].payload == {"count": 2}


async def test_offline_reads_use_saved_snapshot(client, api_user, tmp_path):
    habit_id = await create_habit(client)
    path = tmp_path / "pending.json"

    online = await load_habits(api_for(client, api_user), OfflineQueue(path))
    assert online["habits"][0]["today_status"]["completed"] is False
    assert online["pending_sync"] is False

    # the app restarts without a connection
    queue = OfflineQueue(path)
    assert queue.snapshot["habits"][0]["id"] == habit_id
    async with unreachable_client() as http:
        api = HabitApiClient("http://test", "token", timezone="UTC", local_date=TODAY, http=http)
        await complete_or_buffer(api, queue, habit_id)
        view = await load_habits(api, queue)

    assert view["habits"][0]["today_status"]["completed"] is True
    assert view["habits"][0]["pending_sync"] is True
    assert view["completed_habits"] == 1

    # once back online the buffered completion replays and the fresh listing agrees
    api = api_for(client, api_user)
    report = await queue.replay(api.submit_pending)
    assert len(report.sent) == 1
    fresh = await load_habits(api, queue)
    assert fresh["habits"][0]["today_status"]["completed"] is True
    assert fresh["pending_sync"] is False


async def test_offline_without_snapshot_raises():
    async with unreachable_client() as http:
        api = HabitApiClient("http://test", "token", timezone="UTC", local_date=TODAY, http=http)
        with pytest.raises(httpx.ConnectError):
            await load_habits(api, OfflineQueue())


async def test_list_filters_are_sent(client, api_user):
    await create_habit(client, "Stretch")
    api = api_for(client, api_user)

    assert (await api.list_habits(active=True))["total_habits"] == 1
    assert (await api.list_habits(category="sleep"))["total_habits"] == 0
