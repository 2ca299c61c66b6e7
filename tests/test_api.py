from helpers import auth_headers

CUSTOM = {"frequency": "custom", "days": ["monday", "wednesday"]}


async def create(client, **fields):
    fields.setdefault("title", "Read 10 pages")
    response = await client.post("/habits", json=fields)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_habit_awards_creation_bonus(client):
    body = await create(client, schedule=CUSTOM, category="learning", color="#fa0")

    habit = body["habit"]
    assert habit["schedule"] == {"frequency": "custom", "days": ["monday", "wednesday"], "times_per_week": 2}
    assert habit["current_streak"] == 0
    assert habit["reminders"][0]["message"] == "Time for Read 10 pages!"
    assert body["points_awarded"] == 5
    assert body["badges_awarded"] == ["Habit Creator"]

    second = await create(client, title="Stretch")
    assert second["badges_awarded"] == []


async def test_create_rejects_invalid_payload(client):
    response = await client.post("/habits", json={"title": "Run", "color": "red"})
    assert response.status_code == 422


async def test_complete_and_undo_flow(client):
    habit_id = (await create(client))["habit"]["id"]

    response = await client.post(f"/habits/{habit_id}/complete", json={"count": 1, "effort_level": 5})
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["created"] is True
    assert result["streak"] == 1
    assert result["points_awarded"] == 15
    assert result["completion"]["completion_date"] == "2026-03-18"

    again = (await client.post(f"/habits/{habit_id}/complete", json={"count": 1, "effort_level": 5})).json()
    assert again["created"] is False
    assert again["points_awarded"] == 0
    assert again["habit"]["total_completions"] == 1

    listing = (await client.get("/habits")).json()
    assert listing["completed_habits"] == 1
    assert listing["habits"][0]["today_status"]["completed"] is True

    detail = (await client.get(f"/habits/{habit_id}")).json()
    assert len(detail["recent_completions"]) == 1
    assert detail["habit"]["statistics"]["weekly_completion_rate"] == 14.0

    undo = await client.delete(f"/habits/{habit_id}/complete")
    assert undo.status_code == 200
    assert undo.json()["new_streak"] == 0
    assert undo.json()["habit"]["longest_streak"] == 1

    missing = await client.delete(f"/habits/{habit_id}/complete")
    assert missing.status_code == 404
    assert missing.json() == {"detail": "No completion found for today"}


async def test_future_completion_date_is_rejected(client):
    habit_id = (await create(client))["habit"]["id"]
    response = await client.post(f"/habits/{habit_id}/complete", json={"completion_date": "2026-03-19"})
    assert response.status_code == 400


async def test_gamification_state(client):
    habit_id = (await create(client))["habit"]["id"]
    await client.post(f"/habits/{habit_id}/complete", json={})

    state = (await client.get("/gamification/me")).json()
    assert state["points"] == 15
    assert state["level"] == 1
    assert state["habit_streak"] == 1
    assert [b["name"] for b in state["badges"]] == ["Habit Creator"]


async def test_update_rejects_progress_fields(client):
    habit_id = (await create(client))["habit"]["id"]

    response = await client.put(f"/habits/{habit_id}", json={"currentStreak": 40})
    assert response.status_code == 400
    assert "currentStreak" in response.json()["detail"]

    response = await client.put(f"/habits/{habit_id}", json={"title": "Read 20 pages", "target_count": 2})
    assert response.status_code == 200
    assert response.json()["title"] == "Read 20 pages"
    assert response.json()["target_count"] == 2


async def test_archive_then_complete_fails(client):
    habit_id = (await create(client))["habit"]["id"]

    response = await client.delete(f"/habits/{habit_id}")
    assert response.status_code == 200

    detail = (await client.get(f"/habits/{habit_id}")).json()
    assert detail["habit"]["is_archived"] is True

    response = await client.post(f"/habits/{habit_id}/complete", json={})
    assert response.status_code == 400

    active = (await client.get("/habits", params={"active": "true"})).json()
    assert active["total_habits"] == 0


async def test_other_users_habit_is_hidden(client, other_user):
    habit_id = (await create(client))["habit"]["id"]

    response = await client.get(f"/habits/{habit_id}", headers=auth_headers(other_user))
    assert response.status_code == 404
    assert response.json() == {"detail": "Habit not found"}

    response = await client.post(f"/habits/{habit_id}/complete", json={}, headers=auth_headers(other_user))
    assert response.status_code == 404


async def test_stats_calendar_and_dashboard(client):
    habit_id = (await create(client, schedule=CUSTOM))["habit"]["id"]
    await client.post(f"/habits/{habit_id}/complete", json={"satisfaction_level": 4})

    stats = (await client.get(f"/habits/{habit_id}/stats", params={"days": 7})).json()
    assert stats["window_days"] == 7
    assert stats["statistics"]["total_completions"] == 1
    assert stats["statistics"]["average_satisfaction"] == 4.0
    assert stats["insights"]["best_day"] == "Wednesday"

    calendar = (await client.get(
        "/habits/calendar/range", params={"start_date": "2026-03-16", "end_date": "2026-03-18"}
    )).json()
    assert calendar["calendar_data"]["2026-03-17"]["total_habits"] == 0
    assert calendar["calendar_data"]["2026-03-17"]["completion_rate"] == 0
    assert calendar["calendar_data"]["2026-03-18"]["completion_rate"] == 100

    bad_range = await client.get(
        "/habits/calendar/range", params={"start_date": "2026-03-18", "end_date": "2026-03-01"}
    )
    assert bad_range.status_code == 400

    dashboard = (await client.get("/habits/dashboard/summary")).json()
    assert dashboard["summary"]["today_due"] == 1
    assert dashboard["summary"]["today_completed"] == 1
    assert dashboard["summary"]["best_streak"]["habit_id"] == habit_id


async def test_recommendations_and_reminders(client):
    await create(client, title="Breathe", mood_booster=True, reminders=[{"time": "08:00", "message": "Breathe in"}])
    await create(client, title="Walk", recommended_moods=["happy"])

    response = await client.get("/habits/recommendations/anxious")
    assert response.status_code == 200
    assert [h["title"] for h in response.json()["recommended_habits"]] == ["Breathe"]

    response = await client.get("/habits/recommendations/furious")
    assert response.status_code == 400

    reminders = (await client.get("/habits/reminders")).json()
    assert [(r["habit_title"], r["time"]) for r in reminders] == [("Breathe", "08:00"), ("Walk", "09:00")]


async def test_request_day_context(client):
    response = await client.get("/habits", headers={"X-Timezone": "Mars/Olympus"})
    assert response.status_code == 400

    response = await client.get("/habits", headers={"X-Local-Date": "18/03/2026"})
    assert response.status_code == 400

    response = await client.get("/habits", headers={"X-Local-Date": "2026-01-02"})
    assert response.json()["date"] == "2026-01-02"


async def test_invalid_token_is_rejected(client):
    response = await client.get("/habits", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_reminder_times_are_zero_padded(client):
    body = await create(client, reminders=[{"time": "10:00"}, {"time": "9:30", "message": "Before lunch"}])

    assert [r["time"] for r in body["habit"]["reminders"]] == ["09:30", "10:00"]
