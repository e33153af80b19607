"""SQLite store: seeding, partial updates, conditional writes, badges, sessions."""

import threading
from datetime import date

import pytest

from repquest.models import Badge, BodyweightExercise, BodyweightSet, PersonalRecordEntry, WorkoutSession, XPBreakdown
from repquest.storage import NotFoundError, Storage, WriteConflictError


def test_create_user_seeds_every_skill(storage) -> None:
    user = storage.create_user("user_a", "Alice")
    assert user.display_name == "Alice"
    assert user.overall_level == 0
    skills = storage.get_all_skills("user_a")
    assert [s.id for s in skills] == ["pushups", "situps", "squats", "pullups", "5k"]
    assert all(s.level == 0 and s.xp == 0 for s in skills)
    assert storage.get_skill("user_a", "5k").best == 3600
    assert storage.get_skill("user_a", "pushups").best == 0


def test_create_user_generates_id_and_is_idempotent(storage) -> None:
    generated = storage.create_user()
    assert generated.user_id.startswith("user_")

    storage.create_user("user_a", "Alice")
    storage.update_skill("user_a", "pushups", {"best": 10})
    again = storage.create_user("user_a", "Someone Else")
    assert again.display_name == "Alice"
    assert storage.get_skill("user_a", "pushups").best == 10


def test_update_skill_is_partial_and_bumps_version(storage, user_id) -> None:
    before = storage.get_skill(user_id, "squats")
    storage.update_skill(user_id, "squats", {"xp": 120})
    after = storage.get_skill(user_id, "squats")
    assert after.xp == 120
    assert after.best == before.best
    assert after.version == before.version + 1


def test_update_skill_conditional(storage, user_id) -> None:
    skill = storage.get_skill(user_id, "squats")
    storage.update_skill(user_id, "squats", {"xp": 10}, expected_version=skill.version)
    with pytest.raises(WriteConflictError):
        storage.update_skill(user_id, "squats", {"xp": 20}, expected_version=skill.version)
    assert storage.get_skill(user_id, "squats").xp == 10


def test_update_skill_rejects_unknown_fields_and_missing_records(storage, user_id) -> None:
    with pytest.raises(ValueError):
        storage.update_skill(user_id, "squats", {"version": 7})
    with pytest.raises(NotFoundError):
        storage.update_skill("nobody", "squats", {"xp": 1})


def test_update_user(storage, user_id) -> None:
    storage.update_user(user_id, {"streak_count": 3, "last_streak_date": date(2025, 3, 1)})
    user = storage.get_user(user_id)
    assert user.streak_count == 3
    assert user.last_streak_date == date(2025, 3, 1)
    with pytest.raises(NotFoundError):
        storage.update_user("nobody", {"streak_count": 1})
    with pytest.raises(ValueError):
        storage.update_user(user_id, {"user_id": "other"})


def test_personal_records_newest_first(storage, user_id) -> None:
    storage.log_personal_record(user_id, PersonalRecordEntry(skill_id="pushups", value=20, delta=20))
    storage.log_personal_record(user_id, PersonalRecordEntry(skill_id="pushups", value=25, delta=5))
    storage.log_personal_record(user_id, PersonalRecordEntry(skill_id="squats", value=30, delta=30))
    assert [r.value for r in storage.get_personal_records(user_id)] == [30, 25, 20]
    assert [r.value for r in storage.get_personal_records(user_id, skill_id="pushups", limit=1)] == [25]


def test_unlock_badge_once(storage, user_id) -> None:
    badge = Badge(label="PUSHUPS L10", skill_id="pushups", level=10)
    first = storage.unlock_badge(user_id, badge)
    assert first is not None
    assert first.id is not None
    assert storage.unlock_badge(user_id, badge) is None
    assert len(storage.get_badges(user_id)) == 1


def test_workout_sessions_round_trip_most_recent_first(storage, user_id) -> None:
    older = WorkoutSession(
        workout_date=date(2025, 3, 1),
        exercises=[BodyweightExercise(name="pushups", sets=[BodyweightSet(reps=10)])],
        total_xp=20,
        xp_breakdown=XPBreakdown(bodyweight_xp=20, total_xp=20),
    )
    newer = WorkoutSession(workout_date=date(2025, 3, 3))
    storage.save_workout_session(user_id, older)
    storage.save_workout_session(user_id, newer)

    sessions = storage.get_workout_sessions(user_id)
    assert [s.id for s in sessions] == [newer.id, older.id]
    assert isinstance(sessions[1].exercises[0], BodyweightExercise)
    assert storage.get_workout_sessions(user_id, limit=1)[0].id == newer.id


def test_leaderboard_entries_count_badges(storage, user_id) -> None:
    storage.create_user("user_b", "Bo")
    storage.unlock_badge(user_id, Badge(label="PUSHUPS L10", skill_id="pushups", level=10))
    storage.unlock_badge(user_id, Badge(label="PUSHUPS L20", skill_id="pushups", level=20))
    entries = {e.user_id: e for e in storage.get_leaderboard_entries()}
    assert entries[user_id].total_badges == 2
    assert entries["user_b"].total_badges == 0
    assert entries["user_b"].last_updated


def test_reopen_keeps_data(tmp_path) -> None:
    path = tmp_path / "persist.db"
    first = Storage(path)
    first.create_user("user_a")
    first.update_skill("user_a", "pullups", {"best": 8})
    first.close()

    second = Storage(path)
    try:
        assert second.get_skill("user_a", "pullups").best == 8
    finally:
        second.close()


def test_shared_connection_across_threads(storage, user_id) -> None:
    """Server tools run on worker threads against one store."""
    errors: list[Exception] = []

    def log_records(skill_id: str) -> None:
        try:
            for i in range(25):
                storage.log_personal_record(user_id, PersonalRecordEntry(skill_id=skill_id, value=i, delta=1))
                storage.get_personal_records(user_id, skill_id=skill_id, limit=1)
        except Exception as e:  # collected and asserted below
            errors.append(e)

    threads = [threading.Thread(target=log_records, args=(s,)) for s in ("pushups", "situps", "squats", "pullups")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(storage.get_personal_records(user_id)) == 100
