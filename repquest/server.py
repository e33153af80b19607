"""MCP server: repquest.submit_workout, repquest.log_daily_quest, previews, and read-only resources."""

from __future__ import annotations

import json
import logging
import os
from datetime import date
from pathlib import Path

from fastmcp import FastMCP

from .classify import build_exercise_block, calculate_estimated_xp, infer_exercise_type, infer_skill_from_exercise
from .leaderboard import get_top_users
from .models import (
    CreateUserInput,
    PreviewExerciseInput,
    PreviewExerciseOutput,
    SubmitWorkoutInput,
    UserIdInput,
)
from .pr import check_potential_pr
from .progression import calculate_and_get_overall_level, submit_workout
from .storage import DocumentStore, Storage
from .streak import log_daily_quest


def _default_db_path() -> str:
    # REPQUEST_DB_PATH overrides the file next to the package
    return os.environ.get("REPQUEST_DB_PATH", str(Path(__file__).parent.parent / "repquest.db"))


def _parse_day(value: str | None) -> date:
    return date.fromisoformat(value) if value else date.today()


def preview_exercise_impl(inp: PreviewExerciseInput, storage: DocumentStore) -> PreviewExerciseOutput:
    block = build_exercise_block(inp.exercise)
    if block is None:
        return PreviewExerciseOutput(valid=False)
    exercise_type = infer_exercise_type(inp.exercise)
    return PreviewExerciseOutput(
        valid=True,
        exercise_type=exercise_type,
        skill_id=infer_skill_from_exercise(inp.exercise.exercise_name, exercise_type),
        estimated_xp=calculate_estimated_xp(inp.exercise),
        potential_pr=check_potential_pr(storage, inp.user_id, block),
    )


def build_server(storage: DocumentStore) -> FastMCP:
    """Register tools and resources against an explicitly constructed store."""
    mcp = FastMCP(name="repquest")

    @mcp.tool(name="repquest.create_user")
    def repquest_create_user(payload: dict) -> dict:
        """Create an account with all skills seeded at level 0. Idempotent for an existing user_id."""
        inp = CreateUserInput.model_validate(payload)
        user = storage.create_user(inp.user_id, inp.display_name)
        return user.model_dump(mode="json")

    @mcp.tool(name="repquest.submit_workout")
    def repquest_submit_workout(payload: dict) -> dict:
        """
        Submit a workout: list of exercise blocks tagged by type (strength / bodyweight / endurance).
        Detects PRs, applies PR bonus and per-skill XP, refreshes overall level, updates the daily streak.
        Returns the saved session with its XP breakdown and PR events.
        """
        inp = SubmitWorkoutInput.model_validate(payload)
        session = submit_workout(storage, inp.user_id, inp.exercises, _parse_day(inp.date))
        return session.model_dump(mode="json")

    @mcp.tool(name="repquest.preview_exercise")
    def repquest_preview_exercise(payload: dict) -> dict:
        """
        Preview a quick-log entry (exercise_name plus reps / weight / distance / time_seconds)
        without writing anything: inferred type and skill, estimated XP, and whether it would be a PR.
        """
        inp = PreviewExerciseInput.model_validate(payload)
        return preview_exercise_impl(inp, storage).model_dump(mode="json")

    @mcp.tool(name="repquest.log_daily_quest")
    def repquest_log_daily_quest(payload: dict) -> dict:
        """Mark today's daily quest done and advance the streak (at most once per calendar day)."""
        inp = UserIdInput.model_validate(payload)
        result = log_daily_quest(storage, inp.user_id, _parse_day(inp.date))
        return result.model_dump(mode="json")

    @mcp.tool(name="repquest.overall_level")
    def repquest_overall_level(payload: dict) -> dict:
        """Recompute and persist the account level (rounded mean of skill levels)."""
        inp = UserIdInput.model_validate(payload)
        return {"user_id": inp.user_id, "overall_level": calculate_and_get_overall_level(storage, inp.user_id)}

    @mcp.resource("user://{user_id}/skills", mime_type="application/json")
    def resource_user_skills(user_id: str) -> str:
        """Read-only: skill records (best, level, xp) for a user."""
        skills = storage.get_all_skills(user_id)
        if not skills:
            return json.dumps({"error": "user not found", "user_id": user_id})
        return json.dumps([s.model_dump(mode="json") for s in skills], indent=2)

    @mcp.resource("user://{user_id}/workouts", mime_type="application/json")
    def resource_user_workouts(user_id: str) -> str:
        """Read-only: the 20 most recent workout sessions."""
        sessions = storage.get_workout_sessions(user_id, limit=20)
        return json.dumps([s.model_dump(mode="json") for s in sessions], indent=2)

    @mcp.resource("leaderboard://top", mime_type="application/json")
    def resource_leaderboard_top() -> str:
        """Read-only: top 10 accounts by overall level."""
        top = get_top_users(storage.get_leaderboard_entries(), 10)
        return json.dumps([e.model_dump(mode="json") for e in top], indent=2)

    return mcp


def run() -> None:
    """Run the MCP server with stdio transport (default)."""
    logging.basicConfig(level=os.environ.get("REPQUEST_LOG_LEVEL", "INFO"))
    storage = Storage(_default_db_path())
    try:
        build_server(storage).run()
    finally:
        storage.close()
