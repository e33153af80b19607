"""SQLite storage layer for users, skills, PR audit log, badges, workouts and daily quests."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import date
from pathlib import Path
from typing import Any, Optional, Protocol

from .models import (
    SKILLS,
    Badge,
    LeaderboardEntry,
    PersonalRecordEntry,
    SkillName,
    SkillRecord,
    UserRecord,
    WorkoutSession,
    _generate_id,
)

SKILL_FIELDS = frozenset({"best", "level", "xp"})
USER_FIELDS = frozenset({"display_name", "overall_level", "streak_count", "last_streak_date"})


class StoreError(Exception):
    """Read or write against the store failed."""


class NotFoundError(StoreError):
    """Referenced user or skill record does not exist."""


class WriteConflictError(StoreError):
    """Conditional write lost: the stored version moved since it was read."""


class DocumentStore(Protocol):
    """What the progression engine needs from a backend. Single writer, last write wins, except
    update_skill with expected_version, which only writes if the record is unchanged."""

    def get_skill(self, user_id: str, skill_id: SkillName) -> Optional[SkillRecord]: ...

    def update_skill(
        self,
        user_id: str,
        skill_id: SkillName,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None: ...

    def get_all_skills(self, user_id: str) -> list[SkillRecord]: ...

    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    def update_user(self, user_id: str, fields: dict[str, Any]) -> None: ...

    def create_user(self, user_id: Optional[str] = None, display_name: str = "") -> UserRecord: ...

    def log_personal_record(self, user_id: str, entry: PersonalRecordEntry) -> None: ...

    def get_personal_records(
        self, user_id: str, skill_id: Optional[SkillName] = None, limit: Optional[int] = None
    ) -> list[PersonalRecordEntry]: ...

    def unlock_badge(self, user_id: str, badge: Badge) -> Optional[Badge]: ...

    def get_badges(self, user_id: str) -> list[Badge]: ...

    def save_workout_session(self, user_id: str, session: WorkoutSession) -> WorkoutSession: ...

    def get_workout_sessions(self, user_id: str, limit: Optional[int] = None) -> list[WorkoutSession]: ...

    def record_daily_quest(self, user_id: str, day: date) -> None: ...

    def get_leaderboard_entries(self) -> list[LeaderboardEntry]: ...


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


class Storage:
    """SQLite-backed DocumentStore. The caller owns the lifecycle: construct, use, close()."""

    def __init__(self, db_path: str | Path = "repquest.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        # One connection is shared across the server's worker threads
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                self._conn.row_factory = _dict_factory
                self._ensure_schema()
            return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _ensure_schema(self) -> None:
        conn = self.connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL DEFAULT '',
                overall_level INTEGER NOT NULL DEFAULT 0,
                streak_count INTEGER NOT NULL DEFAULT 0,
                last_streak_date TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            CREATE TABLE IF NOT EXISTS skills (
                user_id TEXT NOT NULL,
                skill_id TEXT NOT NULL,
                best REAL NOT NULL DEFAULT 0,
                level INTEGER NOT NULL DEFAULT 0,
                xp INTEGER NOT NULL DEFAULT 0,
                version INTEGER NOT NULL DEFAULT 0,
                last_updated TEXT NOT NULL DEFAULT (datetime('now')),
                PRIMARY KEY (user_id, skill_id),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE TABLE IF NOT EXISTS personal_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                skill_id TEXT NOT NULL,
                value REAL NOT NULL,
                delta REAL NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE TABLE IF NOT EXISTS badges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                label TEXT NOT NULL,
                skill_id TEXT,
                level INTEGER,
                unlocked_at TEXT NOT NULL DEFAULT (datetime('now')),
                UNIQUE (user_id, type, skill_id, level),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE TABLE IF NOT EXISTS workouts (
                workout_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                workout_date TEXT NOT NULL,
                session_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE TABLE IF NOT EXISTS daily_quests (
                user_id TEXT NOT NULL,
                quest_date TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                PRIMARY KEY (user_id, quest_date),
                FOREIGN KEY (user_id) REFERENCES users(user_id)
            );
            CREATE INDEX IF NOT EXISTS idx_prs_user_id ON personal_records(user_id);
            CREATE INDEX IF NOT EXISTS idx_workouts_user_date ON workouts(user_id, workout_date);
        """)
        conn.commit()

    def _execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        with self._lock:
            conn = self.connect()
            try:
                cur = conn.execute(sql, params)
                conn.commit()
                return cur
            except sqlite3.Error as e:
                conn.rollback()
                raise StoreError(str(e)) from e

    def _query(self, sql: str, params: tuple | list = ()) -> list[dict]:
        with self._lock:
            conn = self.connect()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

    # --- Users ---

    def create_user(self, user_id: Optional[str] = None, display_name: str = "") -> UserRecord:
        """Create the user row and seed one record per skill. Existing rows are left as they are."""
        user_id = user_id or _generate_id("user")
        self._execute(
            "INSERT OR IGNORE INTO users (user_id, display_name) VALUES (?, ?)",
            (user_id, display_name),
        )
        for skill_id in SKILLS:
            initial = SkillRecord.initial(skill_id)
            self._execute(
                """
                INSERT OR IGNORE INTO skills (user_id, skill_id, best, level, xp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, skill_id, initial.best, initial.level, initial.xp),
            )
        user = self.get_user(user_id)
        if user is None:
            raise StoreError(f"user {user_id} missing after insert")
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        rows = self._query(
            """
            SELECT user_id, display_name, overall_level, streak_count, last_streak_date, created_at
            FROM users WHERE user_id = ?
            """,
            (user_id,),
        )
        if not rows:
            return None
        return UserRecord.model_validate(rows[0])

    def update_user(self, user_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        if not fields:
            return
        values = [v.isoformat() if isinstance(v, date) else v for v in fields.values()]
        assignments = ", ".join(f"{k} = ?" for k in fields)
        cur = self._execute(
            f"UPDATE users SET {assignments}, updated_at = datetime('now') WHERE user_id = ?",
            [*values, user_id],
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"user {user_id} not found")

    # --- Skills ---

    def get_skill(self, user_id: str, skill_id: SkillName) -> Optional[SkillRecord]:
        rows = self._query(
            """
            SELECT skill_id AS id, best, level, xp, version, last_updated
            FROM skills WHERE user_id = ? AND skill_id = ?
            """,
            (user_id, skill_id),
        )
        if not rows:
            return None
        return SkillRecord.model_validate(rows[0])

    def get_all_skills(self, user_id: str) -> list[SkillRecord]:
        rows = self._query(
            """
            SELECT skill_id AS id, best, level, xp, version, last_updated
            FROM skills WHERE user_id = ?
            """,
            (user_id,),
        )
        order = {s: i for i, s in enumerate(SKILLS)}
        skills = [SkillRecord.model_validate(r) for r in rows]
        skills.sort(key=lambda s: order.get(s.id, len(order)))
        return skills

    def update_skill(
        self,
        user_id: str,
        skill_id: SkillName,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """Partial update of best/level/xp. With expected_version, writes only if the row is unchanged."""
        unknown = set(fields) - SKILL_FIELDS
        if unknown:
            raise ValueError(f"Unknown skill fields: {sorted(unknown)}")
        assignments = "".join(f"{k} = ?, " for k in fields)
        sql = (
            f"UPDATE skills SET {assignments}version = version + 1, last_updated = datetime('now') "
            "WHERE user_id = ? AND skill_id = ?"
        )
        params: list = [*fields.values(), user_id, skill_id]
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(expected_version)
        cur = self._execute(sql, params)
        if cur.rowcount == 1:
            return
        if self.get_skill(user_id, skill_id) is None:
            raise NotFoundError(f"skill {skill_id} not found for user {user_id}")
        raise WriteConflictError(
            f"skill {skill_id} for user {user_id} changed since version {expected_version}"
        )

    # --- PR audit log ---

    def log_personal_record(self, user_id: str, entry: PersonalRecordEntry) -> None:
        self._execute(
            "INSERT INTO personal_records (user_id, skill_id, value, delta) VALUES (?, ?, ?, ?)",
            (user_id, entry.skill_id, entry.value, entry.delta),
        )

    def get_personal_records(
        self, user_id: str, skill_id: Optional[SkillName] = None, limit: Optional[int] = None
    ) -> list[PersonalRecordEntry]:
        """Newest first."""
        query = "SELECT id, skill_id, value, delta, created_at FROM personal_records WHERE user_id = ?"
        params: list = [user_id]
        if skill_id:
            query += " AND skill_id = ?"
            params.append(skill_id)
        query += " ORDER BY id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        return [PersonalRecordEntry.model_validate(r) for r in self._query(query, params)]

    # --- Badges ---

    def unlock_badge(self, user_id: str, badge: Badge) -> Optional[Badge]:
        """Insert the badge; None if this user already holds it."""
        cur = self._execute(
            """
            INSERT OR IGNORE INTO badges (user_id, type, label, skill_id, level)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, badge.type, badge.label, badge.skill_id, badge.level),
        )
        if cur.rowcount == 0:
            return None
        rows = self._query(
            "SELECT id, type, label, skill_id, level, unlocked_at FROM badges WHERE id = ?",
            (cur.lastrowid,),
        )
        return Badge.model_validate(rows[0])

    def get_badges(self, user_id: str) -> list[Badge]:
        rows = self._query(
            """
            SELECT id, type, label, skill_id, level, unlocked_at
            FROM badges WHERE user_id = ? ORDER BY id DESC
            """,
            (user_id,),
        )
        return [Badge.model_validate(r) for r in rows]

    # --- Workouts ---

    def save_workout_session(self, user_id: str, session: WorkoutSession) -> WorkoutSession:
        self._execute(
            """
            INSERT INTO workouts (workout_id, user_id, workout_date, session_json)
            VALUES (?, ?, ?, ?)
            """,
            (session.id, user_id, session.workout_date.isoformat(), session.model_dump_json()),
        )
        return session

    def get_workout_sessions(self, user_id: str, limit: Optional[int] = None) -> list[WorkoutSession]:
        """Most recent workout date first."""
        query = """
            SELECT session_json FROM workouts WHERE user_id = ?
            ORDER BY workout_date DESC, created_at DESC
        """
        params: list = [user_id]
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        return [
            WorkoutSession.model_validate(json.loads(r["session_json"]))
            for r in self._query(query, params)
        ]

    # --- Daily quests ---

    def record_daily_quest(self, user_id: str, day: date) -> None:
        self._execute(
            "INSERT OR IGNORE INTO daily_quests (user_id, quest_date) VALUES (?, ?)",
            (user_id, day.isoformat()),
        )

    def get_daily_quest_dates(self, user_id: str) -> list[date]:
        rows = self._query(
            "SELECT quest_date FROM daily_quests WHERE user_id = ? ORDER BY quest_date",
            (user_id,),
        )
        return [date.fromisoformat(r["quest_date"]) for r in rows]

    # --- Leaderboard ---

    def get_leaderboard_entries(self) -> list[LeaderboardEntry]:
        rows = self._query(
            """
            SELECT u.user_id, u.display_name, u.overall_level, u.streak_count,
                   u.updated_at AS last_updated, COUNT(b.id) AS total_badges
            FROM users u LEFT JOIN badges b ON b.user_id = u.user_id
            GROUP BY u.user_id
            """
        )
        return [LeaderboardEntry.model_validate(r) for r in rows]
