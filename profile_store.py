"""SQLite persistence for fused needs profiles and their feature vectors."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from db_pool import SQLiteConnectionPool
from engines.needs_types import FusedNeedsProfile, NormalizedFeatureVector

logger = logging.getLogger(__name__)


def _timestamp(value: Optional[datetime]) -> str:
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class ProfileStore:
    """Stores one row per ``(learner_id, created_at)``; re-saving is a no-op."""

    def __init__(self, db_path: Optional[str] = None, max_connections: int = 5):
        self.db_path = db_path or os.getenv("DB_PATH", "data.db")
        self._pool = SQLiteConnectionPool(self.db_path, max_connections=max_connections)
        self.init()

    def init(self) -> None:
        self._exec(
            """
            CREATE TABLE IF NOT EXISTS needs_profiles (
                learner_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                profile TEXT NOT NULL,
                vector TEXT,
                model_source TEXT NOT NULL,
                PRIMARY KEY (learner_id, created_at)
            )
            """
        )
        self._exec(
            "CREATE INDEX IF NOT EXISTS idx_needs_profiles_recent "
            "ON needs_profiles (learner_id, created_at DESC)"
        )

    def close(self) -> None:
        self._pool.close_all()

    # ------------------------------------------------------------------
    def _exec(self, sql: str, params: Iterable = ()) -> None:
        with self._pool.get_connection() as con:
            con.execute(sql, tuple(params))
            con.commit()

    def _query(self, sql: str, params: Iterable = ()) -> list:
        with self._pool.get_connection() as con:
            return con.execute(sql, tuple(params)).fetchall()

    # ------------------------------------------------------------------
    def save_profile(
        self,
        learner_id: str,
        profile: FusedNeedsProfile,
        vector: Optional[NormalizedFeatureVector] = None,
        created_at: Optional[datetime] = None,
    ) -> str:
        """Persist ``profile``; returns the stored timestamp."""

        stamp = _timestamp(created_at)
        self._exec(
            """
            INSERT OR IGNORE INTO needs_profiles (learner_id, created_at, profile, vector, model_source)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                learner_id,
                stamp,
                json.dumps(profile.to_dict(), sort_keys=True),
                json.dumps(vector.to_dict(), sort_keys=True) if vector is not None else None,
                profile.model_source,
            ),
        )
        logger.debug("Stored needs profile for %s at %s", learner_id, stamp)
        return stamp

    def latest_profile(self, learner_id: str) -> Optional[FusedNeedsProfile]:
        rows = self._query(
            "SELECT profile FROM needs_profiles WHERE learner_id = ? ORDER BY created_at DESC LIMIT 1",
            (learner_id,),
        )
        if not rows:
            return None
        return FusedNeedsProfile.from_dict(json.loads(rows[0]["profile"]))

    def recent_vectors(self, learner_id: str, limit: int = 10) -> List[NormalizedFeatureVector]:
        """Most recent stored (unblended) feature vectors, newest first."""

        rows = self._query(
            """
            SELECT vector FROM needs_profiles
            WHERE learner_id = ? AND vector IS NOT NULL
            ORDER BY created_at DESC LIMIT ?
            """,
            (learner_id, int(limit)),
        )
        return [NormalizedFeatureVector.from_dict(json.loads(row["vector"])) for row in rows]
