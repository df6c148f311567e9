"""
Learner profile persistence.

Two backends implement the same ``load`` / ``save`` / ``delete`` surface:

- ``JsonProfileStore``: one JSON file per learner in ~/.cortex/profiles/
- ``SqlProfileStore``: a single ``learner_profiles`` table via SQLAlchemy

Both read through ``LearnerProfile.from_dict`` so out-of-range values are
clamped and logged rather than rejected.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from src.tutoring.errors import ProfileStoreError
from src.tutoring.profile import LearnerProfile

# Default profile directory
PROFILE_DIR = Path.home() / ".cortex" / "profiles"


class JsonProfileStore:
    """
    Stores each learner profile as ``{learner_id}.json`` with the id
    percent-encoded, so distinct ids never share a file.

    Unreadable or corrupted files load as ``None`` (with a warning) so the
    engine falls back to the default profile.
    """

    def __init__(self, profile_dir: Optional[Path] = None):
        self.profile_dir = Path(profile_dir) if profile_dir else PROFILE_DIR
        self.profile_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, learner_id: str) -> Path:
        return self.profile_dir / f"{quote(learner_id, safe='')}.json"

    def load(self, learner_id: str) -> Optional[LearnerProfile]:
        filepath = self._path(learner_id)
        if not filepath.exists():
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            return LearnerProfile.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, OSError) as e:
            logger.warning(f"Could not read profile {filepath.name}: {e}")
            return None

    def save(self, learner_id: str, profile: LearnerProfile) -> Path:
        filepath = self._path(learner_id)
        tmp = filepath.with_suffix(".json.tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(profile.to_dict(), f, indent=2)
            tmp.replace(filepath)
        except OSError as e:
            logger.error(f"Failed to save profile {learner_id}: {e}")
            raise ProfileStoreError(f"Failed to save profile {learner_id}: {e}") from e

        logger.info(f"Profile saved: {filepath}")
        return filepath

    def delete(self, learner_id: str) -> bool:
        filepath = self._path(learner_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False


class SqlProfileStore:
    """Profiles as JSON documents in a ``learner_profiles`` table."""

    def __init__(self, database_url: str = "", engine: Optional[Engine] = None):
        self.engine = engine or create_engine(database_url, pool_pre_ping=True)
        self._ensure_table()

    def _ensure_table(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text("""
                    CREATE TABLE IF NOT EXISTS learner_profiles (
                        learner_id VARCHAR(255) PRIMARY KEY,
                        profile_json TEXT NOT NULL,
                        dialogues_completed INTEGER NOT NULL DEFAULT 0,
                        updated_at VARCHAR(64) NOT NULL
                    )
                """))
        except SQLAlchemyError as e:
            raise ProfileStoreError(f"Could not prepare learner_profiles table: {e}") from e

    def load(self, learner_id: str) -> Optional[LearnerProfile]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT profile_json FROM learner_profiles WHERE learner_id = :learner_id"),
                    {"learner_id": learner_id},
                ).fetchone()
        except SQLAlchemyError as e:
            logger.error(f"Profile load failed for {learner_id}: {e}")
            raise ProfileStoreError(f"Profile load failed for {learner_id}: {e}") from e

        if row is None:
            return None

        try:
            return LearnerProfile.from_dict(json.loads(row[0]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored profile for {learner_id} is unreadable: {e}")
            return None

    def save(self, learner_id: str, profile: LearnerProfile) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO learner_profiles (learner_id, profile_json, dialogues_completed, updated_at)
                        VALUES (:learner_id, :profile_json, :dialogues_completed, :updated_at)
                        ON CONFLICT (learner_id) DO UPDATE SET
                            profile_json = excluded.profile_json,
                            dialogues_completed = excluded.dialogues_completed,
                            updated_at = excluded.updated_at
                    """),
                    {
                        "learner_id": learner_id,
                        "profile_json": json.dumps(profile.to_dict()),
                        "dialogues_completed": profile.dialogues_completed,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
        except SQLAlchemyError as e:
            logger.error(f"Profile save failed for {learner_id}: {e}")
            raise ProfileStoreError(f"Profile save failed for {learner_id}: {e}") from e

        logger.info(f"Profile saved: {learner_id} ({profile.dialogues_completed} dialogues)")

    def delete(self, learner_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM learner_profiles WHERE learner_id = :learner_id"),
                {"learner_id": learner_id},
            )
        return result.rowcount > 0


def build_profile_store(settings) -> JsonProfileStore | SqlProfileStore:
    """Pick the configured backend."""
    if settings.profile_backend == "sql":
        return SqlProfileStore(settings.database_url)
    return JsonProfileStore(settings.profile_dir)
