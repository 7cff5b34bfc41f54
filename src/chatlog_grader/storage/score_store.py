"""SQLite-backed persistence for per-conversation score records."""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from chatlog_grader.config.defaults import DEFAULT_STORE_DB
from chatlog_grader.errors import RecordNotFoundError
from chatlog_grader.models.evaluation import ScoreResult
from chatlog_grader.models.performance import ScoreRecord

logger = logging.getLogger("chatlog_grader.storage.score_store")

_COLUMNS = (
    "record_id, subject_id, transcript, scenario, shift, conversation_time, "
    "coherence, politeness, relevance, resolution, created_at"
)


class ScoreStore:
    """Stores scored conversations per subject (agent) in a local SQLite file.

    Records are returned in insertion order. No transactional guarantee is
    made across a batch: each record either lands or it does not.
    """

    def __init__(self, db_path: str = DEFAULT_STORE_DB):
        """Initialize the score store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS score_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_id TEXT NOT NULL UNIQUE,
                    subject_id TEXT NOT NULL,
                    transcript TEXT NOT NULL,
                    scenario TEXT NOT NULL DEFAULT '',
                    shift TEXT,
                    conversation_time TEXT,
                    coherence REAL NOT NULL,
                    politeness REAL NOT NULL,
                    relevance REAL NOT NULL,
                    resolution REAL NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_records_subject_id
                ON score_records(subject_id)
            """)

            await db.commit()

        self._initialized = True
        logger.debug(f"Score store initialized at {self._db_path}")

    async def create_many(self, subject_id: str, results: Iterable[ScoreResult]) -> list[ScoreRecord]:
        """Store the successful results of a job for one subject.

        Failed results are skipped.

        Args:
            subject_id: Agent the conversations belong to.
            results: Results from a finished job.

        Returns:
            The records that were stored.
        """
        records = [
            self._to_record(subject_id, result)
            for result in results
            if result.succeeded
        ]
        return await self.add_records(records)

    async def add_records(self, records: Iterable[ScoreRecord]) -> list[ScoreRecord]:
        """Insert prepared records.

        Args:
            records: Records to insert.

        Returns:
            The records that were inserted successfully.
        """
        await self.initialize()

        stored = []
        async with aiosqlite.connect(self._db_path) as db:
            for record in records:
                try:
                    await db.execute(
                        f"INSERT INTO score_records ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            record.record_id,
                            record.subject_id,
                            record.transcript,
                            record.scenario,
                            record.shift,
                            record.conversation_time.isoformat() if record.conversation_time else None,
                            record.coherence,
                            record.politeness,
                            record.relevance,
                            record.resolution,
                            record.created_at.isoformat(),
                        ),
                    )
                except aiosqlite.Error as e:
                    logger.warning(f"Failed to store record {record.record_id}: {e}")
                    continue
                stored.append(record)
            await db.commit()

        logger.info(f"Stored {len(stored)} score records")
        return stored

    async def replace_for_subject(self, subject_id: str, results: Iterable[ScoreResult]) -> list[ScoreRecord]:
        """Delete every record of a subject, then store the new results.

        Args:
            subject_id: Agent whose records are replaced.
            results: Results from a finished job.

        Returns:
            The records that were stored.
        """
        removed = await self.delete_all_for_subject(subject_id)
        logger.info(f"Replaced {removed} existing records for {subject_id}")
        return await self.create_many(subject_id, results)

    async def list_for_subject(self, subject_id: str) -> list[ScoreRecord]:
        """Get all records of one subject, oldest first.

        Args:
            subject_id: Agent identifier.

        Returns:
            Records in insertion order.
        """
        await self.initialize()

        records = []
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT {_COLUMNS} FROM score_records WHERE subject_id = ? ORDER BY id ASC",
                (subject_id,),
            ) as cursor:
                async for row in cursor:
                    records.append(self._from_row(row))

        return records

    async def delete(self, record_id: str, subject_id: Optional[str] = None) -> None:
        """Delete a single record.

        Args:
            record_id: Record identifier.
            subject_id: If given, the record must belong to this subject.

        Raises:
            RecordNotFoundError: If no matching record exists.
        """
        await self.initialize()

        query = "DELETE FROM score_records WHERE record_id = ?"
        params: tuple = (record_id,)
        if subject_id is not None:
            query += " AND subject_id = ?"
            params = (record_id, subject_id)

        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(query, params)
            deleted = cursor.rowcount
            await db.commit()

        if deleted == 0:
            raise RecordNotFoundError(f"Score record not found: {record_id}")

        logger.info(f"Deleted score record {record_id}")

    async def delete_all_for_subject(self, subject_id: str) -> int:
        """Delete every record of one subject.

        Args:
            subject_id: Agent identifier.

        Returns:
            Number of records removed.
        """
        await self.initialize()

        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "DELETE FROM score_records WHERE subject_id = ?",
                (subject_id,),
            )
            deleted = cursor.rowcount
            await db.commit()

        return deleted

    @staticmethod
    def _to_record(subject_id: str, result: ScoreResult) -> ScoreRecord:
        scores = result.scores
        return ScoreRecord(
            record_id=uuid.uuid4().hex,
            subject_id=subject_id,
            transcript=result.transcript,
            scenario=result.scenario or "",
            shift=result.shift,
            conversation_time=result.timestamp,
            coherence=scores.coherence,
            politeness=scores.politeness,
            relevance=scores.relevance,
            resolution=scores.resolution,
            created_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _from_row(row: aiosqlite.Row) -> ScoreRecord:
        conversation_time = row["conversation_time"]
        return ScoreRecord(
            record_id=row["record_id"],
            subject_id=row["subject_id"],
            transcript=row["transcript"],
            scenario=row["scenario"],
            shift=row["shift"],
            conversation_time=datetime.fromisoformat(conversation_time) if conversation_time else None,
            coherence=row["coherence"],
            politeness=row["politeness"],
            relevance=row["relevance"],
            resolution=row["resolution"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
