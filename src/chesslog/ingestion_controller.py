"""Resumable traversal of monthly archives into the game store."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from chesslog.batch_writer import BatchWriter
from chesslog.config import Settings
from chesslog.db.repositories import Repositories
from chesslog.deadline import Deadline
from chesslog.duplicate_filter import DuplicateFilter
from chesslog.enrich_game import enrich_game
from chesslog.errors import ChesscomApiError
from chesslog.game_record import GameRecord
from chesslog.utils import get_logger, to_int

logger = get_logger(__name__)


class IngestionMode(StrEnum):
    INCREMENTAL = "incremental"
    BACKFILL = "backfill"

    @property
    def operation(self) -> str:
        """Lock and checkpoint name for the mode."""
        return "fetch" if self is IngestionMode.INCREMENTAL else "backfill"


class ArchiveSource(Protocol):
    def fetch_archive_index(self) -> list[str]: ...

    def fetch_archive(self, archive_url: str) -> list[dict]: ...


class DeadlineLike(Protocol):
    def expired(self) -> bool: ...


class IngestionCursor(BaseModel):
    """Where an ingestion run stands; persisted as the job checkpoint.

    Attributes:
        mode: Traversal mode the cursor belongs to.
        archives: Archive urls in traversal order, snapshotted at start.
        archive_index: Index of the next archive to fetch.
        last_seen_ts: Incremental threshold; only games ending after it are new.
        buffer: Enriched records not yet flushed.
        records_processed: Game rows written so far in this run.
    """

    mode: IngestionMode
    archives: list[str] = Field(default_factory=list)
    archive_index: int = 0
    last_seen_ts: int | None = None
    buffer: list[GameRecord] = Field(default_factory=list)
    records_processed: int = 0


@dataclass(slots=True)
class StepResult:
    cursor: IngestionCursor
    complete: bool


@dataclass(slots=True)
class IngestionRunSummary:
    mode: str
    records_processed: int
    complete: bool
    checkpoint: dict | None
    duration_s: float

    def as_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode,
            "records_processed": self.records_processed,
            "complete": self.complete,
            "checkpoint": self.checkpoint,
            "duration_s": self.duration_s,
        }


class IngestionController:
    """Walk archives, enrich games and flush them in batches.

    Incremental runs go newest month first and stop at the first month with
    no game newer than the stored threshold. Backfill runs go oldest month
    first and keep everything the duplicate filter lets through.
    """

    def __init__(
        self,
        client: ArchiveSource,
        repositories: Repositories,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._repos = repositories
        self._settings = settings
        self._clock = clock
        self._dedupe = DuplicateFilter(repositories.games)
        self._writer = BatchWriter(repositories.games, repositories.ratings, repositories.queue)

    def start_cursor(self, mode: IngestionMode) -> IngestionCursor:
        """Snapshot the archive list and threshold for a fresh run."""
        archives = self._client.fetch_archive_index()
        if mode is IngestionMode.INCREMENTAL:
            archives = list(reversed(archives))
            last_seen_ts = self._repos.games.fetch_max_end_ts()
        else:
            last_seen_ts = None
        return IngestionCursor(mode=mode, archives=archives, last_seen_ts=last_seen_ts)

    def step(self, cursor: IngestionCursor, deadline: DeadlineLike) -> StepResult:
        """Advance ``cursor`` until the archives run out or the deadline passes.

        The cursor is updated in place, so after an exception it still
        reflects every flushed batch.
        """
        self._flush(cursor)
        while cursor.archive_index < len(cursor.archives):
            if deadline.expired():
                return StepResult(cursor=cursor, complete=False)
            archive_url = cursor.archives[cursor.archive_index]
            selected = self._select_games(cursor, self._client.fetch_archive(archive_url))
            cursor.archive_index += 1
            if cursor.mode is IngestionMode.INCREMENTAL and not selected:
                logger.info("No new games in %s; stopping archive scan", archive_url)
                cursor.archive_index = len(cursor.archives)
                break
            for raw in selected:
                record = self._enrich(raw)
                if record is None:
                    continue
                cursor.buffer.append(record)
                if len(cursor.buffer) >= self._settings.batch_size:
                    self._flush(cursor)
        self._flush(cursor)
        return StepResult(cursor=cursor, complete=True)

    def run(self, mode: IngestionMode | str) -> IngestionRunSummary:
        """Run one time-boxed invocation, resuming from the stored checkpoint.

        Raises:
            OperationLockedError: When the same mode is already running.
            ChesscomApiError: After saving the cursor, when the API gives up.
        """
        mode = IngestionMode(mode)
        operation = mode.operation
        deadline = Deadline(self._settings.job_time_budget_s, self._clock)
        with self._repos.lock(operation, self._settings.lock_ttl_s):
            cursor = self._load_cursor(mode)
            try:
                result = self.step(cursor, deadline)
            except ChesscomApiError:
                self._repos.checkpoints.save(operation, cursor.model_dump(mode="json"))
                logger.warning(
                    "Saved %s checkpoint at archive %s after API error",
                    operation,
                    cursor.archive_index,
                )
                raise
            if result.complete:
                self._repos.checkpoints.clear(operation)
                self._writer.finalize_order()
                checkpoint = None
            else:
                checkpoint = cursor.model_dump(mode="json")
                self._repos.checkpoints.save(operation, checkpoint)
        summary = IngestionRunSummary(
            mode=mode.value,
            records_processed=cursor.records_processed,
            complete=result.complete,
            checkpoint=checkpoint,
            duration_s=round(deadline.elapsed(), 3),
        )
        logger.info(
            "Ingestion %s: processed=%s complete=%s archives=%s/%s duration_s=%.1f",
            mode.value,
            summary.records_processed,
            summary.complete,
            cursor.archive_index,
            len(cursor.archives),
            summary.duration_s,
        )
        return summary

    def _load_cursor(self, mode: IngestionMode) -> IngestionCursor:
        stored = self._repos.checkpoints.load(mode.operation)
        if stored is not None:
            try:
                cursor = IngestionCursor.model_validate(stored)
            except ValidationError as exc:
                logger.warning("Discarding unreadable %s checkpoint: %s", mode.operation, exc)
            else:
                if cursor.mode is mode:
                    logger.info(
                        "Resuming %s at archive %s/%s",
                        mode.value,
                        cursor.archive_index,
                        len(cursor.archives),
                    )
                    return cursor
                logger.warning("Checkpoint mode mismatch for %s; starting fresh", mode.operation)
        return self.start_cursor(mode)

    def _select_games(self, cursor: IngestionCursor, games: list[dict]) -> list[dict]:
        def end_time(raw: dict) -> int:
            return to_int(raw.get("end_time")) or 0

        if cursor.mode is IngestionMode.BACKFILL:
            return sorted(games, key=end_time)
        threshold = cursor.last_seen_ts
        fresh = [raw for raw in games if threshold is None or end_time(raw) > threshold]
        return sorted(fresh, key=end_time, reverse=True)

    def _enrich(self, raw: dict) -> GameRecord | None:
        try:
            return enrich_game(raw, self._settings.username, self._settings)
        except ValueError as exc:
            logger.warning("Skipping unusable archive game: %s", exc)
            return None

    def _flush(self, cursor: IngestionCursor) -> None:
        if not cursor.buffer:
            return
        fresh = self._dedupe.filter(cursor.buffer)
        cursor.records_processed += self._writer.write(fresh)
        cursor.buffer = []
