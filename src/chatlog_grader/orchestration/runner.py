"""Main orchestration runner for chatlog-grader."""

import logging
from typing import Optional, Sequence

from chatlog_grader.config.models import GraderConfig
from chatlog_grader.models.enums import RunState
from chatlog_grader.models.evaluation import EvaluationItem, EvaluationJob
from chatlog_grader.models.performance import PerformanceMetrics, ScoreRecord
from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.orchestrator import BatchOrchestrator, SnapshotListener
from chatlog_grader.orchestration.progress import ProgressTracker
from chatlog_grader.performance.aggregator import ScoreAggregator
from chatlog_grader.scoring.factory import create_scoring_client
from chatlog_grader.scoring.protocol import ScoringClient
from chatlog_grader.storage.score_store import ScoreStore

logger = logging.getLogger("chatlog_grader.orchestration.runner")


class EvaluationRunner:
    """Wires configuration, scoring client, orchestrator and score store."""

    def __init__(
        self,
        config: GraderConfig,
        scoring_client: Optional[ScoringClient] = None,
        store: Optional[ScoreStore] = None,
        progress_tracker: Optional[ProgressTracker] = None,
    ):
        """Initialize the evaluation runner.

        Args:
            config: Grader configuration.
            scoring_client: Scoring client (created from config on first use).
            store: Score store (opened at ``config.store_path`` if omitted).
            progress_tracker: Progress display for evaluation runs.
        """
        self._config = config
        self._scoring_client = scoring_client
        self._store = store or ScoreStore(config.store_path)
        self._progress_tracker = progress_tracker
        self._aggregator = ScoreAggregator(
            weights=config.aggregation.weights,
            strict_scale=config.aggregation.strict_resolution_scale,
        )

    @property
    def store(self) -> ScoreStore:
        return self._store

    async def _initialize(self) -> None:
        """Initialize components lazily."""
        if self._scoring_client is None:
            self._scoring_client = create_scoring_client(self._config.scoring)
            logger.info(f"Using scoring model: {self._scoring_client.model_name}")

        if self._progress_tracker is None:
            self._progress_tracker = ProgressTracker(
                show_progress=self._config.progress.show_progress,
                eta_refresh_seconds=self._config.progress.eta_refresh_seconds,
            )

        await self._store.initialize()

    def create_orchestrator(self) -> BatchOrchestrator:
        """Build an orchestrator bound to this runner's client and config."""
        return BatchOrchestrator(
            scoring_client=self._scoring_client,
            progress_tracker=self._progress_tracker,
            config=self._config,
        )

    async def evaluate(
        self,
        items: Sequence[EvaluationItem],
        subject_id: str,
        replace: bool = True,
        controller: Optional[RunController] = None,
        listener: Optional[SnapshotListener] = None,
    ) -> EvaluationJob:
        """Evaluate chatlogs for one agent and store the scored ones.

        Results are stored only when the job completes; a cancelled job
        stores nothing.

        Args:
            items: Chatlogs to evaluate.
            subject_id: Agent the chatlogs belong to.
            replace: Delete the agent's existing records before storing.
            controller: Optional pause/resume/cancel gate.
            listener: Optional callback receiving every JobSnapshot.

        Returns:
            The finished EvaluationJob.

        Raises:
            NoInputItemsError: If ``items`` is empty.
            AllItemsFailedError: If no chatlog was scored.
        """
        await self._initialize()

        orchestrator = self.create_orchestrator()
        if listener is not None:
            orchestrator.add_listener(listener)

        logger.info(f"Starting evaluation of {len(items)} chatlogs for {subject_id}")
        job = await orchestrator.run(items, controller=controller)

        if job.state != RunState.COMPLETED:
            logger.info(f"Job {job.job_id} {job.state.value}; nothing stored")
            return job

        if replace:
            stored = await self._store.replace_for_subject(subject_id, job.results)
        else:
            stored = await self._store.create_many(subject_id, job.results)

        logger.info(f"Saved {len(stored)} evaluations for {subject_id}")
        return job

    async def records(self, subject_id: str) -> list[ScoreRecord]:
        """Stored records of one agent, oldest first."""
        await self._store.initialize()
        return await self._store.list_for_subject(subject_id)

    async def performance(self, subject_id: str) -> PerformanceMetrics:
        """Aggregate the stored records of one agent.

        Args:
            subject_id: Agent identifier.

        Returns:
            PerformanceMetrics for the agent.

        Raises:
            NoDataError: If the agent has no stored records.
        """
        records = await self.records(subject_id)
        return self._aggregator.aggregate(records)

    async def close(self) -> None:
        """Release the scoring client's resources."""
        if self._scoring_client is not None:
            await self._scoring_client.aclose()
