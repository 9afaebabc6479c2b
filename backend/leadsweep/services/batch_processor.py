"""
Spend-capped batch processing shared by the verification, enrichment and
ads-scan stages.

run_batch() is a template method. Subclasses supply the stage name, the
pending-work filter, the per-item unit cost and the per-item work; the
base class owns the rest:

    caller checks -> config checks -> cancel check -> spend precondition
      -> lease -> scope rows -> pending filter (empty: done, nothing written) -> loop:
             pre-item cap check, process, persist spend + run log, commit
      -> stage status

Spend is persisted after every item, so an upstream error that aborts the
batch loses nothing that was already charged.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.orm import Session

from leadsweep.core.errors import CallerError, UpstreamError
from leadsweep.models.job import Job, StageStatus
from leadsweep.models.job_result import JobResult
from leadsweep.schemas.batch import StageBatchRequest, StageBatchResponse
from leadsweep.services.error_logger import ErrorLogger, get_error_logger
from leadsweep.services.job_cursor import get_job, stage_lease
from leadsweep.services.run_log import append_run_log

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 200


def clamp_batch_size(batch_size: Optional[int]) -> int:
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, 20 if batch_size is None else int(batch_size)))


@dataclass
class BatchRun:
    """Mutable spend/counter state for one invocation."""
    job: Job
    spend_actual: float
    spend_cap: float
    batch_size: int
    processed: int = 0
    cap_hit: bool = False
    counters: Dict[str, int] = field(default_factory=dict)

    def can_afford(self, cost: float) -> bool:
        return self.spend_actual + cost <= self.spend_cap + 1e-9

    def charge(self, cost: float) -> None:
        self.spend_actual += cost

    def bump(self, key: str, n: int = 1) -> None:
        self.counters[key] = self.counters.get(key, 0) + n


@dataclass
class ItemOutcome:
    processed: bool = True
    log: Dict[str, Any] = field(default_factory=dict)


class SpendCappedBatchProcessor(ABC):
    stage: str = ""
    response_model: Type[StageBatchResponse] = StageBatchResponse

    def __init__(self, db: Session, error_logger: Optional[ErrorLogger] = None):
        self.db = db
        self.error_logger = error_logger or get_error_logger()

    # ============================================
    # STAGE HOOKS
    # ============================================

    def validate(self, params: StageBatchRequest) -> None:
        """Provider configuration checks; raise ConfigurationError."""

    def begin_batch(self, params: StageBatchRequest) -> None:
        """Per-invocation state shared by select_pending and process_item."""

    @abstractmethod
    def select_pending(self, params: StageBatchRequest, rows: List[JobResult]) -> List[Any]:
        """Rows from the scope that still need work for this stage, in order."""

    @abstractmethod
    def unit_cost(self, params: StageBatchRequest) -> float:
        """Cost of one unit of work, used for the pre-item cap check."""

    @abstractmethod
    async def process_item(self, run: BatchRun, params: StageBatchRequest, item: Any) -> ItemOutcome:
        """Do the external work for one item and persist its result (uncommitted)."""

    def build_result(self, params: StageBatchRequest, run: Optional[BatchRun]) -> Dict[str, Any]:
        """Stage-specific response fields."""
        return {}

    def item_key(self, item: Any) -> Optional[str]:
        return getattr(item, "lead_id", None)

    # ============================================
    # TEMPLATE
    # ============================================

    def _respond(
        self,
        params: StageBatchRequest,
        done: bool,
        spend_actual: float,
        spend_cap: float,
        reason: Optional[str] = None,
        run: Optional[BatchRun] = None,
    ) -> StageBatchResponse:
        return self.response_model(
            done=done,
            spend_actual=round(spend_actual, 4),
            spend_cap=spend_cap,
            reason=reason,
            batch_size=clamp_batch_size(params.batch_size),
            **self.build_result(params, run),
        )

    def checkpoint(self, run: BatchRun) -> None:
        """Persist accumulated spend together with whatever the item wrote."""
        run.job.set_stage_value(self.stage, "spend_actual", round(run.spend_actual, 6))
        self.db.commit()

    async def run_batch(self, params: StageBatchRequest) -> StageBatchResponse:
        if not params.job_id:
            raise CallerError("jobId is required")
        spend_cap = float(params.spend_cap or 0)
        if spend_cap <= 0:
            raise CallerError("spendCap is required and must be > 0")

        self.validate(params)
        job = get_job(self.db, params.job_id)

        spend_actual = float(job.stage_value(self.stage, "spend_actual") or 0)
        if job.canceled:
            return self._respond(params, True, spend_actual, spend_cap, "job_canceled")

        if spend_actual >= spend_cap:
            return self._respond(params, True, spend_actual, spend_cap, "spend_cap_reached")

        with stage_lease(self.db, job.id, self.stage) as acquired:
            if not acquired:
                return self._respond(params, False, spend_actual, spend_cap, "batch_in_progress")
            return await self._run_locked(job, params, spend_cap)

    async def _run_locked(self, job: Job, params: StageBatchRequest, spend_cap: float) -> StageBatchResponse:
        self.db.refresh(job)
        if job.canceled:
            spend_actual = float(job.stage_value(self.stage, "spend_actual") or 0)
            return self._respond(params, True, spend_actual, spend_cap, "job_canceled")

        run = BatchRun(
            job=job,
            spend_actual=float(job.stage_value(self.stage, "spend_actual") or 0),
            spend_cap=spend_cap,
            batch_size=clamp_batch_size(params.batch_size),
        )
        self.begin_batch(params)
        pending_all = self.select_pending(params, self.scope_rows(params))
        if not pending_all:
            # Nothing left in this scope: repeat calls change nothing
            if job.stage_value(self.stage, "status") != StageStatus.COMPLETED.value:
                job.set_stage_value(self.stage, "status", StageStatus.COMPLETED.value)
                self.db.commit()
            return self._respond(params, True, run.spend_actual, spend_cap, "no_pending_work", run)

        job.set_stage_value(self.stage, "status", StageStatus.RUNNING.value)
        job.set_stage_value(self.stage, "spend_cap", spend_cap)
        self.db.commit()

        pending = pending_all[:run.batch_size]
        unit_cost = self.unit_cost(params)

        for item in pending:
            if not run.can_afford(unit_cost):
                run.cap_hit = True
                break

            before = run.spend_actual
            try:
                outcome = await self.process_item(run, params, item)
            except UpstreamError as e:
                self.error_logger.log_error(
                    job_id=job.id,
                    stage=self.stage,
                    error_type="upstream_error",
                    error_message=e.message,
                    provider=e.provider,
                    extra_data={"status": e.status, "lead_id": self.item_key(item)},
                )
                raise

            if outcome.processed:
                run.processed += 1
            append_run_log(
                self.db,
                job.id,
                f"{self.stage}_item",
                lead_id=self.item_key(item),
                cost=round(run.spend_actual - before, 6),
                spend_actual=round(run.spend_actual, 6),
                **outcome.log,
            )
            self.checkpoint(run)

        if run.spend_actual >= spend_cap:
            run.cap_hit = True
        drained = run.processed >= len(pending_all)
        done = run.processed == 0 or run.cap_hit or drained
        reason = "spend_cap_reached" if run.cap_hit else None

        append_run_log(
            self.db,
            job.id,
            f"{self.stage}_batch",
            pending=len(pending_all),
            processed=run.processed,
            spend_actual=round(run.spend_actual, 6),
            spend_cap=spend_cap,
            done=done,
            **run.counters,
        )
        job.set_stage_value(self.stage, "status", (StageStatus.COMPLETED if done else StageStatus.RUNNING).value)
        self.checkpoint(run)

        logger.info(
            f"Job {job.id} {self.stage}: processed={run.processed}/{len(pending_all)} "
            f"spend={run.spend_actual:.4f}/{spend_cap} done={done}"
        )
        return self._respond(params, done, run.spend_actual, spend_cap, reason, run)

    # ============================================
    # SCOPE
    # ============================================

    def scope_rows(self, params: StageBatchRequest) -> List[JobResult]:
        """
        Job results across the scoped jobs (default: just this job),
        optionally narrowed to selected leads, one row per lead.
        """
        scope = [j for j in params.scope_job_ids if j and j.strip()] or [params.job_id]
        query = self.db.query(JobResult).filter(JobResult.job_id.in_(scope))
        selected = [l for l in params.selected_lead_ids if l and l.strip()]
        if selected:
            query = query.filter(JobResult.lead_id.in_(selected))

        seen = set()
        rows = []
        for row in query.order_by(JobResult.created_at, JobResult.id).all():
            if row.lead_id in seen:
                continue
            seen.add(row.lead_id)
            rows.append(row)
        return rows
