"""Walk a plan in dependency order and reconcile it against a provider."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, FIRST_COMPLETED, wait
from typing import Any, Callable, Dict, Optional
from pydantic import BaseModel, Field
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential
from ..contracts.plan import Plan, Operation, OperationKind
from ..contracts.run_result import (
    RunResult,
    RunOutcome,
    OperationResult,
    OperationStatus,
    SUCCESS_STATUSES,
)
from ..model.models import StateRecord, RecordStatus
from ..model.references import resolve_spec, spec_hash
from ..model.schema import output_attributes
from ..providers.base import ProviderCapability
from ..state.store import StateStore
from ..utils.errors import ProviderError, ResolutionError, BlockedError
from ..utils.logging import get_logger

logger = get_logger("execution.executor")


class ApplyOptions(BaseModel):
    """Tuning for a single apply run."""
    max_workers: int = Field(default=4, ge=1, description="Operations allowed in flight at once")
    max_attempts: int = Field(default=5, ge=1, description="Provider calls per operation, including the first")
    backoff_base: float = Field(default=0.5, ge=0, description="Exponential backoff multiplier in seconds")
    backoff_max: float = Field(default=30.0, ge=0, description="Upper bound for a single backoff sleep")
    deadline: Optional[float] = Field(default=None, gt=0, description="Seconds after which the run is cancelled")
    poll_interval: float = Field(default=0.05, gt=0, description="How often cancellation is checked while waiting")


class _IncompleteResult(ProviderError):
    """Provider reported success without a usable id or full attribute set."""

    def __init__(self, message: str, provider_id: Optional[str]):
        super().__init__(message, retryable=False)
        self.provider_id = provider_id


class _Job:
    """Inputs prepared on the scheduling thread for one operation."""

    def __init__(self, op: Operation, record: Optional[StateRecord],
                 resolved_spec: Optional[Dict[str, Any]] = None, resolved_hash: Optional[str] = None):
        self.op = op
        self.record = record
        self.resolved_spec = resolved_spec
        self.resolved_hash = resolved_hash


class _Outcome:
    def __init__(self, status: OperationStatus, attempts: int = 0, provider_id: Optional[str] = None,
                 attributes: Optional[Dict[str, Any]] = None, error: Optional[str] = None):
        self.status = status
        self.attempts = attempts
        self.provider_id = provider_id
        self.attributes = attributes or {}
        self.error = error


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.retryable


class Reconciler:
    """
    Executes a Plan against a provider, persisting state per operation.

    Operations whose prerequisites have all succeeded are submitted to a
    worker pool; an operation never starts while one of its prerequisites is
    in flight. Results are applied on the scheduling thread, so state writes
    go through a single writer. A failed operation blocks every operation
    that transitively waits on it; independent branches keep going.
    """

    def __init__(
        self,
        provider: ProviderCapability,
        state_store: StateStore,
        options: Optional[ApplyOptions] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.provider = provider
        self.state_store = state_store
        self.options = options or ApplyOptions()
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep
        self._write_lock = threading.Lock()

    def apply(self, plan: Plan) -> RunResult:
        """Reconcile every operation of the plan and return the structured outcome."""
        records = self.state_store.load()
        statuses: Dict[str, OperationStatus] = {op.key: OperationStatus.PENDING for op in plan.operations}
        results: Dict[str, OperationResult] = {}
        in_flight = {}
        cancelled = False
        started = time.monotonic()

        logger.info(f"Applying plan with {len(plan.operations)} operations (workers: {self.options.max_workers})")

        with ThreadPoolExecutor(max_workers=self.options.max_workers, thread_name_prefix="infraweave-apply") as pool:
            while True:
                if not cancelled and self._cancellation_requested(started):
                    cancelled = True
                    logger.warning(f"Run cancelled; waiting for {len(in_flight)} in-flight operation(s)")

                if not cancelled:
                    for op in plan.operations:
                        if statuses[op.key] != OperationStatus.PENDING or not self._is_ready(op, statuses):
                            continue
                        job = self._prepare(op, plan, records)
                        if isinstance(job, _Outcome):
                            self._finish(op, None, job, plan, records, statuses, results)
                            continue
                        statuses[op.key] = OperationStatus.APPLYING
                        logger.debug(f"Dispatching {op.kind.value} {op.declaration_id}")
                        in_flight[pool.submit(self._execute, job)] = job

                if not in_flight:
                    break

                try:
                    done, _ = wait(list(in_flight), timeout=self.options.poll_interval, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    logger.warning("Interrupted; no new operations will be started")
                    self.cancel_event.set()
                    continue

                for future in done:
                    job = in_flight.pop(future)
                    self._finish(job.op, job, future.result(), plan, records, statuses, results)

        for op in plan.operations:
            if statuses[op.key] == OperationStatus.PENDING:
                status = OperationStatus.CANCELLED if cancelled else OperationStatus.BLOCKED
                statuses[op.key] = status
                results[op.key] = OperationResult(
                    key=op.key, declaration_id=op.declaration_id, kind=op.kind, status=status
                )

        ordered = [results[op.key] for op in plan.operations]
        if cancelled:
            outcome = RunOutcome.CANCELLED
        elif any(r.status in (OperationStatus.FAILED, OperationStatus.BLOCKED) for r in ordered):
            outcome = RunOutcome.FAILED
        else:
            outcome = RunOutcome.SUCCESS

        run = RunResult(outcome=outcome, results=ordered)
        logger.info(f"Run finished: {outcome.value} {run.counts()}")
        return run

    def _cancellation_requested(self, started: float) -> bool:
        if self.cancel_event.is_set():
            return True
        if self.options.deadline is not None and time.monotonic() - started >= self.options.deadline:
            logger.warning(f"Deadline of {self.options.deadline}s reached")
            self.cancel_event.set()
            return True
        return False

    @staticmethod
    def _is_ready(op: Operation, statuses: Dict[str, OperationStatus]) -> bool:
        return all(statuses.get(key) in SUCCESS_STATUSES for key in op.after if key in statuses)

    def _prepare(self, op: Operation, plan: Plan, records: Dict[str, StateRecord]):
        """Resolve references against applied dependencies; returns a _Job or a failed _Outcome."""
        record = records.get(op.declaration_id)
        if op.kind == OperationKind.DELETE:
            return _Job(op, record)

        declaration = plan.declarations[op.declaration_id]
        attributes = {
            dep: records[dep].resolved_attributes
            for dep in declaration.reference_ids()
            if dep in records and records[dep].is_applied
        }
        try:
            resolved = resolve_spec(declaration.spec, attributes)
        except ResolutionError as e:
            logger.error(f"{op.kind.value} {op.declaration_id} failed: {e}")
            return _Outcome(OperationStatus.FAILED, error=str(e))
        return _Job(op, record, resolved, spec_hash(op.resource_type, resolved))

    def _retrying(self, op: Operation) -> Retrying:
        def log_retry(retry_state):
            logger.warning(
                f"{op.kind.value} {op.declaration_id} attempt {retry_state.attempt_number} failed "
                f"({retry_state.outcome.exception()}); retrying in {retry_state.next_action.sleep:.2f}s"
            )

        return Retrying(
            stop=stop_after_attempt(self.options.max_attempts),
            wait=wait_exponential(multiplier=self.options.backoff_base, max=self.options.backoff_max),
            retry=retry_if_exception(_is_retryable),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True
        )

    def _execute(self, job: _Job) -> _Outcome:
        """Run on a worker thread: call the provider with retries."""
        op = job.op
        if (
            op.kind == OperationKind.UPDATE
            and op.conditional
            and job.record is not None
            and job.record.is_applied
            and job.resolved_hash == job.record.last_applied_spec_hash
        ):
            logger.info(f"{op.declaration_id} unchanged after dependency update; skipping provider call")
            return _Outcome(OperationStatus.UNCHANGED, provider_id=job.record.provider_assigned_id)

        attempts = 0

        def call():
            nonlocal attempts
            attempts += 1
            return self._invoke(job)

        try:
            outcome = self._retrying(op)(call)
        except ProviderError as e:
            logger.error(f"{op.kind.value} {op.declaration_id} failed after {attempts} attempt(s): {e}")
            return _Outcome(
                OperationStatus.FAILED,
                attempts=attempts,
                provider_id=getattr(e, "provider_id", None),
                error=str(e)
            )
        except Exception as e:
            logger.error(f"Unexpected provider error on {op.declaration_id}: {e}", exc_info=True)
            return _Outcome(OperationStatus.FAILED, attempts=attempts, error=f"unexpected provider error: {e}")

        outcome.attempts = attempts
        return outcome

    def _invoke(self, job: _Job) -> _Outcome:
        op = job.op
        if op.kind == OperationKind.CREATE:
            result = self.provider.create(op.resource_type, job.resolved_spec)
            self._check_complete(op.resource_type, result.provider_id, result.attributes)
            return _Outcome(OperationStatus.APPLIED, provider_id=result.provider_id, attributes=result.attributes)

        if op.kind == OperationKind.UPDATE:
            provider_id = job.record.provider_assigned_id if job.record else None
            if not provider_id:
                raise ProviderError(f"No provider id recorded for '{op.declaration_id}'; cannot update", retryable=False)
            attributes = self.provider.update(op.resource_type, provider_id, job.resolved_spec)
            self._check_complete(op.resource_type, provider_id, attributes)
            return _Outcome(OperationStatus.APPLIED, provider_id=provider_id, attributes=attributes)

        provider_id = job.record.provider_assigned_id if job.record else None
        if provider_id:
            self.provider.delete(op.resource_type, provider_id)
        else:
            logger.info(f"{op.declaration_id} was never created at the provider; dropping its record")
        return _Outcome(OperationStatus.DELETED, provider_id=provider_id)

    @staticmethod
    def _check_complete(resource_type: str, provider_id: Optional[str], attributes: Dict[str, Any]) -> None:
        if not provider_id:
            raise _IncompleteResult("Provider returned an empty resource id", provider_id)
        missing = [name for name in output_attributes(resource_type) if name not in attributes]
        if missing:
            raise _IncompleteResult(
                f"Provider returned incomplete attributes for {resource_type} {provider_id}: missing {', '.join(missing)}",
                provider_id
            )

    def _finish(self, op: Operation, job: Optional[_Job], outcome: _Outcome, plan: Plan,
                records: Dict[str, StateRecord], statuses: Dict[str, OperationStatus],
                results: Dict[str, OperationResult]) -> None:
        """Apply one outcome to state and the run bookkeeping (scheduling thread only)."""
        with self._write_lock:
            if outcome.status == OperationStatus.APPLIED:
                declaration = plan.declarations[op.declaration_id]
                record = StateRecord(
                    declaration_id=op.declaration_id,
                    resource_type=op.resource_type,
                    status=RecordStatus.APPLIED,
                    last_applied_spec_hash=job.resolved_hash,
                    provider_assigned_id=outcome.provider_id,
                    resolved_attributes=outcome.attributes,
                    dependencies=sorted(declaration.dependency_ids())
                )
                self.state_store.save(op.declaration_id, record)
                records[op.declaration_id] = record
            elif outcome.status == OperationStatus.DELETED:
                self.state_store.delete(op.declaration_id)
                records.pop(op.declaration_id, None)
            elif outcome.status == OperationStatus.FAILED:
                record = self._failed_record(op, plan, records.get(op.declaration_id), outcome)
                self.state_store.save(op.declaration_id, record)
                records[op.declaration_id] = record

        statuses[op.key] = outcome.status
        results[op.key] = OperationResult(
            key=op.key,
            declaration_id=op.declaration_id,
            kind=op.kind,
            status=outcome.status,
            attempts=outcome.attempts,
            error=outcome.error,
            provider_id=outcome.provider_id
        )

        if outcome.status != OperationStatus.FAILED:
            logger.info(f"{op.kind.value} {op.declaration_id}: {outcome.status.value}")
            return

        for key in sorted(plan.blocked_by([op.key])):
            if statuses.get(key) != OperationStatus.PENDING:
                continue
            blocked = plan.get(key)
            statuses[key] = OperationStatus.BLOCKED
            results[key] = OperationResult(
                key=key,
                declaration_id=blocked.declaration_id,
                kind=blocked.kind,
                status=OperationStatus.BLOCKED,
                error=str(BlockedError(blocked.declaration_id, op.declaration_id)),
                blocked_by=op.declaration_id
            )
            logger.warning(f"{blocked.kind.value} {blocked.declaration_id}: Blocked by {op.declaration_id}")

    @staticmethod
    def _failed_record(op: Operation, plan: Plan, previous: Optional[StateRecord], outcome: _Outcome) -> StateRecord:
        if previous is not None and previous.provider_assigned_id and op.kind != OperationKind.CREATE:
            return previous.model_copy(update={"status": RecordStatus.FAILED, "last_error": outcome.error})

        declaration = plan.declarations.get(op.declaration_id)
        dependencies = sorted(declaration.dependency_ids()) if declaration else (previous.dependencies if previous else [])
        return StateRecord(
            declaration_id=op.declaration_id,
            resource_type=op.resource_type,
            status=RecordStatus.FAILED,
            provider_assigned_id=outcome.provider_id,
            dependencies=dependencies,
            last_error=outcome.error
        )


def apply(
    plan: Plan,
    provider: ProviderCapability,
    state_store: StateStore,
    options: Optional[ApplyOptions] = None,
    cancel_event: Optional[threading.Event] = None
) -> RunResult:
    """Execute a plan against a provider, writing state to an open store as it goes."""
    return Reconciler(provider, state_store, options=options, cancel_event=cancel_event).apply(plan)
