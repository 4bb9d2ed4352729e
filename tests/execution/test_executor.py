"""Tests for the reconciler."""

import threading
import time
import pytest
from infraweave import apply_file, prepare
from infraweave.contracts.run_result import OperationStatus, RunOutcome
from infraweave.execution.executor import ApplyOptions, Reconciler
from infraweave.graph.dependency_graph import build_graph
from infraweave.model.models import Reference, RecordStatus
from infraweave.planning.planner import plan
from infraweave.providers.base import ProviderResult
from infraweave.providers.memory import InMemoryProvider
from infraweave.state.store import JsonFileStateStore, MemoryStateStore


def web_stack(cidr="10.0.0.0/16"):
    return [
        {"id": "net", "type": "network", "spec": {"cidr_block": cidr}},
        {
            "id": "db",
            "type": "managed-database",
            "spec": {"engine": "postgres", "instance_class": "small", "network_id": Reference.parse("net.id")},
        },
        {
            "id": "svc",
            "type": "compute-service",
            "spec": {"image": "web:1", "cpu": 256, "memory": 512, "db_host": Reference.parse("db.endpoint")},
        },
    ]


class SimulatedCrash(BaseException):
    """Stands in for the process dying mid-run."""


class CrashingProvider(InMemoryProvider):
    """Memory provider that dies when asked to create one resource type."""

    def __init__(self, crash_on):
        super().__init__()
        self.crash_on = crash_on

    def create(self, resource_type, spec):
        if resource_type == self.crash_on:
            raise SimulatedCrash()
        return super().create(resource_type, spec)


class TrackingProvider(InMemoryProvider):
    """Memory provider that records which resource types are in flight together."""

    def __init__(self, delay=0.05):
        super().__init__()
        self.delay = delay
        self.in_flight = []
        self.snapshots = []
        self.max_in_flight = 0
        self._tracking = threading.Lock()

    def create(self, resource_type, spec):
        with self._tracking:
            self.in_flight.append(resource_type)
            self.snapshots.append(list(self.in_flight))
            self.max_in_flight = max(self.max_in_flight, len(self.in_flight))
        try:
            time.sleep(self.delay)
            return super().create(resource_type, spec)
        finally:
            with self._tracking:
                self.in_flight.remove(resource_type)


@pytest.fixture
def store():
    return MemoryStateStore().open()


@pytest.fixture
def provider():
    return InMemoryProvider()


def run(provider, store, declarations, sleeps=None, **options):
    reconciler = Reconciler(
        provider,
        store,
        options=ApplyOptions(**options),
        sleep=sleeps.append if sleeps is not None else (lambda _: None),
    )
    return reconciler.apply(plan(prepare(declarations), store.load()))


class TestApply:
    """Test successful reconciliation."""

    def test_creates_everything_and_records_state(self, provider, store):
        result = run(provider, store, web_stack())

        assert result.outcome == RunOutcome.SUCCESS
        assert [r.status for r in result.results] == [OperationStatus.APPLIED] * 3
        assert [call[1] for call in provider.calls_for("create")] == [
            "network", "managed-database", "compute-service"
        ]

        records = store.load()
        assert all(record.status == RecordStatus.APPLIED for record in records.values())
        assert records["db"].dependencies == ["net"]
        assert records["db"].provider_assigned_id == result.get("db").provider_id

    def test_references_are_resolved_before_provider_call(self, provider, store):
        run(provider, store, web_stack())

        records = store.load()
        db = provider.resources[records["db"].provider_assigned_id]
        assert db["spec"]["network_id"] == records["net"].provider_assigned_id
        svc = provider.resources[records["svc"].provider_assigned_id]
        assert svc["spec"]["db_host"] == records["db"].resolved_attributes["endpoint"]

    def test_second_run_is_noop(self, provider, store):
        run(provider, store, web_stack())
        calls = len(provider.calls)

        follow_up = plan(prepare(web_stack()), store.load())

        assert follow_up.is_empty
        assert Reconciler(provider, store).apply(follow_up).outcome == RunOutcome.SUCCESS
        assert len(provider.calls) == calls

    def test_destroy_removes_records(self, provider, store):
        run(provider, store, web_stack())

        result = Reconciler(provider, store).apply(plan(build_graph([]), store.load()))

        assert result.outcome == RunOutcome.SUCCESS
        assert result.counts()["Deleted"] == 3
        assert store.load() == {}
        assert provider.resources == {}
        assert [call[1] for call in provider.calls_for("delete")] == [
            "compute-service", "managed-database", "network"
        ]

    def test_unchanged_dependents_skip_provider(self, provider, store):
        """A dependency update that leaves referenced attributes alone does not touch dependents."""
        run(provider, store, web_stack())

        result = run(provider, store, web_stack(cidr="10.9.0.0/16"))

        assert result.get("net").status == OperationStatus.APPLIED
        assert result.get("db").status == OperationStatus.UNCHANGED
        assert result.get("svc").status == OperationStatus.UNCHANGED
        assert [call[1] for call in provider.calls_for("update")] == ["network"]
        assert store.load()["net"].resolved_attributes["cidr_block"] == "10.9.0.0/16"

    def test_parallel_independent_branches(self, provider, store):
        declarations = [
            {"id": f"logs-{index}", "type": "log-group", "spec": {"name": f"logs-{index}"}}
            for index in range(8)
        ]

        result = run(provider, store, declarations, max_workers=4)

        assert result.outcome == RunOutcome.SUCCESS
        assert len(store.load()) == 8


class TestFailures:
    """Test failure handling and blocking."""

    def test_failure_blocks_dependents_without_provider_calls(self, provider, store):
        provider.inject_failure("create", "managed-database", message="quota exceeded")

        result = run(provider, store, web_stack())

        assert result.outcome == RunOutcome.FAILED
        assert result.get("net").status == OperationStatus.APPLIED
        assert result.get("db").status == OperationStatus.FAILED
        assert result.get("db").error == "quota exceeded"
        assert result.get("svc").status == OperationStatus.BLOCKED
        assert result.get("svc").blocked_by == "db"
        assert provider.calls_for("create")[-1][1] == "managed-database"
        assert not [call for call in provider.calls if call[1] == "compute-service"]

        records = store.load()
        assert records["net"].status == RecordStatus.APPLIED
        assert records["db"].status == RecordStatus.FAILED
        assert records["db"].last_error == "quota exceeded"
        assert "svc" not in records

    def test_independent_branch_continues(self, provider, store):
        declarations = web_stack() + [{"id": "logs", "type": "log-group", "spec": {"name": "app"}}]
        provider.inject_failure("create", "network")

        result = run(provider, store, declarations)

        assert result.get("logs").status == OperationStatus.APPLIED
        assert result.blocking_chains() == {"net": ["db", "svc"]}

    def test_retryable_error_is_retried_with_backoff(self, provider, store):
        provider.inject_failure("create", "network", retryable=True, times=2, message="throttled")
        sleeps = []

        result = run(provider, store, web_stack()[:1], sleeps=sleeps, backoff_base=1.0, backoff_max=10.0)

        assert result.outcome == RunOutcome.SUCCESS
        assert result.get("net").attempts == 3
        assert len(sleeps) == 2
        assert sleeps[0] <= sleeps[1] <= 10.0

    def test_retries_are_bounded(self, provider, store):
        provider.inject_failure("create", "network", retryable=True, message="throttled")
        sleeps = []

        result = run(provider, store, web_stack()[:1], sleeps=sleeps, max_attempts=3)

        assert result.get("net").status == OperationStatus.FAILED
        assert result.get("net").attempts == 3
        assert len(sleeps) == 2

    def test_non_retryable_error_is_not_retried(self, provider, store):
        provider.inject_failure("create", "network", retryable=False)
        sleeps = []

        result = run(provider, store, web_stack()[:1], sleeps=sleeps)

        assert result.get("net").attempts == 1
        assert sleeps == []

    def test_failed_create_is_retried_on_next_run(self, provider, store):
        provider.inject_failure("create", "managed-database", times=1)
        run(provider, store, web_stack())

        result = run(provider, store, web_stack())

        assert result.outcome == RunOutcome.SUCCESS
        assert [r.key for r in result.results] == ["create:db", "create:svc"]

    def test_incomplete_attributes_fail_but_keep_provider_id(self, store):
        class PartialProvider(InMemoryProvider):
            def create(self, resource_type, spec):
                return ProviderResult(provider_id="network-partial", attributes={"id": "network-partial"})

        result = run(PartialProvider(), store, web_stack()[:1])

        assert result.get("net").status == OperationStatus.FAILED
        assert "incomplete attributes" in result.get("net").error
        record = store.load()["net"]
        assert record.status == RecordStatus.FAILED
        assert record.provider_assigned_id == "network-partial"

    def test_unexpected_exception_fails_operation(self, store):
        class BrokenProvider(InMemoryProvider):
            def create(self, resource_type, spec):
                raise RuntimeError("boom")

        result = run(BrokenProvider(), store, web_stack()[:1])

        assert result.get("net").status == OperationStatus.FAILED
        assert "boom" in result.get("net").error

    def test_failed_update_blocks_delete_of_former_dependency(self, provider, store):
        """A resource is not deleted while something may still point at it."""
        run(provider, store, web_stack())
        provider.inject_failure("update", "compute-service", message="image not found")
        repointed = web_stack()
        repointed[2]["spec"]["db_host"] = "db.external.example"

        result = run(provider, store, [repointed[0], repointed[2]])

        assert result.get("svc").status == OperationStatus.FAILED
        assert result.get("db").status == OperationStatus.BLOCKED
        assert result.get("db").blocked_by == "svc"
        assert provider.calls_for("delete") == []
        assert store.load()["db"].status == RecordStatus.APPLIED


class TestConcurrency:
    """Test what may be in flight at the same time."""

    def test_independent_operations_overlap(self, store):
        provider = TrackingProvider()
        declarations = [
            {"id": f"logs-{index}", "type": "log-group", "spec": {"name": f"logs-{index}"}}
            for index in range(6)
        ]

        result = run(provider, store, declarations, max_workers=3)

        assert result.outcome == RunOutcome.SUCCESS
        assert provider.max_in_flight > 1
        assert provider.max_in_flight <= 3

    def test_dependent_never_overlaps_its_dependency(self, store):
        provider = TrackingProvider()
        declarations = web_stack() + [
            {"id": f"logs-{index}", "type": "log-group", "spec": {"name": f"logs-{index}"}}
            for index in range(3)
        ]

        result = run(provider, store, declarations, max_workers=4)

        assert result.outcome == RunOutcome.SUCCESS
        dependent_pairs = {("managed-database", "network"), ("compute-service", "managed-database")}
        for snapshot in provider.snapshots:
            for dependent, dependency in dependent_pairs:
                assert not (dependent in snapshot and dependency in snapshot)

    def test_single_worker_runs_one_at_a_time(self, store):
        provider = TrackingProvider()
        declarations = [
            {"id": f"logs-{index}", "type": "log-group", "spec": {"name": f"logs-{index}"}}
            for index in range(3)
        ]

        run(provider, store, declarations, max_workers=1)

        assert provider.max_in_flight == 1


class TestCrashSafety:
    """Test that completed work survives a crash."""

    def test_completed_operations_survive_crash(self, tmp_path):
        state_path = tmp_path / "state.json"
        provider = CrashingProvider(crash_on="compute-service")

        with JsonFileStateStore(str(state_path)) as store:
            with pytest.raises(SimulatedCrash):
                run(provider, store, web_stack())

        with JsonFileStateStore(str(state_path)) as reopened:
            records = reopened.load()
            assert sorted(records) == ["db", "net"]
            assert all(record.status == RecordStatus.APPLIED for record in records.values())

            resumed = plan(prepare(web_stack()), records)
            assert resumed.keys() == ["create:svc"]


class TestCancellation:
    """Test cancellation and deadlines."""

    def test_cancel_before_start(self, provider, store):
        cancel = threading.Event()
        cancel.set()

        result = Reconciler(provider, store, cancel_event=cancel).apply(plan(prepare(web_stack()), {}))

        assert result.outcome == RunOutcome.CANCELLED
        assert result.counts()["Cancelled"] == 3
        assert provider.calls == []
        assert store.load() == {}

    def test_in_flight_operation_completes_after_cancel(self, store):
        cancel = threading.Event()

        class CancellingProvider(InMemoryProvider):
            def create(self, resource_type, spec):
                cancel.set()
                return super().create(resource_type, spec)

        provider = CancellingProvider()
        result = Reconciler(provider, store, cancel_event=cancel).apply(plan(prepare(web_stack()), {}))

        assert result.outcome == RunOutcome.CANCELLED
        assert result.get("net").status == OperationStatus.APPLIED
        assert result.get("db").status == OperationStatus.CANCELLED
        assert result.get("svc").status == OperationStatus.CANCELLED
        assert list(store.load()) == ["net"]


class TestApplyFile:
    """Test the file-based entry point."""

    def test_apply_file_round_trip(self, tmp_path, provider, store):
        path = tmp_path / "stack.yaml"
        path.write_text(
            "parameters:\n  name: app\n"
            "resources:\n"
            "  - id: logs\n    type: log-group\n    spec:\n      name: !param name\n"
            "  - id: alarm\n    type: alarm\n    spec:\n      metric_name: errors\n      threshold: 1\n"
            "      log_group: !ref logs.name\n",
            encoding="utf-8"
        )

        first_plan, first = apply_file(str(path), provider, store)
        second_plan, second = apply_file(str(path), provider, store)

        assert first_plan.keys() == ["create:logs", "create:alarm"]
        assert first.outcome == RunOutcome.SUCCESS
        assert second_plan.is_empty
        assert second.results == []
