"""Tests for artifact generation."""

import json
import pytest
from infraweave import prepare
from infraweave.contracts.plan import OperationKind
from infraweave.contracts.run_result import OperationResult, OperationStatus, RunOutcome, RunResult
from infraweave.model.models import Reference
from infraweave.planning.planner import plan
from infraweave.report.artifact import generate_artifacts, run_summary, write_plan


@pytest.fixture
def sample_plan():
    return plan(prepare([
        {"id": "bucket", "type": "storage-bucket", "spec": {"name": "assets"}},
        {"id": "policy", "type": "bucket-policy", "spec": {"bucket": Reference.parse("bucket.id"), "policy": "{}"}},
    ]), {})


@pytest.fixture
def failed_run():
    return RunResult(outcome=RunOutcome.FAILED, results=[
        OperationResult(key="create:bucket", declaration_id="bucket", kind=OperationKind.CREATE,
                        status=OperationStatus.FAILED, attempts=1, error="access denied"),
        OperationResult(key="create:policy", declaration_id="policy", kind=OperationKind.CREATE,
                        status=OperationStatus.BLOCKED, blocked_by="bucket"),
    ])


class TestArtifacts:
    """Test CI/CD artifact files."""

    def test_write_plan(self, sample_plan, tmp_path):
        path = tmp_path / "plans" / "plan.json"

        write_plan(sample_plan, path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert [op["kind"] for op in data["operations"]] == ["Create", "Create"]
        assert data["operations"][1]["after"] == ["create:bucket"]
        assert data["declarations"]["policy"]["spec"]["bucket"] == {"$ref": "bucket.id"}

    def test_run_summary(self, failed_run):
        summary = run_summary(failed_run)

        assert summary["outcome"] == "FAILED"
        assert summary["counts"]["Failed"] == 1
        assert summary["counts"]["Blocked"] == 1
        assert summary["failed"] == {"bucket": "access denied"}
        assert summary["blocked"] == {"bucket": ["policy"]}

    def test_generate_artifacts(self, sample_plan, failed_run, tmp_path):
        generate_artifacts(sample_plan, tmp_path, failed_run)

        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "metadata.json", "plan.json", "run.json", "summary.json"
        ]
        metadata = json.loads((tmp_path / "metadata.json").read_text(encoding="utf-8"))
        assert metadata["generator"] == "infraweave apply"

    def test_plan_only_artifacts(self, sample_plan, tmp_path):
        generate_artifacts(sample_plan, tmp_path)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["metadata.json", "plan.json"]
