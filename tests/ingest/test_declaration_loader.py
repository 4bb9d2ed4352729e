"""Tests for the declaration loader."""

import json
import pytest
from infraweave.ingest.declaration_loader import load_declarations, parse_var_overrides
from infraweave.model.models import Reference
from infraweave.model.validator import validate_declarations
from infraweave.utils.errors import DeclarationLoadError


YAML_DOCUMENT = """
parameters:
  cidr: 10.0.0.0/16
  replicas: 2
resources:
  - id: net
    type: network
    spec:
      cidr_block: !param cidr
  - id: svc
    type: compute-service
    spec:
      image: web:1
      cpu: 256
      memory: 512
      desired_count: !param replicas
      network_id: !ref net.id
"""


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "stack.yaml"
    path.write_text(YAML_DOCUMENT, encoding="utf-8")
    return path


class TestLoadDeclarations:
    """Test loading declaration files."""

    def test_yaml_tags(self, yaml_file):
        document = load_declarations(str(yaml_file))

        net, svc = document.resources
        assert net["spec"]["cidr_block"] == "10.0.0.0/16"
        assert svc["spec"]["desired_count"] == 2
        assert svc["spec"]["network_id"] == Reference(declaration_id="net", attribute_path="id")

    def test_loaded_resources_validate(self, yaml_file):
        declarations = validate_declarations(load_declarations(str(yaml_file)).resources)

        assert declarations[1].reference_ids() == {"net"}

    def test_json_markers(self, tmp_path):
        path = tmp_path / "stack.json"
        path.write_text(json.dumps({
            "parameters": {"bucket": "assets"},
            "resources": [
                {"id": "bucket", "type": "storage-bucket", "spec": {"name": {"$param": "bucket"}}},
                {
                    "id": "policy",
                    "type": "bucket-policy",
                    "spec": {"bucket": {"$ref": "bucket.id"}, "policy": {"public": False}},
                },
            ],
        }), encoding="utf-8")

        document = load_declarations(str(path))

        assert document.resources[0]["spec"]["name"] == "assets"
        assert document.resources[1]["spec"]["bucket"] == Reference.parse("bucket.id")
        assert document.resources[1]["spec"]["policy"] == {"public": False}

    def test_override_precedence(self, yaml_file, monkeypatch):
        """File defaults < environment < explicit overrides."""
        monkeypatch.setenv("INFRAWEAVE_VAR_cidr", "10.1.0.0/16")
        monkeypatch.setenv("INFRAWEAVE_VAR_replicas", "3")

        from_env = load_declarations(str(yaml_file))
        explicit = load_declarations(str(yaml_file), {"replicas": 5})

        assert from_env.parameters == {"cidr": "10.1.0.0/16", "replicas": 3}
        assert explicit.parameters["replicas"] == 5
        assert explicit.parameters["cidr"] == "10.1.0.0/16"

    def test_undefined_parameter(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text(
            "resources:\n  - id: net\n    type: network\n    spec:\n      cidr_block: !param cidr\n",
            encoding="utf-8"
        )

        with pytest.raises(DeclarationLoadError, match="Undefined parameter 'cidr' used in resource 'net'"):
            load_declarations(str(path))

    def test_malformed_reference_tag(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("resources:\n  - id: a\n    type: network\n    spec:\n      x: !ref nodot\n", encoding="utf-8")

        with pytest.raises(DeclarationLoadError, match="Invalid YAML"):
            load_declarations(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(DeclarationLoadError, match="not found"):
            load_declarations(str(tmp_path / "missing.yaml"))

    def test_resources_must_be_list(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("resources:\n  net: {}\n", encoding="utf-8")

        with pytest.raises(DeclarationLoadError, match="'resources' must be a list"):
            load_declarations(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_declarations(str(path)).resources == []


class TestParseVarOverrides:
    """Test --var parsing."""

    def test_values_are_typed(self):
        assert parse_var_overrides(["count=2", "name=web", "flag=true", "empty="]) == {
            "count": 2, "name": "web", "flag": True, "empty": ""
        }

    def test_value_may_contain_equals(self):
        assert parse_var_overrides(["query=a=b"]) == {"query": "a=b"}

    def test_missing_equals(self):
        with pytest.raises(DeclarationLoadError, match="expected name=value"):
            parse_var_overrides(["count"])
