"""Simulated provider that keeps resources in memory (optionally backed by a JSON file)."""

import json
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from .base import ProviderCapability, ProviderResult
from ..model.schema import output_attributes
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("providers.memory")


class _InjectedFailure:
    """A scripted failure for matching provider calls."""

    def __init__(self, action: str, resource_type: Optional[str], match: Dict[str, Any],
                 error: ProviderError, times: Optional[int]):
        self.action = action
        self.resource_type = resource_type
        self.match = match
        self.error = error
        self.remaining = times

    def applies(self, action: str, resource_type: str, spec: Dict[str, Any]) -> bool:
        if self.remaining is not None and self.remaining <= 0:
            return False
        if self.action != action:
            return False
        if self.resource_type is not None and self.resource_type != resource_type:
            return False
        return all(spec.get(key) == value for key, value in self.match.items())


class InMemoryProvider(ProviderCapability):
    """
    Simulated cloud used for tests, demos and dry runs.

    Ids look like ``<type>-<hex>``. Every output attribute of the type's
    schema is reported: values present in the spec are echoed back, the
    rest are synthesized from the id. Calls are recorded in ``calls`` as
    ``(action, resource_type, spec_name_or_id)``.
    """

    name = "memory"

    def __init__(self, path: Optional[str] = None):
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self._failures: List[_InjectedFailure] = []
        self._lock = threading.Lock()
        self._path = Path(path) if path else None
        if self._path and self._path.exists():
            with open(self._path, 'r', encoding='utf-8') as f:
                self.resources = json.load(f)
            logger.debug(f"Loaded {len(self.resources)} simulated resources from {self._path}")

    def inject_failure(
        self,
        action: str,
        resource_type: Optional[str] = None,
        retryable: bool = False,
        times: Optional[int] = None,
        message: str = "injected failure",
        **match: Any
    ) -> None:
        """Make matching calls raise ProviderError (``times=None`` means always)."""
        self._failures.append(_InjectedFailure(
            action, resource_type, match, ProviderError(message, retryable=retryable), times
        ))

    def _check_failure(self, action: str, resource_type: str, spec: Dict[str, Any]) -> None:
        for failure in self._failures:
            if failure.applies(action, resource_type, spec):
                if failure.remaining is not None:
                    failure.remaining -= 1
                raise ProviderError(str(failure.error), retryable=failure.error.retryable)

    def _attributes(self, resource_type: str, provider_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {}
        for attribute in output_attributes(resource_type):
            if attribute == "id":
                attributes["id"] = provider_id
            elif attribute == "arn":
                attributes["arn"] = f"arn:infraweave:{resource_type}:{provider_id}"
            elif attribute in spec:
                attributes[attribute] = spec[attribute]
            else:
                attributes[attribute] = f"{provider_id}.{attribute}"
        return attributes

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, 'w', encoding='utf-8') as f:
            json.dump(self.resources, f, indent=2, sort_keys=True, default=str)

    def create(self, resource_type: str, spec: Dict[str, Any]) -> ProviderResult:
        with self._lock:
            self.calls.append(("create", resource_type, spec.get("name")))
            self._check_failure("create", resource_type, spec)
            provider_id = f"{resource_type}-{uuid.uuid4().hex[:12]}"
            attributes = self._attributes(resource_type, provider_id, spec)
            self.resources[provider_id] = {"type": resource_type, "spec": spec, "attributes": attributes}
            self._persist()
        logger.debug(f"Created {resource_type} {provider_id}")
        return ProviderResult(provider_id=provider_id, attributes=attributes)

    def update(self, resource_type: str, provider_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(("update", resource_type, spec.get("name")))
            self._check_failure("update", resource_type, spec)
            if provider_id not in self.resources:
                raise ProviderError(f"{resource_type} {provider_id} does not exist", retryable=False)
            attributes = self._attributes(resource_type, provider_id, spec)
            self.resources[provider_id] = {"type": resource_type, "spec": spec, "attributes": attributes}
            self._persist()
        return attributes

    def delete(self, resource_type: str, provider_id: str) -> None:
        with self._lock:
            spec = self.resources.get(provider_id, {}).get("spec", {})
            self.calls.append(("delete", resource_type, spec.get("name", provider_id)))
            self._check_failure("delete", resource_type, spec)
            self.resources.pop(provider_id, None)
            self._persist()

    def read(self, resource_type: str, provider_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            resource = self.resources.get(provider_id)
            if resource is None:
                return None
            return dict(resource["attributes"])

    def calls_for(self, action: str) -> List[Tuple[str, str, Optional[str]]]:
        return [call for call in self.calls if call[0] == action]
