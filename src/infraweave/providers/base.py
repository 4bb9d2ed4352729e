"""Abstract provider capability contract."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ProviderResult(BaseModel):
    """Identifier and attributes reported for a created resource."""
    provider_id: str = Field(..., description="Identifier assigned by the provider")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Output attributes")


class ProviderCapability(ABC):
    """
    Create/read/update/delete contract for one family of resources.
    
    Implementations raise ProviderError(message, retryable) on failure.
    They never see references: every spec passed in is fully resolved.
    """

    name = "abstract"

    @abstractmethod
    def create(self, resource_type: str, spec: Dict[str, Any]) -> ProviderResult:
        """Create a resource and return its identifier and attributes."""
        pass

    @abstractmethod
    def update(self, resource_type: str, provider_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
        """Update a resource in place and return its new attributes."""
        pass

    @abstractmethod
    def delete(self, resource_type: str, provider_id: str) -> None:
        """Delete a resource. Deleting an already absent resource succeeds."""
        pass

    def read(self, resource_type: str, provider_id: str) -> Optional[Dict[str, Any]]:
        """
        Read current attributes, or None when the resource no longer exists.
        
        Used for drift detection only. Providers that cannot read keep this
        default and drift detection reports their resources as unchecked.
        """
        raise NotImplementedError(f"Provider '{self.name}' does not support read")
