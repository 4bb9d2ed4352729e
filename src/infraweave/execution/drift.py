"""Drift detection through the provider's optional read capability."""

from enum import Enum
from typing import Any, Dict, List, Mapping
from pydantic import BaseModel, Field
from ..model.models import StateRecord
from ..providers.base import ProviderCapability
from ..state.store import StateStore
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("execution.drift")


class DriftStatus(str, Enum):
    """Result of comparing one record with the provider."""
    IN_SYNC = "in_sync"
    CHANGED = "changed"
    MISSING = "missing"
    UNCHECKED = "unchecked"
    ERROR = "error"


class DriftEntry(BaseModel):
    """Drift finding for one applied declaration."""
    declaration_id: str = Field(..., description="Declaration id")
    status: DriftStatus = Field(..., description="Comparison result")
    changed_attributes: List[str] = Field(default_factory=list, description="Attributes whose values differ")
    current_attributes: Dict[str, Any] = Field(default_factory=dict, description="Attributes reported by the provider")
    error: str = Field(default="", description="Read failure, if any")


class DriftReport(BaseModel):
    """Drift findings for every applied record."""
    entries: List[DriftEntry] = Field(default_factory=list, description="Findings in declaration id order")

    @property
    def drifted(self) -> List[DriftEntry]:
        return [e for e in self.entries if e.status in (DriftStatus.CHANGED, DriftStatus.MISSING)]

    @property
    def has_drift(self) -> bool:
        return bool(self.drifted)


def detect_drift(records: Mapping[str, StateRecord], provider: ProviderCapability) -> DriftReport:
    """
    Read every applied resource back from the provider and compare attributes.
    
    Args:
        records: State records by declaration id
        provider: Provider used to read current attributes
        
    Returns:
        DriftReport (read failures are reported per entry, never raised)
    """
    entries = []
    for declaration_id in sorted(records):
        record = records[declaration_id]
        if not record.is_applied or not record.provider_assigned_id:
            continue
        try:
            current = provider.read(record.resource_type, record.provider_assigned_id)
        except NotImplementedError:
            entries.append(DriftEntry(declaration_id=declaration_id, status=DriftStatus.UNCHECKED))
            continue
        except ProviderError as e:
            logger.warning(f"Could not read '{declaration_id}': {e}")
            entries.append(DriftEntry(declaration_id=declaration_id, status=DriftStatus.ERROR, error=str(e)))
            continue

        if current is None:
            logger.warning(f"'{declaration_id}' ({record.provider_assigned_id}) no longer exists at the provider")
            entries.append(DriftEntry(declaration_id=declaration_id, status=DriftStatus.MISSING))
            continue

        changed = sorted(
            name for name in set(record.resolved_attributes) | set(current)
            if record.resolved_attributes.get(name) != current.get(name)
        )
        status = DriftStatus.CHANGED if changed else DriftStatus.IN_SYNC
        if changed:
            logger.warning(f"'{declaration_id}' drifted: {', '.join(changed)}")
        entries.append(DriftEntry(
            declaration_id=declaration_id,
            status=status,
            changed_attributes=changed,
            current_attributes=current
        ))

    report = DriftReport(entries=entries)
    logger.info(f"Drift check: {len(report.drifted)} of {len(entries)} resources drifted")
    return report


def refresh_state(report: DriftReport, store: StateStore) -> int:
    """
    Fold drift findings into the state store.
    
    Missing resources lose their record, so the next plan creates them again.
    Changed resources get the provider's attributes, so declarations that
    reference them are re-planned as updates.
    
    Returns:
        Number of records changed
    """
    records = store.load()
    refreshed = 0
    for entry in report.drifted:
        record = records.get(entry.declaration_id)
        if record is None:
            continue
        if entry.status == DriftStatus.MISSING:
            store.delete(entry.declaration_id)
        else:
            store.save(entry.declaration_id, record.model_copy(update={"resolved_attributes": entry.current_attributes}))
        refreshed += 1
    logger.info(f"Refreshed {refreshed} state record(s)")
    return refreshed
