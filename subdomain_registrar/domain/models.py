"""
Domain models for the subdomain registrar.

Defines the queue, backup, and tracking records aligned with the schema in
`subdomain_registrar.infrastructure.store`, plus the value objects exchanged
with the external encoder and status checker.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class QueueStatus(str, Enum):
    RECEIVED = "received"
    SUBMITTED = "submitted"
    ERROR = "error"
    # Reported by status lookups only, never stored.
    NOT_QUEUED = "not_queued"


_FROZEN = {
    "frozen": True,
    "populate_by_name": True,
    "arbitrary_types_allowed": False,
}


class RegistrationEntry(BaseModel):
    """
    Representation of a single row in the `subdomain_queue` table.
    """

    id: Optional[int] = Field(None, description="Primary key, assigned on insert.")
    subdomain_name: str = Field(..., min_length=1, description="Subdomain label being registered.")
    owner: str = Field(..., min_length=1, description="Owner address for the subdomain.")
    sequence_number: int = Field(..., ge=0, description="Update sequence number for the name.")
    zonefile: str = Field(..., description="Opaque update payload for the name.")
    status: QueueStatus = Field(QueueStatus.RECEIVED, description="Queue state.")
    status_more: Optional[str] = Field(
        None, description="Transaction id once submitted, or error text."
    )
    received_at: Optional[datetime] = Field(None, description="Insert timestamp.")

    model_config = _FROZEN


class SubdomainStatus(BaseModel):
    """Latest known queue state for a name."""

    status: QueueStatus
    status_more: Optional[str] = None

    model_config = _FROZEN

    @classmethod
    def not_queued(cls) -> "SubdomainStatus":
        return cls(status=QueueStatus.NOT_QUEUED)


class ZonefileBackup(BaseModel):
    """Append-only audit record of a zonefile handed to the submitter."""

    id: int
    zonefile: str
    timestamp: datetime

    model_config = _FROZEN


class TrackedTransaction(BaseModel):
    """An on-chain submission whose confirmation has not been observed yet."""

    tx_hash: str
    zonefile: str

    model_config = _FROZEN


class BatchUpdate(BaseModel):
    """
    Result of compacting queued entries into one zonefile.

    `submitted` holds the entries folded into `zonefile`; entries absent from
    both `submitted` and `rejected` stay queued for a later cycle. `rejected`
    maps subdomain names the encoder can never include to the reason.
    """

    zonefile: str
    submitted: List[RegistrationEntry] = Field(default_factory=list)
    rejected: Dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN

    @property
    def submitted_names(self) -> List[str]:
        return [entry.subdomain_name for entry in self.submitted]


class TransactionStatus(BaseModel):
    tx_hash: str
    confirmed: bool

    model_config = _FROZEN


__all__ = [
    "QueueStatus",
    "RegistrationEntry",
    "SubdomainStatus",
    "ZonefileBackup",
    "TrackedTransaction",
    "BatchUpdate",
    "TransactionStatus",
]
