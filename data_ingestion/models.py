"""
Data Ingestion - Block Models.

The canonical, storage-ready representation of one chain block.
Produced by the normalizer, held by the real-time window and written
to the analytics store.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from core.clock import parse_timestamp, truncate_to_second


UNKNOWN_ISSUER = "unknown"


@dataclass(frozen=True)
class CanonicalBlock:
    """
    Normalized block record - STRICT schema.

    Amounts are integers in lovelace. Timestamps are naive UTC with no
    sub-second component.
    """
    block_id: str
    block_height: int
    block_slot: int
    block_size: int
    issuer: str
    tx_count: int
    ada_output: int
    fees: int
    date_time: datetime
    inserted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        # frozen: go through object.__setattr__
        object.__setattr__(self, "date_time", truncate_to_second(self.date_time))
        if self.inserted_at is not None:
            object.__setattr__(self, "inserted_at", truncate_to_second(self.inserted_at))

    def with_inserted_at(self, inserted_at: datetime) -> "CanonicalBlock":
        """Return a copy stamped with its persistence time."""
        return replace(self, inserted_at=inserted_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "block_id": self.block_id,
            "block_height": self.block_height,
            "block_slot": self.block_slot,
            "block_size": self.block_size,
            "issuer": self.issuer,
            "tx_count": self.tx_count,
            "ada_output": self.ada_output,
            "fees": self.fees,
            "date_time": self.date_time.isoformat(),
            "inserted_at": self.inserted_at.isoformat() if self.inserted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalBlock":
        """
        Create from dictionary.

        Timestamps may be datetimes or strings in any of the ISO 8601
        variants accepted by parse_timestamp.
        """
        return cls(
            block_id=str(data["block_id"]),
            block_height=int(data["block_height"]),
            block_slot=int(data["block_slot"]),
            block_size=int(data["block_size"]),
            issuer=UNKNOWN_ISSUER if data.get("issuer") is None else str(data["issuer"]),
            tx_count=int(data["tx_count"]),
            ada_output=int(data["ada_output"]),
            fees=int(data["fees"]),
            date_time=_coerce_timestamp(data["date_time"]),
            inserted_at=(
                _coerce_timestamp(data["inserted_at"]) if data.get("inserted_at") else None
            ),
        )


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return truncate_to_second(value)
    if isinstance(value, str):
        return parse_timestamp(value)
    raise ValueError(f"Unsupported timestamp value: {value!r}")
