"""
Data Ingestion - Block Normalizer.

============================================================
RESPONSIBILITY
============================================================
Converts one raw chain-sync block payload into a CanonicalBlock.

- Sums transaction fees and output values in lovelace
- Counts transactions in the same pass that sums them
- Resolves the issuer descriptor to a single string
- Stamps the ingestion time, truncated to seconds

============================================================
DESIGN PRINCIPLES
============================================================
- Pure transform: no I/O, no shared state
- Malformed input raises MalformedPayload, never a bare KeyError
- Ingestion time comes from the clock, not from the payload

============================================================
ISSUER RESOLUTION
============================================================
Absent              -> "unknown"
Plain string        -> unchanged
Credential mapping  -> pool_id, else vrf_vkey, else full JSON
Anything else       -> str(value)

============================================================
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from core.clock import ClockFactory, ClockProtocol
from data_ingestion.models import UNKNOWN_ISSUER, CanonicalBlock
from data_ingestion.types import MalformedPayload, RawBlockPayload


logger = logging.getLogger(__name__)


# ============================================================
# ISSUER DESCRIPTOR
# ============================================================

@dataclass(frozen=True)
class AbsentIssuer:
    """No issuer in the payload."""

    def resolve(self) -> str:
        return UNKNOWN_ISSUER


@dataclass(frozen=True)
class PlainIssuer:
    """Issuer already given as an identifier string."""
    value: str

    def resolve(self) -> str:
        return self.value


@dataclass(frozen=True)
class CredentialIssuer:
    """Structured credential bundle (pool id, VRF key, KES data, ...)."""
    fields: Mapping[str, Any]

    def resolve(self) -> str:
        if "pool_id" in self.fields:
            return str(self.fields["pool_id"])
        if "vrf_vkey" in self.fields:
            return str(self.fields["vrf_vkey"])
        return json.dumps(dict(self.fields), sort_keys=True, default=str)


@dataclass(frozen=True)
class OtherIssuer:
    """Any other shape - kept as its string form."""
    value: Any

    def resolve(self) -> str:
        return str(self.value)


IssuerDescriptor = Union[AbsentIssuer, PlainIssuer, CredentialIssuer, OtherIssuer]


def classify_issuer(raw: Any) -> IssuerDescriptor:
    """Lift a raw issuer value into its descriptor variant."""
    if raw is None:
        return AbsentIssuer()
    if isinstance(raw, str):
        return PlainIssuer(raw)
    if isinstance(raw, Mapping):
        return CredentialIssuer(raw)
    return OtherIssuer(raw)


def normalize_issuer(raw: Any) -> str:
    """Resolve a raw issuer value to its normalized identifier."""
    return classify_issuer(raw).resolve()


# ============================================================
# NORMALIZER
# ============================================================

class BlockNormalizer:
    """
    Normalizes chain-sync block payloads.

    Usage:
        normalizer = BlockNormalizer()
        block = normalizer.normalize(payload)
    """

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    def normalize(self, payload: RawBlockPayload) -> CanonicalBlock:
        """
        Normalize one raw payload.

        Raises:
            MalformedPayload: If required fields are absent or mis-shaped
        """
        if not isinstance(payload, Mapping):
            raise MalformedPayload(
                f"Block payload must be an object, got {type(payload).__name__}",
                raw_data=payload,
            )

        block_id = payload.get("id")
        if not isinstance(block_id, str) or not block_id:
            raise MalformedPayload("Missing block id", field_name="id", raw_data=payload)

        transactions = payload.get("transactions")
        if not isinstance(transactions, list):
            raise MalformedPayload(
                f"Block {block_id} has no transaction list",
                field_name="transactions",
                raw_data=payload,
            )

        ada_output, fees, tx_count = self._sum_transactions(block_id, transactions)

        block = CanonicalBlock(
            block_id=block_id,
            block_height=_require_int(payload, "height", block_id),
            block_slot=_require_int(payload, "slot", block_id),
            block_size=_block_size(payload, block_id),
            issuer=normalize_issuer(payload.get("issuer")),
            tx_count=tx_count,
            ada_output=ada_output,
            fees=fees,
            date_time=self.clock.now_truncated(),
        )

        logger.debug(
            f"[normalizer] block={block.block_id} height={block.block_height} "
            f"txs={block.tx_count} fees={block.fees}"
        )
        return block

    def normalize_batch(
        self,
        payloads: Iterable[RawBlockPayload],
    ) -> Tuple[List[CanonicalBlock], List[MalformedPayload]]:
        """Normalize many payloads, collecting failures instead of raising."""
        blocks: List[CanonicalBlock] = []
        errors: List[MalformedPayload] = []
        for payload in payloads:
            try:
                blocks.append(self.normalize(payload))
            except MalformedPayload as e:
                errors.append(e)
        return blocks, errors

    @staticmethod
    def _sum_transactions(
        block_id: str,
        transactions: List[Any],
    ) -> Tuple[int, int, int]:
        """Single pass over the transaction list: (ada_output, fees, tx_count)."""
        ada_output = 0
        fees = 0
        tx_count = 0

        for index, tx in enumerate(transactions):
            where = f"transactions[{index}]"
            if not isinstance(tx, Mapping):
                raise MalformedPayload(
                    f"Block {block_id}: {where} is not an object",
                    field_name=where,
                    raw_data=tx,
                )

            fees += _lovelace(tx.get("fee"), f"{where}.fee", block_id)

            outputs = tx.get("outputs")
            if not isinstance(outputs, list):
                raise MalformedPayload(
                    f"Block {block_id}: {where} has no output list",
                    field_name=f"{where}.outputs",
                    raw_data=tx,
                )
            for out_index, output in enumerate(outputs):
                out_where = f"{where}.outputs[{out_index}]"
                value = output.get("value") if isinstance(output, Mapping) else None
                ada_output += _lovelace(value, f"{out_where}.value", block_id)

            tx_count += 1

        return ada_output, fees, tx_count


# ============================================================
# FIELD HELPERS
# ============================================================

def _as_int(value: Any) -> Optional[int]:
    """Integral value or None. Booleans and fractional numbers are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _lovelace(value: Any, field_name: str, block_id: str) -> int:
    """Read an amount given as {"ada": {"lovelace": n}} or as a bare number."""
    amount = value
    if isinstance(value, Mapping):
        ada = value.get("ada")
        amount = ada.get("lovelace") if isinstance(ada, Mapping) else None

    result = _as_int(amount)
    if result is None:
        raise MalformedPayload(
            f"Block {block_id}: non-numeric amount at {field_name}",
            field_name=field_name,
            raw_data=value,
        )
    return result


def _require_int(payload: RawBlockPayload, key: str, block_id: str) -> int:
    result = _as_int(payload.get(key))
    if result is None:
        raise MalformedPayload(
            f"Block {block_id}: missing or non-numeric {key}",
            field_name=key,
            raw_data=payload.get(key),
        )
    return result


def _block_size(payload: RawBlockPayload, block_id: str) -> int:
    size = payload.get("size")
    if isinstance(size, Mapping):
        size = size.get("bytes")
    result = _as_int(size)
    if result is None:
        raise MalformedPayload(
            f"Block {block_id}: missing or non-numeric size",
            field_name="size",
            raw_data=payload.get("size"),
        )
    return result
