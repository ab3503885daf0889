"""
Tests for the Block Normalizer.

============================================================
TEST COVERAGE
============================================================
1. Transaction sums and counts
2. Issuer resolution precedence
3. Amount and size shapes
4. Malformed payloads
5. Timestamp stamping
============================================================
"""

from datetime import datetime

import pytest

from data_ingestion.normalizers.block_normalizer import (
    UNKNOWN_ISSUER,
    AbsentIssuer,
    BlockNormalizer,
    CredentialIssuer,
    OtherIssuer,
    PlainIssuer,
    classify_issuer,
    normalize_issuer,
)
from data_ingestion.types import MalformedPayload

from tests.conftest import b1_payload, make_payload, make_tx


# =============================================================
# TEST: Sums and counts
# =============================================================

class TestTransactionSums:
    """Fees, outputs and tx_count come from one pass over transactions."""

    def test_b1_payload(self, normalizer):
        """The reference block sums to 300000 fees and 8 ADA output."""
        block = normalizer.normalize(b1_payload())

        assert block.block_id == "b1"
        assert block.tx_count == 2
        assert block.fees == 300_000
        assert block.ada_output == 8_000_000
        assert block.issuer == "pool123"

    def test_empty_block(self, normalizer):
        """A block with no transactions has zero sums."""
        block = normalizer.normalize(make_payload(transactions=[]))

        assert block.tx_count == 0
        assert block.fees == 0
        assert block.ada_output == 0

    def test_transaction_without_outputs_counts(self, normalizer):
        """An empty output list still counts as a transaction."""
        payload = make_payload(transactions=[make_tx(fee=5, outputs=())])

        block = normalizer.normalize(payload)

        assert block.tx_count == 1
        assert block.fees == 5
        assert block.ada_output == 0

    def test_bare_amounts_accepted(self, normalizer):
        """Amounts may be bare integers instead of {"ada": {"lovelace": n}}."""
        payload = make_payload(transactions=[
            {"fee": 10, "outputs": [{"value": 20}, {"value": "30"}]},
        ])

        block = normalizer.normalize(payload)

        assert block.fees == 10
        assert block.ada_output == 50

    def test_header_fields_copied(self, normalizer):
        """Height, slot and size are taken from the payload."""
        payload = make_payload(height=42, slot=4242, size=1234)

        block = normalizer.normalize(payload)

        assert block.block_height == 42
        assert block.block_slot == 4242
        assert block.block_size == 1234

    def test_plain_integer_size(self, normalizer):
        """size may be a plain integer."""
        payload = make_payload()
        payload["size"] = 777

        assert normalizer.normalize(payload).block_size == 777


# =============================================================
# TEST: Issuer resolution
# =============================================================

class TestIssuerResolution:
    """Issuer descriptors resolve to a single identifier string."""

    def test_absent_issuer_is_unknown(self, normalizer):
        """No issuer key yields "unknown"."""
        block = normalizer.normalize(make_payload(issuer=None))
        assert block.issuer == UNKNOWN_ISSUER

    def test_plain_string_unchanged(self):
        assert normalize_issuer("pool1xyz") == "pool1xyz"

    def test_pool_id_wins_over_vrf_key(self):
        """pool_id has precedence over vrf_vkey."""
        raw = {"pool_id": "pool1abc", "vrf_vkey": "vrf1", "kes": {"period": 3}}
        assert normalize_issuer(raw) == "pool1abc"

    def test_vrf_key_when_no_pool_id(self):
        raw = {"vrf_vkey": "vrf_vk1qqq", "operational_certificate": {"count": 1}}
        assert normalize_issuer(raw) == "vrf_vk1qqq"

    def test_credential_without_known_keys_serialized(self):
        """Other credential bundles become their JSON form."""
        resolved = normalize_issuer({"verificationKey": "abc"})
        assert resolved == '{"verificationKey": "abc"}'

    def test_other_shapes_stringified(self):
        assert normalize_issuer(12345) == "12345"

    def test_classification_variants(self):
        """Each raw shape maps to its descriptor variant."""
        assert isinstance(classify_issuer(None), AbsentIssuer)
        assert isinstance(classify_issuer("pool"), PlainIssuer)
        assert isinstance(classify_issuer({"pool_id": "p"}), CredentialIssuer)
        assert isinstance(classify_issuer(["x"]), OtherIssuer)

    def test_structured_issuer_in_payload(self, normalizer):
        payload = make_payload(issuer={"pool_id": "pool1def", "vrf_vkey": "vrf"})
        assert normalizer.normalize(payload).issuer == "pool1def"


# =============================================================
# TEST: Malformed payloads
# =============================================================

class TestMalformedPayloads:
    """Shape errors surface as MalformedPayload."""

    def test_non_mapping_payload(self, normalizer):
        with pytest.raises(MalformedPayload):
            normalizer.normalize(["not", "a", "block"])

    def test_missing_id(self, normalizer):
        payload = make_payload()
        del payload["id"]

        with pytest.raises(MalformedPayload) as exc_info:
            normalizer.normalize(payload)

        assert exc_info.value.field_name == "id"

    def test_missing_transactions(self, normalizer):
        payload = make_payload()
        del payload["transactions"]

        with pytest.raises(MalformedPayload) as exc_info:
            normalizer.normalize(payload)

        assert exc_info.value.field_name == "transactions"

    def test_non_numeric_fee(self, normalizer):
        payload = make_payload(transactions=[{"fee": {"ada": {"lovelace": "lots"}}, "outputs": []}])

        with pytest.raises(MalformedPayload) as exc_info:
            normalizer.normalize(payload)

        assert exc_info.value.field_name == "transactions[0].fee"

    def test_boolean_amount_rejected(self, normalizer):
        """True is not an amount even though bool subclasses int."""
        payload = make_payload(transactions=[{"fee": True, "outputs": []}])

        with pytest.raises(MalformedPayload):
            normalizer.normalize(payload)

    def test_missing_height(self, normalizer):
        payload = make_payload()
        del payload["height"]

        with pytest.raises(MalformedPayload) as exc_info:
            normalizer.normalize(payload)

        assert exc_info.value.field_name == "height"

    def test_error_is_recoverable(self, normalizer):
        """Malformed payloads are skipped, never fatal."""
        with pytest.raises(MalformedPayload) as exc_info:
            normalizer.normalize({})

        assert exc_info.value.recoverable is True
        assert exc_info.value.to_dict()["error_type"] == "MalformedPayload"

    def test_batch_collects_errors(self, normalizer):
        """normalize_batch keeps going past bad payloads."""
        blocks, errors = normalizer.normalize_batch([
            make_payload(block_id="good"),
            {"id": "bad"},
            make_payload(block_id="good2"),
        ])

        assert [b.block_id for b in blocks] == ["good", "good2"]
        assert len(errors) == 1


# =============================================================
# TEST: Timestamps
# =============================================================

class TestTimestamps:
    """date_time is the ingestion time, truncated to seconds."""

    def test_date_time_from_clock_truncated(self, normalizer):
        block = normalizer.normalize(make_payload())

        assert block.date_time == datetime(2025, 7, 8, 17, 38, 26)
        assert block.date_time.microsecond == 0
        assert block.date_time.tzinfo is None

    def test_inserted_at_unset(self, normalizer):
        """inserted_at is stamped by the store gateway, not here."""
        assert normalizer.normalize(make_payload()).inserted_at is None

    def test_default_clock(self):
        """Without an explicit clock the process clock is used."""
        block = BlockNormalizer().normalize(make_payload())
        assert block.date_time.microsecond == 0
