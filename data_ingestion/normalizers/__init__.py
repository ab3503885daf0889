"""
Data Ingestion - Normalizers.

Transform raw feed payloads into canonical records.
"""

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

__all__ = [
    "UNKNOWN_ISSUER",
    "AbsentIssuer",
    "BlockNormalizer",
    "CredentialIssuer",
    "OtherIssuer",
    "PlainIssuer",
    "classify_issuer",
    "normalize_issuer",
]
