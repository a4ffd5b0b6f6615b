"""Lossless large-integer tagging for the persisted JSON documents.

Every wei amount and block number is written as ``{"__bigint__": "<decimal>"}``
so that readers without arbitrary-precision numbers never round them.
``BigInt`` is the annotated field type that applies the tag on JSON
serialization and requires it on JSON validation.
"""

import re
from typing import Annotated, Any, Dict

from pydantic import BeforeValidator, Field, PlainSerializer, ValidationInfo

BIGINT_TAG = "__bigint__"

_DECIMAL_RE = re.compile(r"^\d+\Z")


def tag_bigint(value: int) -> Dict[str, str]:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{BIGINT_TAG} values are non-negative, got {value}")
    return {BIGINT_TAG: str(value)}


def is_bigint_record(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and len(value) == 1
        and isinstance(value.get(BIGINT_TAG), str)
        and _DECIMAL_RE.match(value[BIGINT_TAG]) is not None
    )


def revive_bigints(value: Any) -> Any:
    """Recursively replace tag records with ints, leaving everything else as-is."""
    if is_bigint_record(value):
        return int(value[BIGINT_TAG])
    if isinstance(value, dict):
        return {key: revive_bigints(item) for key, item in value.items()}
    if isinstance(value, list):
        return [revive_bigints(item) for item in value]
    return value


def _untag_bigint(value: Any, info: ValidationInfo) -> Any:
    # Python callers pass plain ints; the wire form must carry the tag.
    if is_bigint_record(value):
        return int(value[BIGINT_TAG])
    if info.mode == "json":
        raise ValueError(f"expected a {BIGINT_TAG} record with a non-negative decimal string")
    return value


BigInt = Annotated[
    int,
    Field(ge=0),
    BeforeValidator(_untag_bigint),
    PlainSerializer(tag_bigint, return_type=Dict[str, str], when_used="json"),
]

NonNegativeInt = Annotated[int, Field(ge=0)]
