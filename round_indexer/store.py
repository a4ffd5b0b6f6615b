"""Read and write the persisted read model and sync cursor."""

import os
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

from .base import StrictBaseModel
from .errors import StoreFormatError
from .models import RoundReadModel, RoundSyncCursor

_ModelT = TypeVar("_ModelT", bound=StrictBaseModel)


def _error_location(loc: tuple) -> str:
    where = ""
    for part in loc:
        if isinstance(part, int):
            where += f"[{part}]"
        else:
            where += f".{part}" if where else str(part)
    return where


def _describe(exc: ValidationError) -> str:
    error: Dict[str, Any] = exc.errors()[0]
    where = _error_location(error["loc"])
    message = error["msg"].removeprefix("Value error, ")
    if error["type"] == "json_invalid":
        return f"invalid JSON: {message}"
    if error["type"] == "missing":
        return f"missing field {where}"
    return f"{where}: {message}" if where else message


def _dumps_document(model: StrictBaseModel) -> str:
    return model.model_dump_json(indent=2, by_alias=True) + "\n"


def _loads_document(model_type: Type[_ModelT], raw: str) -> _ModelT:
    try:
        return model_type.model_validate_json(raw)
    except ValidationError as exc:
        raise StoreFormatError(_describe(exc)) from exc


def _write_text(path: str, text: str) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(text)
    os.replace(tmp_path, path)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def stringify_round_read_model(model: RoundReadModel) -> str:
    return _dumps_document(model)


def parse_round_read_model(raw: str) -> RoundReadModel:
    return _loads_document(RoundReadModel, raw)


def read_round_read_model(path: str) -> RoundReadModel:
    return parse_round_read_model(_read_text(path))


def write_round_read_model(path: str, model: RoundReadModel) -> None:
    _write_text(path, stringify_round_read_model(model))


def stringify_round_sync_cursor(cursor: RoundSyncCursor) -> str:
    return _dumps_document(cursor)


def parse_round_sync_cursor(raw: str) -> RoundSyncCursor:
    return _loads_document(RoundSyncCursor, raw)


def read_round_sync_cursor(path: str) -> Optional[RoundSyncCursor]:
    if not os.path.exists(path):
        return None
    return parse_round_sync_cursor(_read_text(path))


def write_round_sync_cursor(path: str, cursor: RoundSyncCursor) -> None:
    _write_text(path, stringify_round_sync_cursor(cursor))
