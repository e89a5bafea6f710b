"""
Bulk load import.

Parses CSV (via pandas) and JSON load files into validated loads plus
per-row errors, and merges them into an existing load list. Row errors are
data; only a file that cannot be read at all raises.
"""

import io
import json
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

import pandas as pd
from pydantic import BaseModel, ValidationError

from yardplan.domain import Load
from yardplan.exceptions import InvalidInputError


logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    """How imported rows combine with existing loads."""

    APPEND = "append"  # Insert new ids, skip existing
    UPSERT = "upsert"  # Insert new ids, merge existing
    REPLACE = "replace"  # Clear all loads first


class FileKind(str, Enum):
    CSV = "csv"
    JSON = "json"


class ImportRowError(BaseModel):
    """A rejected input row (1-based data row; CSV rows count the header)."""

    row: int
    message: str


IMPORT_TEMPLATE_CSV = "\n".join([
    "id,loadNumber,pallets,weightLbs,cubeFt,lane,stopWindow,constraints,destinationCode,status",
    "L30001,L30001,14,18500,700,East Hub -> Dallas TX,2026-02-25T08:00:00Z..2026-02-25T12:00:00Z,NO_SPLIT|NO_MIX,DFW,PLANNED",
    "L30002,L30002,10,12200,510,East Hub -> Austin TX,2026-02-25T09:00:00Z..2026-02-25T13:00:00Z,,AUS,PLANNED",
]) + "\n"

# Load field -> accepted column names, after header normalisation
_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "loadid"),
    "load_number": ("loadnumber", "loadid", "id"),
    "pallets": ("pallets", "palletcount"),
    "weight_lbs": ("weightlbs", "weight", "weightlb"),
    "cube_ft": ("cubeft", "cube", "volumeft3"),
    "stop_window": ("stopwindow", "deliverywindow", "window"),
    "lane": ("lane", "corridor", "route"),
    "constraints": ("constraints", "rules"),
    "destination_code": ("destinationcode", "destination", "dest"),
    "trailer_id": ("trailerid",),
    "trailer_unit": ("trailerunit",),
    "status": ("status",),
}


@dataclass
class ParsedImport:
    """Valid loads (with the fields each row actually supplied) and row errors."""

    loads: list[Load] = field(default_factory=list)
    errors: list[ImportRowError] = field(default_factory=list)


@dataclass
class MergeResult:
    loads: list[Load]
    imported: int = 0
    updated: int = 0


def normalize_header(header: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header).strip().lower())


def infer_file_kind(file_name: str | None, file_kind: FileKind | str | None = None) -> FileKind:
    """Explicit kind wins; otherwise `.json` files are JSON and everything else CSV."""
    if isinstance(file_kind, FileKind):
        return file_kind
    if file_kind:
        try:
            return FileKind(file_kind.strip().lower())
        except ValueError as exc:
            raise InvalidInputError(f"Unsupported file kind: {file_kind}") from exc
    if file_name and file_name.lower().endswith(".json"):
        return FileKind.JSON
    return FileKind.CSV


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return bool(value)
    return True


def _pick(record: dict[str, Any], field_name: str) -> Any:
    for key in _ALIASES[field_name]:
        value = record.get(key)
        if _present(value):
            return value.strip() if isinstance(value, str) else value
    return None


def _text(value: Any) -> str | None:
    if not _present(value):
        return None
    return str(value).strip()


def _number(value: Any) -> float | None:
    if not _present(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(",", "").strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def record_to_load(record: dict[str, Any], row: int) -> Load | ImportRowError:
    """
    Build a load from one normalised record.

    Only fields present in the record are set on the returned model, so
    `model_fields_set` tells an upsert which fields to merge.
    """
    fallback_number = _text(_pick(record, "load_number"))
    load_id = _text(_pick(record, "id")) or fallback_number
    if not load_id:
        return ImportRowError(row=row, message="Missing load id.")

    pallets = _number(_pick(record, "pallets"))
    pallets = math.floor(pallets) if pallets is not None else 0
    if pallets <= 0:
        return ImportRowError(row=row, message=f"Load {load_id} has invalid pallets value.")

    weight = _number(_pick(record, "weight_lbs")) or 0.0
    if weight <= 0:
        return ImportRowError(row=row, message=f"Load {load_id} has invalid weight value.")

    values: dict[str, Any] = {
        "id": load_id,
        "load_number": fallback_number or load_id,
        "pallets": pallets,
        "weight_lbs": weight,
    }
    cube = _number(_pick(record, "cube_ft"))
    if cube is not None and cube > 0:
        values["cube_ft"] = cube
    for name in ("stop_window", "lane", "destination_code", "trailer_id", "trailer_unit"):
        text = _text(_pick(record, name))
        if text is not None:
            values[name] = text
    constraints = _pick(record, "constraints")
    if constraints is not None:
        values["constraints"] = constraints
    status = _text(_pick(record, "status"))
    if status is not None:
        values["status"] = status.upper()

    try:
        return Load.model_validate(values)
    except ValidationError:
        return ImportRowError(row=row, message=f"Load {load_id} failed validation.")


def _collect(records: Sequence[dict[str, Any]], first_row: int) -> ParsedImport:
    parsed = ParsedImport()
    for idx, record in enumerate(records):
        result = record_to_load(record, idx + first_row)
        if isinstance(result, ImportRowError):
            parsed.errors.append(result)
        else:
            parsed.loads.append(result)
    return parsed


def parse_csv(data: bytes) -> ParsedImport:
    """Parse CSV bytes; every cell is read as text."""
    try:
        frame = pd.read_csv(
            io.BytesIO(data),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return ParsedImport()
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise InvalidInputError(f"Invalid CSV file: {exc}") from exc

    # Short rows come back as NaN
    frame = frame.fillna("")
    frame.columns = [normalize_header(column) for column in frame.columns]
    records = frame.to_dict(orient="records")
    # Row 1 is the header
    return _collect(records, first_row=2)


def parse_json(data: bytes) -> ParsedImport:
    """Parse a JSON array of loads, or an object with a `loads` array."""
    try:
        payload = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInputError("Invalid JSON file.") from exc

    if isinstance(payload, dict) and isinstance(payload.get("loads"), list):
        payload = payload["loads"]
    if not isinstance(payload, list):
        raise InvalidInputError("JSON import must be an array of loads or an object with a 'loads' array.")

    parsed = ParsedImport()
    for idx, item in enumerate(payload):
        if not isinstance(item, dict):
            parsed.errors.append(ImportRowError(row=idx + 1, message="Invalid JSON load object."))
            continue
        record = {normalize_header(key): value for key, value in item.items()}
        result = record_to_load(record, idx + 1)
        if isinstance(result, ImportRowError):
            parsed.errors.append(result)
        else:
            parsed.loads.append(result)
    return parsed


def parse_load_file(data: bytes, file_kind: FileKind) -> ParsedImport:
    """
    Parse an uploaded load file.

    Raises:
        InvalidInputError: if the file cannot be read at all
    """
    parsed = parse_json(data) if file_kind is FileKind.JSON else parse_csv(data)
    logger.debug("Parsed %s import: %d valid rows, %d row errors", file_kind.value, len(parsed.loads), len(parsed.errors))
    return parsed


def merge_loads(existing: Sequence[Load], incoming: Sequence[Load], mode: ImportMode) -> MergeResult:
    """
    Combine imported loads with the current ones.

    Upserts merge only the fields each row supplied, so an existing status or
    assignment survives a row that leaves it blank. The result is sorted by
    load number (or id).
    """
    current: dict[str, Load] = {} if mode is ImportMode.REPLACE else {load.id: load for load in existing}
    result = MergeResult(loads=[])

    for load in incoming:
        base = current.get(load.id)
        if base is None:
            current[load.id] = load
            result.imported += 1
            continue
        if mode is ImportMode.APPEND:
            continue
        supplied = load.model_dump(include=load.model_fields_set)
        current[load.id] = Load.model_validate({**base.model_dump(), **supplied})
        result.updated += 1

    result.loads = sorted(current.values(), key=lambda load: load.display_id)
    return result
