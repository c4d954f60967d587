"""
Diff Engine

Compares a locally edited order against the ERP's current state and returns
the minimal change-set. A field lands in the change-set only when its
normalized remote and local values differ:

- TEXT:   str(value or "").strip()
- NUMBER: float(value), missing or blank -> 0
- DATE:   first 10 characters (YYYY-MM-DD), time of day ignored
- REF:    numeric id; emitted as {"id": <number>}

A field the caller did not send compares as empty/zero. Omitted TEXT fields
are emitted as "" when that differs from the remote value; omitted NUMBER,
DATE and REF fields are never emitted.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from core.errors import OrderValidationError


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    REF = "ref"


@dataclass(frozen=True)
class FieldDef:
    """How one field is read from both sides and written to the ERP."""
    remote_key: str
    local_key: str
    kind: FieldKind

    @property
    def emit_key(self) -> str:
        return self.remote_key


HEADER_FIELDS: Tuple[FieldDef, ...] = (
    FieldDef("memo", "memo", FieldKind.TEXT),
    FieldDef("otherRefNum", "otherrefnum", FieldKind.TEXT),
    FieldDef("tranDate", "tranDate", FieldKind.DATE),
    FieldDef("location", "location_id", FieldKind.REF),
    FieldDef("custbody_ar_req_inv_mac5", "custbody_ar_req_inv_mac5", FieldKind.TEXT),
    FieldDef("shipaddresslist", "shipaddresslist", FieldKind.TEXT),
    FieldDef("custbodyar_so_memo2", "custbodyar_so_memo2", FieldKind.TEXT),
    FieldDef("custbody_ar_all_memo", "custbody_ar_all_memo", FieldKind.TEXT),
    FieldDef("custbody_ar_so_statusbill", "custbody_ar_so_statusbill", FieldKind.TEXT),
    FieldDef("custbody_ar_estimate_contrat1", "custbody_ar_estimate_contrat1", FieldKind.TEXT),
)

LINE_FIELDS: Tuple[FieldDef, ...] = (
    FieldDef("item", "item_id", FieldKind.REF),
    FieldDef("quantity", "quantity", FieldKind.NUMBER),
    FieldDef("rate", "rate", FieldKind.NUMBER),
    FieldDef("description", "description", FieldKind.TEXT),
    FieldDef("inventorylocation", "location", FieldKind.REF),
    FieldDef("custcol_ice_ld_discount", "custcol_ice_ld_discount", FieldKind.NUMBER),
    FieldDef("inpt_units_11", "inpt_units_11", FieldKind.TEXT),
)


# =============================================================================
# Normalization
# =============================================================================

def normalize_text(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value).strip()


def to_number(value: Any, field_name: str = "value") -> float:
    """Numeric coercion: None and blank strings are zero."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        raise OrderValidationError(f"{field_name} must be numeric, got {value!r}")


def json_number(value: Union[float, Decimal]) -> Union[int, float]:
    """Render integral values as ints so 4.0 goes out as 4; decimals as floats."""
    number = float(value)
    return int(number) if number.is_integer() else number


def normalize_date(value: Any) -> str:
    return normalize_text(value)[:10]


def _ref_id(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return getattr(value, "id", None)
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def _remote_value(remote: Any, key: str) -> Any:
    if remote is None:
        return None
    if isinstance(remote, Mapping):
        return remote.get(key)
    return getattr(remote, key, None)


# =============================================================================
# Diff
# =============================================================================

def _diff_field(fdef: FieldDef, remote: Any, local: Mapping[str, Any]) -> Optional[Tuple[str, Any]]:
    present = fdef.local_key in local
    local_value = local.get(fdef.local_key)
    remote_value = _remote_value(remote, fdef.remote_key)

    if fdef.kind == FieldKind.TEXT:
        # List/select fields come back as reference objects; compare their id.
        if normalize_text(_ref_id(remote_value)) == normalize_text(local_value):
            return None
        return fdef.emit_key, local_value if local_value is not None else ""

    # Non-text fields are only written when the caller sent a value.
    if fdef.kind == FieldKind.DATE:
        if normalize_date(remote_value) == normalize_date(local_value):
            return None
        if not present or local_value is None:
            return None
        return fdef.emit_key, local_value

    if fdef.kind == FieldKind.REF:
        remote_number = to_number(_ref_id(remote_value), fdef.remote_key)
        local_number = to_number(local_value, fdef.local_key)
        if remote_number == local_number:
            return None
        if not present or local_value is None:
            return None
        return fdef.emit_key, {"id": json_number(local_number)}

    remote_number = to_number(remote_value, fdef.remote_key)
    local_number = to_number(local_value, fdef.local_key)
    if remote_number == local_number:
        return None
    if not present or local_value is None:
        return None
    return fdef.emit_key, json_number(local_number)


def diff_fields(remote: Any, local: Mapping[str, Any], defs: Tuple[FieldDef, ...]) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    for fdef in defs:
        change = _diff_field(fdef, remote, local)
        if change is not None:
            key, value = change
            changes[key] = value
    return changes


def diff_header(remote: Any, local: Mapping[str, Any]) -> Dict[str, Any]:
    """Header change-set; empty means no update is needed."""
    return diff_fields(remote, local, HEADER_FIELDS)


def diff_line(remote: Any, local: Mapping[str, Any]) -> Dict[str, Any]:
    """Line change-set; empty means no update is needed."""
    return diff_fields(remote, local, LINE_FIELDS)


def check_numeric_fields(local: Mapping[str, Any], defs: Tuple[FieldDef, ...], label: str = "") -> None:
    """Raise OrderValidationError for any non-numeric NUMBER/REF value.

    Lets callers reject bad input before the first remote mutation.
    """
    for fdef in defs:
        if fdef.kind in (FieldKind.NUMBER, FieldKind.REF) and fdef.local_key in local:
            name = f"{label}{fdef.local_key}" if label else fdef.local_key
            to_number(local[fdef.local_key], name)
