"""Formatting of chain records before they are sent to the backend."""

from typing import Any, Dict, FrozenSet, List

from .constants import DECIMAL_STRING_FIELDS, INTEGER_FIELDS, TRANSACTION_INTEGER_FIELDS


def strip_nulls(value: Any) -> Any:
    """Recursively drop dict entries whose value is None."""
    if isinstance(value, dict):
        return {k: strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_nulls(v) for v in value]
    return value


def to_int(value: Any) -> int:
    """
    Convert a JSON-RPC quantity to int.

    Raises:
        ValueError: If the value is not a quantity
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    raise ValueError(f"Not a quantity: {value!r}")


def _format_fields(record: Dict[str, Any], integer_fields: FrozenSet[str] = INTEGER_FIELDS) -> Dict[str, Any]:
    formatted: Dict[str, Any] = {}
    for key, value in record.items():
        if value is None:
            continue
        if key in DECIMAL_STRING_FIELDS:
            formatted[key] = str(to_int(value))
        elif key in integer_fields:
            formatted[key] = to_int(value)
        else:
            formatted[key] = value
    return formatted


def format_transaction(transaction: Dict[str, Any]) -> Dict[str, Any]:
    """Format one transaction: amounts as decimal strings, counters as ints, no nulls."""
    return strip_nulls(_format_fields(transaction, TRANSACTION_INTEGER_FIELDS))


def format_block(block: Dict[str, Any]) -> Dict[str, Any]:
    """
    Format a block. Full transaction objects are formatted too,
    transaction hashes are kept as they are.
    """
    formatted = _format_fields(block)
    transactions: List[Any] = formatted.get("transactions") or []
    formatted["transactions"] = [
        format_transaction(tx) if isinstance(tx, dict) else tx for tx in transactions
    ]
    return strip_nulls(formatted)


def format_receipt(receipt: Dict[str, Any]) -> Dict[str, Any]:
    """Format a receipt and its logs."""
    formatted = _format_fields(receipt)
    formatted["logs"] = [_format_fields(log) for log in formatted.get("logs") or []]
    return strip_nulls(formatted)
