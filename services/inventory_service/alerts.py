"""Pure numeric helpers shared by the ledger and the aggregation engine."""

from numbers import Integral
from typing import Union

from services.inventory_service.exceptions import ValidationError

Number = Union[int, float]


def derive_alerts(total_available: int, total_stock: int, reorder_point: int, max_stock: int) -> dict:
    """Alert flags for a stock record.

    low_stock and out_of_stock are mutually exclusive; overstock is
    independent of both.
    """
    return {
        "low_stock": 0 < total_available <= reorder_point,
        "out_of_stock": total_available == 0,
        "overstock": total_stock > max_stock,
    }


def round_money(value: Number) -> float:
    return round(float(value), 2)


def safe_ratio(numerator: Number, denominator: Number) -> float:
    """numerator / denominator, or 0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


def percentage(numerator: Number, denominator: Number) -> float:
    return safe_ratio(numerator, denominator) * 100


def _is_int(value) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def require_positive_int(value, field: str = "quantity") -> int:
    """Validate a strictly positive integer argument."""
    if not _is_int(value) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", details={field: value})
    return int(value)


def require_non_negative_int(value, field: str) -> int:
    if not _is_int(value) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", details={field: value})
    return int(value)


def require_name(value, field: str = "warehouse_name") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={field: value})
    return value
