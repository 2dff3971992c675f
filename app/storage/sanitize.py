"""Sanitising of payloads before they are written to a document store."""

from datetime import date, datetime
from decimal import Decimal

from app.core.exceptions import ValidationError


def clean_data(value, _path="$"):
    """Return a JSON-safe deep copy of ``value``.

    Dates become ISO-8601 strings, tuples and sets become lists and
    Decimals become floats. Anything else that JSON cannot carry is
    rejected with a ValidationError naming the offending path.
    """
    # Late import: ArrayUnion lives in base, which imports this module.
    from app.storage.base import ArrayUnion

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, ArrayUnion):
        return ArrayUnion(*clean_data(list(value.values), _path))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): clean_data(v, f"{_path}.{k}") for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [clean_data(v, f"{_path}[{i}]") for i, v in enumerate(value)]
    raise ValidationError(
        "Value is not JSON serialisable",
        details={_path: type(value).__name__},
    )
