import math
from decimal import Decimal
from typing import Any

from ..errors import ValidationError

NAME_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 255


def require_text(value: Any, field: str, min_length: int = 1, max_length: int = NAME_MAX_LENGTH) -> str:
    if not isinstance(value, str):
        raise ValidationError.for_field(field, f'Field "{field}" is required and must be a string')
    if not min_length <= len(value) <= max_length:
        raise ValidationError.for_field(field, f'Field "{field}" must be {min_length}-{max_length} characters long')
    return value


def require_positive_int(value: Any, field: str) -> int:
    # bool is an int subclass; True must not pass as id 1
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError.for_field(field, f'Field "{field}" is required and must be a positive integer')
    return value


def require_amount(value: Any, field: str = "amount") -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError.for_field(field, f'Field "{field}" is required and must be a number')
    amount = float(value)
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError.for_field(field, f'Field "{field}" must be a positive finite number')
    return amount
