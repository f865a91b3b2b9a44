# Input validation helpers
from strikewise.utils.validators import validate_positive, validate_ticker

__all__ = [
    "validate_positive",
    "validate_ticker",
]
