# shared/utils/validation.py

from typing import Any, Dict, Optional, Sequence


class ValidationError(Exception):
    """Response from the model REST API does not have the expected shape."""
    pass


def validate_response(response: Any, required_keys: Optional[Sequence[str]] = None) -> bool:
    """
    Validate a JSON object returned by the model REST API.

    Args:
        response: Decoded response body.
        required_keys: Keys that must exist in the response.

    Returns:
        bool: True if valid, raises ValidationError if invalid.
    """
    if not isinstance(response, dict):
        raise ValidationError(f"Response is not a dict: {response!r}")

    if required_keys:
        missing_keys = [k for k in required_keys if k not in response]
        if missing_keys:
            raise ValidationError(f"Missing keys in response: {missing_keys}")

    return True


def validate_list_response(response: Any) -> bool:
    """Validate a JSON array response (e.g. GET /models)."""
    if not isinstance(response, list):
        raise ValidationError(f"Response is not a list: {response!r}")
    return True
