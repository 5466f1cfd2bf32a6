"""
Input validation for the MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from agent callers.
"""

from __future__ import annotations

import math
import re
from typing import Any


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_string(value: Any, field_name: str, *, allow_empty: bool = True) -> str:
    """Ensure *value* is a string (optionally non-empty)."""
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a finite numeric value and optional range."""
    if not _is_number(value):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if not math.isfinite(val):
        raise ValidationError(f"'{field_name}' must be finite, got {val}.")
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_directory(value: Any, field_name: str) -> str:
    """Validate that a directory path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty directory path string.")
    return value.strip()


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_VALID_AXES = {"VERTICAL", "HORIZONTAL", "NONE"}
_VALID_DIRECTIONS = {"RIGHT", "LEFT", "ABOVE", "BELOW"}
_PAGE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_PAGE_ACTIONS = {"CREATE", "ADD_PAGE", "LIST", "SAVE", "LOAD", "GET_XML"}
_SHAPE_ACTIONS = {"ADD_SHAPES", "UPDATE_SHAPES", "PLACE", "GRID"}
_CONNECT_ACTIONS = {"ADD", "ROUTE", "REROUTE"}
_CONTAINER_ACTIONS = {"CREATE", "ADD_MEMBERS", "RESTACK", "RESIZE_TO_FIT"}
_INSPECT_ACTIONS = {"SHAPES", "ABSOLUTE", "TREE", "CONNECTORS"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_axis(value: Any) -> str:
    """Validate a stack axis (vertical, horizontal, none)."""
    return validate_enum(value, "axis", _VALID_AXES).lower()


def validate_direction(value: Any) -> str:
    """Validate a relative placement direction."""
    return validate_enum(value, "direction", _VALID_DIRECTIONS).lower()


def validate_page_id(value: Any, field_name: str = "page_id") -> str:
    """Page ids double as file names, so keep them to a safe alphabet."""
    value = validate_non_empty_string(value, field_name)
    if not _PAGE_ID_RE.match(value):
        raise ValidationError(
            f"'{field_name}' may only contain letters, digits, '.', '_' and '-', got '{value}'."
        )
    return value


# ---------------------------------------------------------------------------
# Shape / update / connection dict validators
# ---------------------------------------------------------------------------

def validate_shape_dict(s: dict, index: int) -> None:
    """Validate a single shape dict from the shapes list."""
    if not isinstance(s, dict):
        raise ValidationError(f"Shape at index {index} must be a dict/object.")
    for key in ("x", "y", "width", "height"):
        if key not in s:
            raise ValidationError(f"Shape at index {index} missing required key '{key}'.")
        if not _is_number(s[key]):
            raise ValidationError(f"Shape at index {index}: '{key}' must be a number.")
    # Non-positive sizes are left to the engine, which reports InvalidDimensions.
    if "text" in s and not isinstance(s["text"], str):
        raise ValidationError(f"Shape at index {index}: 'text' must be a string.")
    if "parent_id" in s and not isinstance(s["parent_id"], str):
        raise ValidationError(f"Shape at index {index}: 'parent_id' must be a string.")
    if "shape_id" in s and not isinstance(s["shape_id"], str):
        raise ValidationError(f"Shape at index {index}: 'shape_id' must be a string.")
    if "foreign" in s and not isinstance(s["foreign"], bool):
        raise ValidationError(f"Shape at index {index}: 'foreign' must be a boolean.")


def validate_update_dict(u: dict, index: int) -> None:
    """Validate a single update dict from the updates list."""
    if not isinstance(u, dict):
        raise ValidationError(f"Update at index {index} must be a dict/object.")
    if "shape_id" not in u:
        raise ValidationError(f"Update at index {index} missing required key 'shape_id'.")
    if not isinstance(u["shape_id"], str) or not u["shape_id"].strip():
        raise ValidationError(f"Update at index {index}: 'shape_id' must be a non-empty string.")
    for key in ("x", "y", "width", "height"):
        if key in u and not _is_number(u[key]):
            raise ValidationError(f"Update at index {index}: '{key}' must be a number.")
    if ("x" in u) != ("y" in u):
        raise ValidationError(f"Update at index {index}: 'x' and 'y' must be given together.")
    if ("width" in u) != ("height" in u):
        raise ValidationError(
            f"Update at index {index}: 'width' and 'height' must be given together."
        )
    if "text" in u and not isinstance(u["text"], str):
        raise ValidationError(f"Update at index {index}: 'text' must be a string.")


def validate_connection_dict(c: dict, index: int) -> None:
    """Validate a single connection dict."""
    if not isinstance(c, dict):
        raise ValidationError(f"Connection at index {index} must be a dict/object.")
    for key in ("from_id", "to_id"):
        if key not in c:
            raise ValidationError(f"Connection at index {index} missing required key '{key}'.")
        if not isinstance(c[key], str) or not c[key].strip():
            raise ValidationError(
                f"Connection at index {index}: '{key}' must be a non-empty string."
            )
    if "connector_id" in c and not isinstance(c["connector_id"], str):
        raise ValidationError(f"Connection at index {index}: 'connector_id' must be a string.")


# ---------------------------------------------------------------------------
# Composite tool-level validators
# ---------------------------------------------------------------------------

def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    val = validate_number(value, field_name)
    if val <= 0:
        raise ValidationError(f"'{field_name}' must be > 0, got {val}.")
    return val


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate that a number is >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_columns(value: Any) -> int:
    """Validate grid columns (>= 1)."""
    return validate_int(value, "columns", min_val=1)
