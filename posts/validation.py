"""
posts/validation.py -- Explicit input validation for post writes.

Same contract as auth/validation.py: validate_* returns a list of FieldError,
empty meaning the input is acceptable.
"""

from __future__ import annotations

from typing import Any, Mapping

from auth.errors import FieldError

MIN_TEXT_LENGTH = 10


def _text_error(field: str, value: Any) -> FieldError | None:
    if not isinstance(value, str) or len(value.strip()) < MIN_TEXT_LENGTH:
        label = field.capitalize()
        return FieldError(field, f"{label} must be at least {MIN_TEXT_LENGTH} characters long")
    return None


def validate_post_create(data: Mapping[str, Any]) -> list[FieldError]:
    errors = [e for e in (_text_error("title", data.get("title")), _text_error("content", data.get("content"))) if e]
    category = data.get("category")
    if not isinstance(category, str) or not category.strip():
        errors.append(FieldError("category", "Category is required"))
    return errors


def validate_post_update(data: Mapping[str, Any]) -> list[FieldError]:
    """Validate only the fields present in a partial update."""
    errors: list[FieldError] = []
    for field in ("title", "content"):
        if data.get(field) is not None:
            error = _text_error(field, data[field])
            if error:
                errors.append(error)
    if "category" in data and data["category"] is not None and not str(data["category"]).strip():
        errors.append(FieldError("category", "Category is required"))
    return errors
