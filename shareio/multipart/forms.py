"""
Form Field Helpers

Typed accessors over the parts returned by parse_multipart().
"""

from typing import Dict, Optional

from .parser import FormPart


class MissingFileFieldError(ValueError):
    """A required file field is absent or is not a file upload."""

    def __init__(self, field_name: str):
        super().__init__(f"Missing or invalid file field: {field_name}")
        self.field_name = field_name


def extract_field_as_text(parts: Optional[Dict[str, FormPart]], field_name: str) -> str:
    """Return a field's trimmed text, or an empty string if absent."""
    if not parts or not field_name:
        return ""
    part = parts.get(field_name)
    return part.as_text() if part is not None else ""


def extract_required_file(parts: Dict[str, FormPart], field_name: str) -> FormPart:
    """
    Return the named file part.

    Raises:
        MissingFileFieldError: if the field is missing or has no filename
    """
    part = parts.get(field_name)
    if part is None or not part.is_file:
        raise MissingFileFieldError(field_name)
    return part
