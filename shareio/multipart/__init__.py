"""
Multipart Module - Form Upload Parsing

Extracts uploaded files and plain fields from multipart/form-data bodies.
"""

from .parser import (
    FormPart,
    MultipartParser,
    parse_multipart,
    first_file,
    boundary_from_content_type,
)
from .forms import MissingFileFieldError, extract_field_as_text, extract_required_file

__all__ = [
    'FormPart',
    'MultipartParser',
    'parse_multipart',
    'first_file',
    'boundary_from_content_type',
    'MissingFileFieldError',
    'extract_field_as_text',
    'extract_required_file',
]
