"""
Multipart Form Parser

Design Decision: Parsing Strategy
=================================

Options Considered:
1. python-multipart / framework form handling
   - Streaming, validating, battle-tested
   - Hides the raw parts from us, strict about malformed input

2. email.parser on a synthetic MIME message
   - Stdlib, but decodes to text and mangles binary payloads

3. Split on the boundary bytes ourselves
   - Small, predictable, byte-exact
   - Best-effort only (no validation)

Decision: Split on the literal boundary bytes
- The body is never decoded as a whole, so binary uploads survive intact
- Only the header block of each segment is decoded
- Malformed segments are skipped rather than failing the whole request

Segment Layout:
```
--{boundary}\r\n
Content-Disposition: form-data; name="file"; filename="a.txt"\r\n
Content-Type: text/plain\r\n
\r\n
<content>\r\n
--{boundary}--\r\n
```
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

HEADER_SEPARATOR = b'\r\n\r\n'
CRLF = b'\r\n'

DEFAULT_FILE_CONTENT_TYPE = 'application/octet-stream'
DEFAULT_FIELD_CONTENT_TYPE = 'text/plain'

_CONTENT_TYPE_RE = re.compile(r'^content-type:[ \t]*([^\r\n]*?)[ \t]*\r?$', re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True)
class FormPart:
    """One named segment of a multipart/form-data body."""
    name: str
    filename: Optional[str]
    content_type: str
    content: bytes

    @property
    def is_file(self) -> bool:
        """True if this part is a file upload rather than a plain field."""
        return self.filename is not None

    def as_text(self) -> str:
        """Content decoded as UTF-8 with surrounding whitespace removed."""
        return self.content.decode('utf-8', errors='replace').strip()


def _extract_quoted(headers: str, key: str) -> Optional[str]:
    """Find key="value" in a header block, e.g. name="file"."""
    marker = f'{key}="'
    start = headers.find(marker)
    # 'name="' also matches inside 'filename="'
    while start > 0 and headers[start - 1].isalnum():
        start = headers.find(marker, start + 1)
    if start == -1:
        return None

    start += len(marker)
    end = headers.find('"', start)
    if end == -1:
        return None
    return headers[start:end]


def _parse_segment(segment: bytes) -> Optional[FormPart]:
    """Parse one boundary-delimited segment. Returns None if malformed."""
    header_end = segment.find(HEADER_SEPARATOR)
    if header_end == -1:
        logger.debug("Skipping segment without header separator")
        return None

    # Headers are ASCII in practice; latin-1 never fails and keeps offsets
    headers = segment[:header_end].decode('latin-1')

    name = _extract_quoted(headers, 'name')
    if name is None:
        logger.debug("Skipping segment without a name")
        return None

    filename = _extract_quoted(headers, 'filename')
    if filename is not None:
        # Browsers send UTF-8 filenames in the header block
        filename = filename.encode('latin-1').decode('utf-8', errors='replace')

    match = _CONTENT_TYPE_RE.search(headers)
    if match and match.group(1):
        content_type = match.group(1)
    elif filename is not None:
        content_type = DEFAULT_FILE_CONTENT_TYPE
    else:
        content_type = DEFAULT_FIELD_CONTENT_TYPE

    content = segment[header_end + len(HEADER_SEPARATOR):]
    if content.endswith(CRLF):
        content = content[:-len(CRLF)]

    return FormPart(
        name=name,
        filename=filename,
        content_type=content_type,
        content=content,
    )


def parse_multipart(body: bytes, boundary: str) -> Dict[str, FormPart]:
    """
    Parse a multipart/form-data body into named parts.

    The boundary is matched literally. Segments missing the header
    separator or a name are skipped. A repeated name keeps the last part.

    Args:
        body: Raw request body
        boundary: Boundary token from the Content-Type header

    Returns:
        Mapping of field name to FormPart
    """
    parts: Dict[str, FormPart] = {}
    delimiter = b'--' + boundary.encode('latin-1')

    for segment in body.split(delimiter):
        stripped = segment.strip()
        if not stripped or stripped == b'--':
            continue

        part = _parse_segment(segment)
        if part is not None:
            parts[part.name] = part

    logger.debug(f"Parsed {len(parts)} form parts")
    return parts


def first_file(parts: Dict[str, FormPart]) -> Optional[FormPart]:
    """Return the first file part found, or None."""
    for part in parts.values():
        if part.is_file:
            return part
    return None


def boundary_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """
    Extract the boundary token from a Content-Type header value.

    >>> boundary_from_content_type('multipart/form-data; boundary=XyZ')
    'XyZ'
    """
    if not content_type:
        return None

    for param in content_type.split(';')[1:]:
        key, _, value = param.strip().partition('=')
        if key.lower() == 'boundary' and value:
            return value.strip('"')
    return None


class MultipartParser:
    """
    Parser bound to one request body.

    Thin wrapper over parse_multipart() for callers that want to keep
    the body and boundary together.
    """

    def __init__(self, data: bytes, boundary: str):
        self.data = data
        self.boundary = boundary

    def parse_parts(self) -> Dict[str, FormPart]:
        """Parse all parts of the body."""
        return parse_multipart(self.data, self.boundary)

    def parse(self) -> Optional[FormPart]:
        """Parse and return only the first file part."""
        return first_file(self.parse_parts())
