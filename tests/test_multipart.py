from shareio.multipart import (
    MultipartParser,
    parse_multipart,
    first_file,
    boundary_from_content_type,
)


def build_body(boundary: str, *segments: bytes) -> bytes:
    body = b''
    for segment in segments:
        body += b'--' + boundary.encode() + b'\r\n' + segment + b'\r\n'
    return body + b'--' + boundary.encode() + b'--\r\n'


def file_segment(name: str, filename: str, content: bytes, content_type: str = None) -> bytes:
    headers = f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
    if content_type:
        headers += f'Content-Type: {content_type}\r\n'
    return headers.encode() + b'\r\n' + content


def field_segment(name: str, value: str) -> bytes:
    return f'Content-Disposition: form-data; name="{name}"\r\n\r\n{value}'.encode()


def test_file_and_password_fields():
    body = build_body(
        'X',
        file_segment('file', 'a.txt', b'hello'),
        field_segment('password', 'secret'),
    )

    parts = parse_multipart(body, 'X')

    assert set(parts) == {'file', 'password'}
    assert parts['file'].filename == 'a.txt'
    assert parts['file'].content == b'hello'
    assert parts['file'].is_file
    assert parts['password'].as_text() == 'secret'
    assert not parts['password'].is_file


def test_default_content_types():
    body = build_body(
        'X',
        file_segment('file', 'a.txt', b'hello'),
        field_segment('note', 'hi'),
    )

    parts = parse_multipart(body, 'X')

    assert parts['file'].content_type == 'application/octet-stream'
    assert parts['note'].content_type == 'text/plain'


def test_content_type_header_is_captured():
    body = build_body('X', file_segment('file', 'a.png', b'PNG', content_type='image/png'))

    assert parse_multipart(body, 'X')['file'].content_type == 'image/png'


def test_binary_content_is_byte_exact():
    payload = b'\x00\xff\r\n\r\n--Y\r\nnot a header\r\n\x80\x81'
    body = build_body('----WebKitFormBoundary7MA4YWxk', file_segment('file', 'blob.bin', payload))

    parts = parse_multipart(body, '----WebKitFormBoundary7MA4YWxk')

    assert parts['file'].content == payload


def test_only_one_trailing_crlf_is_stripped():
    body = build_body('X', file_segment('file', 'a.txt', b'line\r\n'))

    assert parse_multipart(body, 'X')['file'].content == b'line\r\n'


def test_text_field_is_trimmed():
    body = build_body('X', field_segment('password', '  secret \t'))

    parts = parse_multipart(body, 'X')

    assert parts['password'].as_text() == 'secret'
    assert parts['password'].content == b'  secret \t'


def test_segment_without_name_is_skipped():
    body = build_body(
        'X',
        b'Content-Disposition: form-data\r\n\r\norphan',
        field_segment('password', 'secret'),
    )

    assert list(parse_multipart(body, 'X')) == ['password']


def test_segment_without_header_separator_is_skipped():
    body = build_body(
        'X',
        b'Content-Disposition: form-data; name="broken"\r\nno blank line',
        field_segment('password', 'secret'),
    )

    assert list(parse_multipart(body, 'X')) == ['password']


def test_duplicate_name_keeps_last():
    body = build_body(
        'X',
        field_segment('password', 'first'),
        field_segment('password', 'second'),
    )

    parts = parse_multipart(body, 'X')

    assert len(parts) == 1
    assert parts['password'].as_text() == 'second'


def test_name_is_not_confused_with_filename():
    segment = b'Content-Disposition: form-data; filename="a.txt"; name="upload"\r\n\r\ndata'

    parts = parse_multipart(build_body('X', segment), 'X')

    assert parts['upload'].filename == 'a.txt'


def test_boundary_is_matched_literally():
    boundary = 'a.b*c+(d)'
    body = build_body(boundary, field_segment('x', '1'))

    assert parse_multipart(body, boundary)['x'].as_text() == '1'


def test_empty_body():
    assert parse_multipart(b'', 'X') == {}


def test_first_file_and_legacy_parse():
    body = build_body(
        'X',
        field_segment('password', 'secret'),
        file_segment('file', 'a.txt', b'hello'),
    )

    parts = parse_multipart(body, 'X')
    assert first_file(parts).filename == 'a.txt'
    assert MultipartParser(body, 'X').parse().content == b'hello'
    assert first_file({'password': parts['password']}) is None


def test_boundary_from_content_type():
    assert boundary_from_content_type('multipart/form-data; boundary=XyZ') == 'XyZ'
    assert boundary_from_content_type('multipart/form-data; charset=utf-8; boundary="q q"') == 'q q'
    assert boundary_from_content_type('multipart/form-data') is None
    assert boundary_from_content_type(None) is None
