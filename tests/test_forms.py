import pytest

from shareio.multipart import (
    FormPart,
    MissingFileFieldError,
    extract_field_as_text,
    extract_required_file,
)


@pytest.fixture
def parts():
    return {
        'file': FormPart('file', 'a.txt', 'text/plain', b'hello'),
        'password': FormPart('password', None, 'text/plain', b' secret\r\n'),
    }


def test_extract_required_file(parts):
    assert extract_required_file(parts, 'file').content == b'hello'


def test_missing_file_field_raises(parts):
    with pytest.raises(MissingFileFieldError) as exc_info:
        extract_required_file(parts, 'upload')

    assert exc_info.value.field_name == 'upload'
    assert 'upload' in str(exc_info.value)


def test_plain_field_is_not_a_file(parts):
    with pytest.raises(MissingFileFieldError):
        extract_required_file(parts, 'password')


def test_missing_file_is_a_validation_error(parts):
    with pytest.raises(ValueError):
        extract_required_file({}, 'file')


def test_extract_field_as_text(parts):
    assert extract_field_as_text(parts, 'password') == 'secret'
    assert extract_field_as_text(parts, 'missing') == ''
    assert extract_field_as_text(None, 'password') == ''
