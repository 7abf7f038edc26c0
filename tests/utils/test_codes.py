import re

from app.utils.codes import (
    EVENT_CODE_ALPHABET,
    build_join_url,
    extract_event_code,
    generate_attendee_code,
    generate_event_code,
    normalise_event_code,
)


def test_generate_event_code_shape():
    code = generate_event_code()
    assert len(code) == 6
    assert all(ch in EVENT_CODE_ALPHABET for ch in code)


def test_generate_event_code_custom_length():
    assert len(generate_event_code(8)) == 8


def test_generate_attendee_code_format():
    assert re.fullmatch(r"EVT\d{4}-\d{6}", generate_attendee_code())


def test_normalise_event_code():
    assert normalise_event_code("  k7q2zd ") == "K7Q2ZD"


def test_extract_event_code_from_bare_code():
    assert extract_event_code("abc123") == "ABC123"


def test_extract_event_code_from_join_url():
    assert extract_event_code("https://speak.example.com/session/abc123") == "ABC123"
    assert extract_event_code("https://speak.example.com/session/ABC123/") == "ABC123"


def test_build_join_url_strips_trailing_slash():
    assert (
        build_join_url("http://localhost:5173/", "ABC123")
        == "http://localhost:5173/session/ABC123"
    )
