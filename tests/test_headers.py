"""Tests for header parsing and content keys."""

import base64
import hashlib

from mail_harvester.hashing import attachment_key, content_key, file_key, normalize_base64
from mail_harvester.headers import (
    decode_header_value,
    extract_email_info,
    format_date,
    iter_header_fields,
    parse_address,
)


def test_parse_address_forms():
    """Bare, angle and named forms parse; empty and junk values do not."""
    assert parse_address("a@x.com") == "a@x.com"
    assert parse_address("<a@x.com>") == "a@x.com"
    assert parse_address("Alice <a@x.com>") == "a@x.com"
    assert parse_address("<>") == ""
    assert parse_address("not an address") == ""
    assert parse_address("") == ""


def test_iter_header_fields_stops_at_blank_line():
    """Fields are unfolded and the body is never read as headers."""
    raw = "Subject: one\r\n\tcontinued\r\nTo: b@y.com\r\n\r\nBody: not a header\r\n"
    fields = list(iter_header_fields(raw))
    assert [f.name for f in fields] == ["Subject", "To"]
    assert fields[0].value == "one continued"


def test_decode_encoded_subject():
    """RFC 2047 encoded words are decoded."""
    assert decode_header_value("=?utf-8?B?UmFwb3J0IHNwcnplZGHFvHk=?=") == "Raport sprzedaży"
    assert decode_header_value("Plain") == "Plain"
    assert decode_header_value(None) == ""


def test_format_date_keeps_wall_clock_time():
    """Dates keep the sender's wall-clock time and bad dates give None."""
    assert format_date("Tue, 05 Mar 2024 10:15:00 +0100") == "05.03.2024 10:15:00"
    assert format_date("not a date") is None


def test_extract_email_info():
    """Sender, receivers, subject and date come from their own fields."""
    raw = (
        "Return-Path: <a@x.com>\r\n"
        "Delivered-To: b@y.com\r\n"
        "To: b@y.com, c@y.com\r\n"
        "Subject: Report\r\n"
        "Date: Fri, 31 May 2024 23:59:01 -0700\r\n"
    )
    info = extract_email_info(raw)
    assert info.sender == ["a@x.com"]
    assert info.receivers == ["b@y.com", "c@y.com"]
    assert info.subject == "Report"
    assert info.date == "31.05.2024 23:59:01"


def test_extract_email_info_empty_header():
    """An empty header gives empty lists and None values."""
    info = extract_email_info("")
    assert info.sender == []
    assert info.receivers == []
    assert info.subject is None
    assert info.date is None


def test_content_key_is_md5():
    """Content keys are hex md5 digests of text or bytes."""
    assert content_key("abc") == hashlib.md5(b"abc").hexdigest()
    assert content_key(b"abc") == content_key("abc")


def test_file_key_matches_canonical_encoding():
    """Hashing stored bytes reproduces the key of their base64 payload."""
    data = b"\x00\x01spreadsheet bytes\xff"
    encoded = base64.b64encode(data).decode()
    assert file_key(data) == attachment_key(encoded)
    assert normalize_base64(" ab\r\ncd\n ") == "abcd"
