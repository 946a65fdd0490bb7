"""Tests for header and body extraction from Gmail messages."""

from datetime import datetime, timezone

from conftest import b64, epoch_ms, make_message

from gmail_txn_sync.extractor import (
    authoritative_timestamp,
    decode_part_data,
    extract_body,
    extract_headers,
    parse_from_header,
)


def test_parse_from_header_formats():
    """Display-name, bare and angle-bracket From headers all parse."""
    assert parse_from_header("HDFC Bank <alerts@hdfcbank.net>") == ("HDFC Bank", "alerts@hdfcbank.net")
    assert parse_from_header('"HDFC Bank" <alerts@hdfcbank.net>') == ("HDFC Bank", "alerts@hdfcbank.net")
    assert parse_from_header("<alerts@hdfcbank.net>") == ("", "alerts@hdfcbank.net")
    assert parse_from_header("alerts@hdfcbank.net") == ("", "alerts@hdfcbank.net")
    assert parse_from_header("") == ("", "")


def test_extract_headers_case_insensitive_first_wins():
    """Header lookup ignores case and keeps the first value."""
    message = {
        "payload": {
            "headers": [
                {"name": "SUBJECT", "value": "First"},
                {"name": "subject", "value": "Second"},
                {"name": "from", "value": "alerts@hdfcbank.net"},
                {"name": "Date", "value": "Mon, 15 Jul 2024 10:00:00 +0530"},
            ]
        }
    }
    headers = extract_headers(message)
    assert headers.subject == "First"
    assert headers.sender == "alerts@hdfcbank.net"
    assert headers.date_header == "Mon, 15 Jul 2024 10:00:00 +0530"


def test_extract_headers_missing_payload():
    """A message without a payload yields empty headers."""
    headers = extract_headers({})
    assert headers.subject == ""
    assert headers.sender == ""
    assert headers.date_header == ""


def test_decode_part_data_without_padding():
    """base64url data without padding decodes."""
    assert decode_part_data(b64("INR 2,500.00 debited")) == "INR 2,500.00 debited"
    assert decode_part_data(b64("₹ 99")) == "₹ 99"


def test_extract_body_walks_nested_parts():
    """Text from nested multipart parts is collected."""
    message = {
        "payload": {
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {"mimeType": "text/plain", "body": {"data": b64("plain text")}},
                        {"mimeType": "text/html", "body": {"data": b64("<p>html</p>")}},
                    ],
                },
                {"mimeType": "application/pdf", "body": {"attachmentId": "att-1"}},
            ],
        }
    }
    assert extract_body(message) == "plain text\n<p>html</p>\n"


def test_extract_body_skips_undecodable_part():
    """A corrupt part is skipped, not fatal."""
    message = {
        "payload": {
            "parts": [
                {"partId": "0", "body": {"data": "A"}},
                {"partId": "1", "body": {"data": b64("still here")}},
            ]
        }
    }
    assert extract_body(message) == "still here\n"


def test_extract_body_single_part_and_empty():
    assert extract_body(make_message("m1", "s", body="hello")) == "hello\n"
    assert extract_body({"payload": {"body": {"data": b64("top level")}}}) == "top level\n"
    assert extract_body({}) == ""


def test_authoritative_timestamp():
    """internalDate is read as epoch milliseconds."""
    when = datetime(2024, 7, 15, 10, 0, tzinfo=timezone.utc)
    assert authoritative_timestamp(make_message("m1", "s", internal_date=when)) == epoch_ms(when)
    assert authoritative_timestamp({"id": "m2"}) is None
    assert authoritative_timestamp({"id": "m3", "internalDate": "abc"}) is None
