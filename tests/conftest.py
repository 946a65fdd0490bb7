"""Shared fixtures for tests."""

from __future__ import annotations

import base64
from datetime import date, datetime, timezone

import pytest

from gmail_txn_sync.bank_domains import BankDomainGate
from gmail_txn_sync.classifier import TransactionClassifier
from gmail_txn_sync.config import Settings
from gmail_txn_sync.models import MailCredential
from gmail_txn_sync.store import Database
from gmail_txn_sync.sync import IncrementalSyncEngine

BANK_SENDER = "HDFC Bank <alerts@hdfcbank.net>"
TODAY = date(2024, 7, 20)
NOW = datetime(2024, 7, 20, 12, 0, tzinfo=timezone.utc)


def b64(text: str) -> str:
    """Gmail-style base64url without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def make_message(
    message_id: str,
    subject: str,
    body: str = "",
    sender: str = BANK_SENDER,
    internal_date: datetime | None = None,
    date_header: str = "",
) -> dict:
    """A ``format=full`` Gmail message with one text/plain part."""
    headers = [
        {"name": "Subject", "value": subject},
        {"name": "From", "value": sender},
    ]
    if date_header:
        headers.append({"name": "Date", "value": date_header})
    message = {
        "id": message_id,
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": headers,
            "parts": [{"partId": "0", "mimeType": "text/plain", "body": {"data": b64(body)}}],
        },
    }
    if internal_date is not None:
        message["internalDate"] = str(epoch_ms(internal_date))
    return message


class FakeProvider:
    """In-memory mail provider that pages through its messages in insertion order."""

    def __init__(self, messages: list[dict] | None = None, page_size: int = 2) -> None:
        self.messages: dict[str, dict] = {}
        self.page_size = page_size
        self.queries: list[str] = []
        self.fetched: list[str] = []
        self.fail_on: set[str] = set()
        self.fail_dates = False
        for message in messages or []:
            self.add(message)

    def add(self, message: dict) -> None:
        self.messages[message["id"]] = message

    def list_message_ids(self, access_token, query, page_token=None):
        self.queries.append(query)
        ids = list(self.messages)
        start = int(page_token or 0)
        end = start + self.page_size
        return ids[start:end], (str(end) if end < len(ids) else None)

    def get_message(self, access_token, message_id):
        self.fetched.append(message_id)
        if message_id in self.fail_on:
            raise RuntimeError("boom")
        return self.messages[message_id]

    def get_internal_dates(self, access_token, message_ids):
        if self.fail_dates:
            raise RuntimeError("lookup down")
        return {
            mid: int(self.messages[mid]["internalDate"])
            for mid in message_ids
            if "internalDate" in self.messages[mid]
        }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_PATH=tmp_path / "settings.db",
        BANK_DOMAINS="hdfcbank.net,icicibank.com",
        GEMINI_API_KEY="",
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def gate() -> BankDomainGate:
    return BankDomainGate(["hdfcbank.net", "icicibank.com"])


@pytest.fixture
def classifier(gate: BankDomainGate) -> TransactionClassifier:
    return TransactionClassifier(gate, None, today=lambda: TODAY)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def token_exchange():
    return lambda refresh_token: f"access-for-{refresh_token}"


@pytest.fixture
def engine(db, provider, classifier, gate, token_exchange) -> IncrementalSyncEngine:
    return IncrementalSyncEngine(
        db=db,
        provider=provider,
        classifier=classifier,
        token_exchange=token_exchange,
        bank_domains=gate.domains,
        now=lambda: NOW,
    )


@pytest.fixture
def connected_user(db) -> str:
    db.credentials.save(MailCredential(user_id="user-1", refresh_token="refresh-1"))
    db.sessions.open_session("user-1")
    return "user-1"
