"""Tests for the Gmail API wrapper, against an in-memory service object."""

import httplib2
from googleapiclient.errors import HttpError

from gmail_txn_sync import gmail_client
from gmail_txn_sync.gmail_client import GmailProvider, fetch_internal_dates, list_message_page


class FakeRequest:
    def __init__(self, response):
        self.response = response

    def execute(self):
        return self.response


class FakeBatch:
    def __init__(self, executed):
        self.items = []
        self.executed = executed

    def add(self, request, callback=None):
        self.items.append((request, callback))

    def execute(self):
        self.executed.append(len(self.items))
        for request, callback in self.items:
            if isinstance(request.response, Exception):
                callback(None, None, request.response)
            else:
                callback(None, request.response, None)


class FakeMessages:
    def __init__(self, pages, dates):
        self.pages = pages
        self.dates = dates
        self.list_calls = []

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        return FakeRequest(self.pages[kwargs.get("pageToken")])

    def get(self, userId, id, format, fields=None):
        if format == "full":
            return FakeRequest({"id": id, "payload": {}})
        if id not in self.dates:
            return FakeRequest(RuntimeError("not found"))
        return FakeRequest({"id": id, "internalDate": str(self.dates[id])})


class FakeService:
    def __init__(self, pages=None, dates=None):
        self._messages = FakeMessages(pages or {}, dates or {})
        self.batches_executed = []

    def users(self):
        return self

    def messages(self):
        return self._messages

    def new_batch_http_request(self):
        return FakeBatch(self.batches_executed)


def test_list_message_page_passes_query_and_token():
    """The query and page token are forwarded to messages.list."""
    service = FakeService(
        pages={
            None: {"messages": [{"id": "a"}, {"id": "b"}], "nextPageToken": "p2"},
            "p2": {"messages": [{"id": "c"}]},
        }
    )

    assert list_message_page(service, "after:2024/07/01") == (["a", "b"], "p2")
    assert list_message_page(service, "after:2024/07/01", "p2") == (["c"], None)

    first, second = service.messages().list_calls
    assert first["q"] == "after:2024/07/01"
    assert "pageToken" not in first
    assert second["pageToken"] == "p2"


def test_list_message_page_empty_result():
    """An empty mailbox yields no ids and no next page."""
    service = FakeService(pages={None: {"resultSizeEstimate": 0}})
    assert list_message_page(service, "q") == ([], None)


def test_fetch_internal_dates_batches_and_skips_failures(monkeypatch):
    """Lookups are batched and failed items are left out."""
    monkeypatch.setattr(gmail_client, "BATCH_SIZE", 2)
    service = FakeService(dates={"a": 100, "b": 300, "d": 200})
    progress = []

    dates = fetch_internal_dates(
        service, ["a", "b", "c", "d"], callback=lambda n, total: progress.append((n, total))
    )

    assert dates == {"a": 100, "b": 300, "d": 200}
    assert service.batches_executed == [2, 2]
    assert progress == [(1, 2), (2, 2)]


def test_provider_uses_service_factory():
    """Every provider call builds its service from the access token."""
    service = FakeService(pages={None: {"messages": [{"id": "a"}]}}, dates={"a": 42})
    tokens = []

    def factory(access_token):
        tokens.append(access_token)
        return service

    provider = GmailProvider(service_factory=factory)

    assert provider.list_message_ids("tok", "q") == (["a"], None)
    assert provider.get_message("tok", "a")["id"] == "a"
    assert provider.get_internal_dates("tok", ["a"]) == {"a": 42}
    assert provider.get_internal_dates("tok", []) == {}
    assert tokens == ["tok", "tok", "tok"]


def test_retryable_statuses():
    """Only rate-limit and server errors are retried."""
    def error(status):
        return HttpError(httplib2.Response({"status": status}), b"")

    assert gmail_client._is_retryable_http_error(error(429))
    assert gmail_client._is_retryable_http_error(error(503))
    assert not gmail_client._is_retryable_http_error(error(404))
    assert not gmail_client._is_retryable_http_error(ValueError("nope"))
