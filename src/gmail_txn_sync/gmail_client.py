"""Gmail API client functions for listing and fetching messages."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import BatchHttpRequest
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from gmail_txn_sync.constants import BATCH_SIZE, PAGE_SIZE

logger = logging.getLogger(__name__)


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


_retry_transient = retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)


@lru_cache(maxsize=32)
def build_service(access_token: str):
    """Return a Gmail API service object authorized with a bare access token."""
    creds = Credentials(token=access_token)
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


@_retry_transient
def _execute(request) -> dict:
    return request.execute()


@_retry_transient
def _execute_batch(batch: BatchHttpRequest) -> None:
    batch.execute()


def list_message_page(
    service,
    query: str | None = None,
    page_token: str | None = None,
) -> tuple[list[str], str | None]:
    """Return one page of message IDs matching the query and the next page token."""
    kwargs: dict = {"userId": "me", "maxResults": PAGE_SIZE, "fields": "messages/id,nextPageToken"}
    if query:
        kwargs["q"] = query
    if page_token:
        kwargs["pageToken"] = page_token

    resp = _execute(service.users().messages().list(**kwargs))
    ids = [msg["id"] for msg in resp.get("messages", [])]
    return ids, resp.get("nextPageToken") or None


def get_message(service, message_id: str) -> dict:
    """Fetch a full message resource (headers, MIME part tree, internalDate)."""
    return _execute(service.users().messages().get(userId="me", id=message_id, format="full"))


def fetch_internal_dates(
    service,
    message_ids: list[str],
    callback: Callable[[int, int], None] | None = None,
) -> dict[str, int]:
    """Fetch ``internalDate`` for messages in batches using BatchHttpRequest.

    Messages whose lookup fails are left out of the result.
    """
    results: dict[str, int] = {}
    total_batches = (len(message_ids) + BATCH_SIZE - 1) // BATCH_SIZE

    for batch_num in range(total_batches):
        start = batch_num * BATCH_SIZE
        end = min(start + BATCH_SIZE, len(message_ids))
        chunk = message_ids[start:end]

        batch = service.new_batch_http_request()

        def _make_callback(msg_id: str):
            def _cb(request_id, response, exception):
                if exception is not None:
                    logger.debug("internalDate lookup failed for %s: %s", msg_id, exception)
                    return
                raw = response.get("internalDate")
                if raw is not None:
                    results[msg_id] = int(raw)

            return _cb

        for msg_id in chunk:
            batch.add(
                service.users().messages().get(
                    userId="me",
                    id=msg_id,
                    format="minimal",
                    fields="id,internalDate",
                ),
                callback=_make_callback(msg_id),
            )

        _execute_batch(batch)

        if callback:
            callback(batch_num + 1, total_batches)

    return results


class GmailProvider:
    """Mail provider used by the sync engine, keyed by access token."""

    def __init__(self, service_factory: Callable[[str], object] = build_service) -> None:
        self._service_factory = service_factory

    def list_message_ids(
        self, access_token: str, query: str, page_token: str | None = None
    ) -> tuple[list[str], str | None]:
        return list_message_page(self._service_factory(access_token), query, page_token)

    def get_message(self, access_token: str, message_id: str) -> dict:
        return get_message(self._service_factory(access_token), message_id)

    def get_internal_dates(self, access_token: str, message_ids: list[str]) -> dict[str, int]:
        if not message_ids:
            return {}
        return fetch_internal_dates(self._service_factory(access_token), message_ids)
