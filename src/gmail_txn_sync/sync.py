"""Incremental sync - list new alert emails, classify them, persist, advance the watermark."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from .ai_client import ClassificationClient
from .auth import TokenExchange, token_exchange_for
from .bank_domains import BankDomainGate
from .classifier import TransactionClassifier
from .constants import GMAIL_DATE_FORMAT, INITIAL_SYNC_DAYS, SUBJECT_KEYWORDS, WATERMARK_MARGIN_DAYS
from .errors import DuplicateTransactionError, SyncError
from .extractor import authoritative_timestamp, extract_body, extract_headers
from .gmail_client import GmailProvider
from .models import Classified, MailCredential, ServiceUnavailable, SyncResult
from .store import Database

logger = logging.getLogger(__name__)

ADDED = "added"
DUPLICATE = "duplicate"
REJECTED = "rejected"
DEFERRED = "deferred"


def resolve_timezone(name: str) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def build_query(
    bank_domains: Iterable[str],
    watermark_ms: int | None,
    today: date,
    tz: tzinfo = timezone.utc,
    initial_days: int = INITIAL_SYNC_DAYS,
    margin_days: int = WATERMARK_MARGIN_DAYS,
) -> str:
    """Gmail search query for transaction-like mail from allow-listed banks.

    Gmail's ``after:`` filter has day granularity, so a known watermark is
    rounded down to its day and pushed back by a safety margin.  Without a
    watermark the first sync only looks back ``initial_days``.
    """
    if watermark_ms is not None:
        since = datetime.fromtimestamp(watermark_ms / 1000, tz).date() - timedelta(days=margin_days)
    else:
        since = today - timedelta(days=initial_days)

    parts = [f"after:{since.strftime(GMAIL_DATE_FORMAT)}", "subject:(" + " OR ".join(SUBJECT_KEYWORDS) + ")"]
    domains = sorted(bank_domains)
    if domains:
        parts.append("from:(" + " OR ".join(domains) + ")")
    return " ".join(parts)


class IncrementalSyncEngine:
    """Runs one user's sync: TOKEN, QUERY, LIST, per-message work, WATERMARK."""

    def __init__(
        self,
        db: Database,
        provider,
        classifier: TransactionClassifier,
        token_exchange: TokenExchange,
        bank_domains: Iterable[str] = (),
        tz: tzinfo = timezone.utc,
        initial_days: int = INITIAL_SYNC_DAYS,
        margin_days: int = WATERMARK_MARGIN_DAYS,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.provider = provider
        self.classifier = classifier
        self.token_exchange = token_exchange
        self.bank_domains = frozenset(bank_domains)
        self.tz = tz
        self.initial_days = initial_days
        self.margin_days = margin_days
        self.now = now or (lambda: datetime.now(tz))

    def query_for(self, credential: MailCredential) -> str:
        return build_query(
            self.bank_domains,
            credential.last_synced_internal_date_ms,
            self.now().date(),
            tz=self.tz,
            initial_days=self.initial_days,
            margin_days=self.margin_days,
        )

    def sync_user(self, user_id: str) -> SyncResult:
        logger.info("Starting Gmail sync for user %s", user_id)

        credential = self.db.credentials.get(user_id)
        if credential is None or not credential.has_refresh_token:
            logger.warning("No Gmail credential found for user %s", user_id)
            return SyncResult.failed("No Gmail credential found")

        try:
            access_token = self.token_exchange(credential.refresh_token)
        except SyncError as exc:
            logger.error("Token refresh failed for user %s: %s", user_id, exc)
            return SyncResult.failed(str(exc))

        query = self.query_for(credential)
        logger.debug("Gmail search query for user %s: %s", user_id, query)

        try:
            message_ids = self._list_all(access_token, query)
        except Exception as exc:  # noqa: BLE001
            logger.error("Listing messages failed for user %s: %s", user_id, exc)
            return SyncResult.failed(f"Listing messages failed: {exc}")

        logger.info("Found %d candidate emails for user %s", len(message_ids), user_id)

        result = SyncResult(success=True)
        processed_ids: list[str] = []
        deferred = 0
        for message_id in message_ids:
            if self._already_synced(user_id, message_id):
                result.details.append(f"Already synced: {message_id}")
                continue

            result.processed += 1
            try:
                status = self._process_message(user_id, access_token, message_id)
            except Exception as exc:  # noqa: BLE001
                result.skipped += 1
                result.details.append(f"Error: {message_id} - {exc}")
                logger.warning("Failed to process message %s for user %s: %s", message_id, user_id, exc)
                continue

            if status == DEFERRED:
                deferred += 1
                result.skipped += 1
                result.details.append(f"Deferred: {message_id}")
                continue

            processed_ids.append(message_id)
            if status == ADDED:
                result.added += 1
                result.details.append(f"Added: {message_id}")
            elif status == DUPLICATE:
                result.skipped += 1
                result.details.append(f"Duplicate: {message_id}")
            else:
                result.skipped += 1
                result.details.append(f"Skipped: {message_id}")

        if deferred:
            # Deferred mail must stay inside the next run's query window
            logger.info(
                "%d message(s) deferred for user %s; watermark left unchanged", deferred, user_id
            )
        else:
            self._advance_watermark(user_id, access_token, credential, processed_ids)

        logger.info(
            "Sync completed for user %s: %d processed, %d added, %d skipped",
            user_id,
            result.processed,
            result.added,
            result.skipped,
        )
        return result

    # --- steps ---

    def _list_all(self, access_token: str, query: str) -> list[str]:
        ids: list[str] = []
        page_token: str | None = None
        while True:
            page, page_token = self.provider.list_message_ids(access_token, query, page_token)
            ids.extend(page)
            if not page_token:
                break
        return ids

    def _already_synced(self, user_id: str, message_id: str) -> bool:
        if self.db.transactions.find_by_message_id(user_id, message_id) is not None:
            return True
        return self.db.scanned.is_scanned(user_id, message_id)

    def _process_message(self, user_id: str, access_token: str, message_id: str) -> str:
        message = self.provider.get_message(access_token, message_id)
        headers = extract_headers(message)
        body = extract_body(message)
        internal_ms = authoritative_timestamp(message)

        outcome = self.classifier.evaluate(
            user_id, message_id, headers.sender, headers.subject, body, headers.date_header
        )
        if isinstance(outcome, ServiceUnavailable):
            # Not recorded in the ledger so the next run evaluates it again
            logger.info("Deferring message %s: %s", message_id, outcome.reason)
            return DEFERRED

        if not isinstance(outcome, Classified):
            status = REJECTED
        else:
            tx = outcome.transaction
            if internal_ms is not None:
                tx = tx.with_date(self._local_date(internal_ms))
            else:
                logger.warning(
                    "No internalDate for message %s; keeping extracted date %s", message_id, tx.date
                )
            try:
                self.db.transactions.save(tx)
                status = ADDED
                logger.info("Saved transaction: %s %s from %s", tx.amount, tx.currency.value, tx.merchant)
            except DuplicateTransactionError as exc:
                logger.debug("Duplicate transaction for message %s: %s", message_id, exc)
                status = DUPLICATE

        self.db.scanned.mark_scanned(user_id, message_id, internal_ms, status)
        return status

    def _advance_watermark(
        self,
        user_id: str,
        access_token: str,
        credential: MailCredential,
        processed_ids: list[str],
    ) -> None:
        if not processed_ids:
            return
        try:
            dates = self.provider.get_internal_dates(access_token, processed_ids)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Watermark lookup failed for user %s: %s", user_id, exc)
            return
        if not dates:
            return

        newest_id = max(dates, key=lambda mid: dates[mid])
        newest = dates[newest_id]
        current = credential.last_synced_internal_date_ms
        if current is not None and newest <= current:
            return

        try:
            if self.db.credentials.update_watermark(user_id, newest, newest_id):
                logger.info("Watermark for user %s advanced to %s (%s)", user_id, newest, newest_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Watermark update failed for user %s: %s", user_id, exc)

    def _local_date(self, internal_ms: int) -> date:
        return datetime.fromtimestamp(internal_ms / 1000, self.tz).date()


def build_engine(
    settings,
    db: Database,
    provider=None,
    token_exchange: TokenExchange | None = None,
) -> IncrementalSyncEngine:
    """Wire an engine from settings with the real Gmail, OAuth and Gemini collaborators."""
    tz = resolve_timezone(settings.TIMEZONE)
    classifier = TransactionClassifier(
        BankDomainGate(settings.bank_domains),
        ClassificationClient.from_settings(settings),
        today=lambda: datetime.now(tz).date(),
    )
    return IncrementalSyncEngine(
        db=db,
        provider=provider or GmailProvider(),
        classifier=classifier,
        token_exchange=token_exchange or token_exchange_for(settings),
        bank_domains=settings.bank_domains,
        tz=tz,
        initial_days=settings.INITIAL_SYNC_DAYS,
        margin_days=settings.WATERMARK_MARGIN_DAYS,
    )
