"""Data models for Gmail Transaction Sync."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Union

from .fingerprint import fingerprint


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: str | None) -> TransactionMethod | None:
        """Map a loose label like "credit card" or "UPI" onto a member, else None."""
        if not value or not str(value).strip():
            return None
        key = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return None


class Currency(str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"


@dataclass
class MailCredential:
    """Stored Gmail access for one user plus the incremental-sync watermark."""

    user_id: str
    refresh_token: str
    last_synced_internal_date_ms: int | None = None  # Gmail internalDate of newest scanned message
    last_synced_message_id: str | None = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token and self.refresh_token.strip())


@dataclass(frozen=True)
class CandidateTransaction:
    """A transaction extracted from one email, ready to be persisted."""

    user_id: str
    message_id: str
    sender: str
    description: str
    amount: Decimal
    currency: Currency
    date: date
    type: TransactionType
    method: TransactionMethod
    merchant: str
    fingerprint: str
    source: str = "regex"  # "regex" or "ai"

    @classmethod
    def build(
        cls,
        *,
        user_id: str,
        message_id: str,
        sender: str,
        description: str,
        amount: Decimal,
        currency: Currency,
        date: date,
        type: TransactionType | None,
        method: TransactionMethod | None,
        merchant: str,
        source: str = "regex",
    ) -> CandidateTransaction:
        amount = Decimal(str(amount)).quantize(Decimal("0.01"))
        return cls(
            user_id=user_id,
            message_id=message_id,
            sender=sender,
            description=description,
            amount=amount,
            currency=currency,
            date=date,
            type=type or TransactionType.DEBIT,
            method=method or TransactionMethod.OTHER,
            merchant=merchant,
            fingerprint=fingerprint(user_id, amount, date, merchant),
            source=source,
        )

    def with_date(self, new_date: date) -> CandidateTransaction:
        """Return a copy dated ``new_date`` with the fingerprint recomputed."""
        return replace(
            self,
            date=new_date,
            fingerprint=fingerprint(self.user_id, self.amount, new_date, self.merchant),
        )


@dataclass
class SyncResult:
    """Outcome of one sync run for one user."""

    success: bool
    processed: int = 0
    added: int = 0
    skipped: int = 0
    error: str | None = None
    details: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, error: str) -> SyncResult:
        return cls(success=False, error=error)


@dataclass(frozen=True)
class MessageHeaders:
    subject: str = ""
    sender: str = ""
    date_header: str = ""


# --- Classification outcomes ---


@dataclass(frozen=True)
class Classified:
    transaction: CandidateTransaction


@dataclass(frozen=True)
class NotTransaction:
    reason: str


@dataclass(frozen=True)
class ServiceUnavailable:
    reason: str


ClassificationOutcome = Union[Classified, NotTransaction, ServiceUnavailable]


@dataclass(frozen=True)
class AiExtraction:
    """Fields parsed from a classification-service answer (all optional)."""

    is_transaction: bool | None = None
    type: str | None = None
    amount: object = None
    merchant: str | None = None
    date: str | None = None
    method: str | None = None
