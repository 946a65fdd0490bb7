"""Two-stage transaction classification: regex heuristics, then AI fallback."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Callable

from .ai_client import ClassificationClient
from .bank_domains import BankDomainGate, sender_domain
from .extractor import parse_from_header
from .models import (
    AiExtraction,
    CandidateTransaction,
    Classified,
    ClassificationOutcome,
    Currency,
    NotTransaction,
    ServiceUnavailable,
    TransactionMethod,
    TransactionType,
)

logger = logging.getLogger(__name__)

TYPE_DEBIT = re.compile(r"\b(debited|spent|withdrawn|deducted|paid|purchase|bill|emi|autopay)\b", re.I)
TYPE_CREDIT = re.compile(r"\b(credited|received|deposit|refund|cashback|reward)\b", re.I)

_CURRENCY = r"(?:(?<![A-Za-z])(?:INR|Rs\.?|USD|EUR)(?![A-Za-z])|[$₹€])"
_NUMBER = r"([0-9][0-9,]*(?:\.[0-9]{1,2})?)"
AMOUNT_PATTERN = re.compile(rf"({_CURRENCY})\s*{_NUMBER}|{_NUMBER}\s*({_CURRENCY})", re.I)

MERCHANT_AFTER_PREPOSITION = re.compile(r"\b(?:at|to|in|from|via)\s+([A-Za-z0-9 &._-]{2,60})", re.I)
# Trailing clause that follows the merchant name in most alerts ("at Amazon on 15-07-24")
MERCHANT_TAIL = re.compile(r"\s+(?:on|for|ref|dated|using|with|avl|by|via|at|towards)\b.*$", re.I)

DATE_PATTERN = re.compile(
    r"\b(\d{1,2}[-/ ](?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec|\d{1,2})[-/ ]\d{2,4}"
    r"|\d{4}-\d{2}-\d{2}|\d{2}/\d{2}/\d{4})\b",
    re.I,
)
DATE_FORMATS = [
    "%d-%b-%Y",
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %b %Y",
    "%d/%b/%Y",
    "%d-%b-%y",
    "%d %b %y",
    "%d/%m/%y",
    "%d-%m-%y",
]

POSITIVE_TERMS = re.compile(
    r"\b(debited|credited|transaction|txn|payment|purchase|spent|withdrawn|transfer|imps|neft|upi|"
    r"pos|card|paid|settled|bill|emi|wallet|deposit|refund)\b",
    re.I,
)
NEGATIVE_TERMS = re.compile(
    r"\b(balance|available balance|closing balance|a/c balance|statement|e-statement|voucher|"
    r"gift\s*card|coupon|promo\s*code|offer\s*code|promo|offer|otp|password|verification|login|"
    r"security|alert\s*only)\b",
    re.I,
)
PROMOTIONAL = re.compile(r"(voucher|gift\s*card|coupon|promo|offer)", re.I)

# Checked in order; the first hit decides the method
METHOD_PATTERNS: list[tuple[re.Pattern, TransactionMethod]] = [
    (re.compile(r"\b(upi|vpa|bhim|gpay|google pay|phonepe|paytm upi)\b", re.I), TransactionMethod.UPI),
    (re.compile(r"\b(paypal)\b", re.I), TransactionMethod.PAYPAL),
    (re.compile(r"\b(atm withdrawal|cash withdrawal|cash)\b", re.I), TransactionMethod.CASH),
    (re.compile(r"\b(neft|imps|rtgs|bank transfer|fund transfer)\b", re.I), TransactionMethod.BANK_TRANSFER),
    (re.compile(r"\b(net banking|internet banking)\b", re.I), TransactionMethod.NET_BANKING),
    (re.compile(r"\b(credit card)\b", re.I), TransactionMethod.CREDIT_CARD),
    (re.compile(r"\b(debit card)\b", re.I), TransactionMethod.DEBIT_CARD),
    # Generic card spend is treated as a debit card
    (re.compile(r"\b(card|pos|swipe|terminal)\b", re.I), TransactionMethod.DEBIT_CARD),
]


def detect_type(text: str) -> TransactionType | None:
    """Debit keywords first, then credit keywords; the later match wins."""
    found = None
    if TYPE_DEBIT.search(text):
        found = TransactionType.DEBIT
    if TYPE_CREDIT.search(text):
        found = TransactionType.CREDIT
    return found


def _currency_for(token: str) -> Currency:
    token = token.upper()
    if token in ("$", "USD"):
        return Currency.USD
    if token in ("€", "EUR"):
        return Currency.EUR
    return Currency.INR


def extract_amount(text: str) -> tuple[Decimal, Currency] | None:
    """First currency-tagged amount in the text, or None."""
    m = AMOUNT_PATTERN.search(text)
    if not m:
        return None
    raw = m.group(2) if m.group(2) is not None else m.group(3)
    token = m.group(1) if m.group(1) is not None else m.group(4)
    try:
        amount = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None
    return amount.quantize(Decimal("0.01")), _currency_for(token or "")


def extract_merchant(text: str, sender: str) -> str | None:
    m = MERCHANT_AFTER_PREPOSITION.search(text)
    if m:
        name = MERCHANT_TAIL.sub("", m.group(1).strip())
        name = re.sub(r"[.,;:]+$", "", name).strip()
        if name:
            return name
    domain = sender_domain(sender)
    if domain:
        return re.sub(r"^www\.", "", domain)
    return None


def parse_date(value: str | None) -> date | None:
    """Parse an email Date header or a free-text date token."""
    if not value or not value.strip():
        return None
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return parsedate_to_datetime(value).date()
    except (TypeError, ValueError, IndexError):
        return None


def extract_date(text: str, header: str | None, today: Callable[[], date]) -> date:
    """Header date, else the first date-like token in the text, else today."""
    parsed = parse_date(header)
    if parsed:
        return parsed
    for m in DATE_PATTERN.finditer(text):
        parsed = parse_date(m.group(1))
        if parsed:
            return parsed
    return today()


def detect_method(text: str) -> TransactionMethod:
    for pattern, method in METHOD_PATTERNS:
        if pattern.search(text or ""):
            return method
    return TransactionMethod.OTHER


def _to_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


class TransactionClassifier:
    """Decides whether an email is a transaction alert and extracts its fields."""

    def __init__(
        self,
        gate: BankDomainGate,
        ai_client: ClassificationClient | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.gate = gate
        self.ai_client = ai_client
        self.today = today

    def classify(
        self,
        user_id: str,
        message_id: str,
        sender: str,
        subject: str,
        body: str,
        date_header: str = "",
    ) -> CandidateTransaction | None:
        outcome = self.evaluate(user_id, message_id, sender, subject, body, date_header)
        return outcome.transaction if isinstance(outcome, Classified) else None

    def evaluate(
        self,
        user_id: str,
        message_id: str,
        sender: str,
        subject: str,
        body: str,
        date_header: str = "",
    ) -> ClassificationOutcome:
        subject = subject or ""
        body = body or ""
        if not self.gate.is_eligible_sender(sender):
            logger.debug("Rejected sender (not a bank): %s", sender)
            return NotTransaction("sender not on bank allow-list")

        logger.debug("Evaluating %s from %s: %s", message_id, sender, subject)
        text = subject + "\n" + body
        _, address = parse_from_header(sender)

        txn_type = detect_type(text)
        amount = extract_amount(text)
        merchant = extract_merchant(text, address)
        when = extract_date(text, date_header, self.today)
        method = detect_method(text)

        has_positive = POSITIVE_TERMS.search(text) is not None
        has_negative = NEGATIVE_TERMS.search(text) is not None

        if has_negative and (txn_type is None or PROMOTIONAL.search(text)):
            logger.info("Rejected non-transactional content: %s", subject)
            return NotTransaction("balance, statement, OTP or promotional content")

        if amount and amount[0] > 0 and when and merchant and (txn_type is not None or has_positive):
            tx = CandidateTransaction.build(
                user_id=user_id,
                message_id=message_id,
                sender=address,
                description=subject,
                amount=amount[0],
                currency=amount[1],
                date=when,
                type=txn_type,
                method=method,
                merchant=merchant,
                source="regex",
            )
            logger.info("Transaction from regex: %s %s %s %s", tx.amount, tx.date, tx.merchant, tx.type.value)
            return Classified(tx)

        return self._fallback(
            user_id,
            message_id,
            sender,
            address,
            subject,
            body,
            date_header,
            txn_type,
            amount[1] if amount else Currency.INR,
        )

    def _fallback(
        self,
        user_id: str,
        message_id: str,
        sender: str,
        address: str,
        subject: str,
        body: str,
        date_header: str,
        txn_type: TransactionType | None,
        currency: Currency,
    ) -> ClassificationOutcome:
        if self.ai_client is None or not self.ai_client.enabled:
            logger.debug("AI fallback not configured, skipping: %s", subject)
            return NotTransaction("regex stage rejected; AI fallback disabled")

        answer = self.ai_client.extract(subject, sender, date_header, body)
        if isinstance(answer, (NotTransaction, ServiceUnavailable)):
            logger.info("AI fallback gave no transaction for %s: %s", message_id, answer.reason)
            return answer

        return self._from_ai(user_id, message_id, address, subject, body, answer, txn_type, currency)

    def _from_ai(
        self,
        user_id: str,
        message_id: str,
        address: str,
        subject: str,
        body: str,
        answer: AiExtraction,
        txn_type: TransactionType | None,
        currency: Currency,
    ) -> ClassificationOutcome:
        amount = _to_decimal(answer.amount)
        when = parse_date(answer.date) if isinstance(answer.date, str) else None
        merchant = answer.merchant.strip() if isinstance(answer.merchant, str) else ""

        if amount is None or amount <= 0 or when is None or not merchant:
            logger.info(
                "AI parsing incomplete - amount: %s, date: %s, merchant: %s for: %s",
                answer.amount,
                answer.date,
                answer.merchant,
                subject,
            )
            return NotTransaction("AI answer incomplete")

        ai_type = str(answer.type or "").strip().lower()
        parsed_type = TransactionType(ai_type) if ai_type in ("credit", "debit") else txn_type
        method = TransactionMethod.parse(answer.method) or detect_method(subject + "\n" + body)

        tx = CandidateTransaction.build(
            user_id=user_id,
            message_id=message_id,
            sender=address,
            description=subject,
            amount=amount,
            currency=currency,
            date=when,
            type=parsed_type,
            method=method,
            merchant=merchant,
            source="ai",
        )
        logger.info("Transaction from AI: %s %s %s %s", tx.amount, tx.date, tx.merchant, tx.type.value)
        return Classified(tx)
