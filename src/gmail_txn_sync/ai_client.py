"""Gemini-backed fallback classifier for emails the regex stage cannot settle."""

from __future__ import annotations

import json
import logging
import re

import requests

from .constants import AI_COOLDOWN_DEFAULT_SECONDS, GEMINI_API_URL
from .cooldown import AI_COOLDOWN, Cooldown
from .models import AiExtraction, NotTransaction, ServiceUnavailable

logger = logging.getLogger(__name__)

_RETRY_SECONDS_RE = re.compile(r"([0-9]+)")

PROMPT_TEMPLATE = (
    "You are a financial email classifier and parser. Determine if the email describes a real "
    "money transaction (card/UPI/NEFT/IMPS/POS/bank credit/debit). "
    "Ignore balance alerts, statements, OTP, vouchers, coupons, promo/offer codes, rewards, "
    "or marketing content. "
    "Return a JSON: {{ isTransaction: boolean, type: 'credit'|'debit'|null, amount: number|null, "
    "merchant: string|null, date: 'yyyy-MM-dd'|null, method: 'CASH'|'CREDIT_CARD'|'DEBIT_CARD'|"
    "'BANK_TRANSFER'|'UPI'|'NET_BANKING'|'PAYPAL'|'OTHER'|null }}. "
    "Subject: '{subject}'. Sender: '{sender}'. Date header: '{date_header}'. Body: '{body}'. "
    "If not a transaction, set isTransaction=false and others null. Return minified JSON only."
)


def build_prompt(subject: str, sender: str, date_header: str, body: str) -> str:
    return PROMPT_TEMPLATE.format(
        subject=subject or "",
        sender=sender or "",
        date_header=date_header or "",
        body=body or "",
    )


def parse_json_answer(text: str) -> dict:
    """Parse the model's JSON answer, ignoring any code fence around it."""
    text = (text or "").strip()
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        raise ValueError("no JSON object in answer")
    data = json.loads(text[start : end + 1])
    if not isinstance(data, dict):
        raise ValueError("answer is not a JSON object")
    return data


def retry_after_seconds(headers, body: str | None, default: int = AI_COOLDOWN_DEFAULT_SECONDS) -> int:
    """Cooldown length for a 429: Retry-After header, then RetryInfo in the body, then default."""
    header = (headers or {}).get("Retry-After")
    if header is not None and str(header).strip().isdigit():
        return int(str(header).strip())

    if body:
        try:
            seconds = _retry_info_seconds(json.loads(body))
        except (ValueError, TypeError) as exc:
            logger.debug("Ignoring unreadable rate-limit body: %s", exc)
            seconds = None
        if seconds is not None:
            return seconds

    return default


def _retry_info_seconds(root: object) -> int | None:
    # { error: { details: [ { "@type": ".../google.rpc.RetryInfo", retryDelay: "42s" } ] } }
    error = root.get("error") if isinstance(root, dict) else None
    details = error.get("details") if isinstance(error, dict) else None
    for detail in details if isinstance(details, list) else []:
        if not isinstance(detail, dict):
            continue
        kind = detail.get("@type")
        delay = detail.get("retryDelay")
        if isinstance(kind, str) and "retryinfo" in kind.lower() and isinstance(delay, str):
            m = _RETRY_SECONDS_RE.search(delay)
            if m:
                return int(m.group(1))
    return None


def _candidate_text(root: dict) -> str:
    # { candidates: [ { content: { parts: [ { text: "{...}" } ] } } ] }
    text = root["candidates"][0]["content"]["parts"][0]["text"]
    if not isinstance(text, str):
        raise ValueError("candidate text is not a string")
    return text


class ClassificationClient:
    """Thin client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        api_url: str = GEMINI_API_URL,
        timeout: float = 10.0,
        cooldown: Cooldown | None = None,
        default_cooldown_seconds: int = AI_COOLDOWN_DEFAULT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.api_url = api_url
        self.timeout = timeout
        self.cooldown = cooldown if cooldown is not None else AI_COOLDOWN
        self.default_cooldown_seconds = default_cooldown_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, cooldown: Cooldown | None = None) -> ClassificationClient:
        return cls(
            api_key=settings.GEMINI_API_KEY,
            api_url=settings.GEMINI_API_URL,
            timeout=settings.HTTP_TIMEOUT,
            cooldown=cooldown,
            default_cooldown_seconds=settings.AI_COOLDOWN_DEFAULT_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def extract(
        self, subject: str, sender: str, date_header: str, body: str
    ) -> AiExtraction | NotTransaction | ServiceUnavailable:
        """Ask the service about one email.

        Never raises: transport, HTTP and parse failures come back as
        ServiceUnavailable, and a 429 additionally extends the shared cooldown.
        """
        if not self.enabled:
            return ServiceUnavailable("classification service not configured")
        if self.cooldown.active():
            return ServiceUnavailable("classification service cooling down")

        payload = {"contents": [{"parts": [{"text": build_prompt(subject, sender, date_header, body)}]}]}
        try:
            resp = self.session.post(
                self.api_url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Classification request failed: %s", exc)
            return ServiceUnavailable(f"request failed: {exc}")

        if resp.status_code == 429:
            seconds = retry_after_seconds(resp.headers, resp.text, self.default_cooldown_seconds)
            self.cooldown.extend(seconds)
            return ServiceUnavailable(f"rate limited for {seconds}s")

        if not resp.ok:
            logger.warning("Classification service returned HTTP %s", resp.status_code)
            return ServiceUnavailable(f"HTTP {resp.status_code}")

        try:
            data = parse_json_answer(_candidate_text(resp.json()))
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Unparseable classification answer: %s", exc)
            return ServiceUnavailable(f"unparseable answer: {exc}")

        is_txn = data.get("isTransaction")
        if is_txn is False:
            return NotTransaction("classification service: not a transaction")

        return AiExtraction(
            is_transaction=is_txn if isinstance(is_txn, bool) else None,
            type=data.get("type"),
            amount=data.get("amount"),
            merchant=data.get("merchant"),
            date=data.get("date"),
            method=data.get("method"),
        )
