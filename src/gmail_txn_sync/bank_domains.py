"""Allow-list check for bank / card issuer sender domains."""

from __future__ import annotations

import re
from typing import Iterable

from .constants import SENDER_SUBDOMAIN_PREFIXES
from .extractor import parse_from_header

_PREFIX_RE = re.compile(
    r"^(?:" + "|".join(re.escape(p) for p in SENDER_SUBDOMAIN_PREFIXES) + r")\."
)


def sender_domain(address: str) -> str:
    """Return the lowercased domain of an address or From header, or ""."""
    if not address:
        return ""
    _, email = parse_from_header(address)
    if "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower()


def normalize_domain(domain: str) -> str:
    """Strip one known alerting subdomain label (e.g. "alerts.") from a domain."""
    return _PREFIX_RE.sub("", domain.lower(), count=1)


class BankDomainGate:
    """Decides whether a sender belongs to an allow-listed financial institution.

    An empty allow-list rejects every sender.
    """

    def __init__(self, domains: Iterable[str]) -> None:
        self.domains = frozenset(d.strip().lower() for d in domains if d and d.strip())

    def is_eligible_sender(self, address: str) -> bool:
        if not self.domains:
            return False
        domain = sender_domain(address)
        if not domain:
            return False
        domain = normalize_domain(domain)
        return any(domain == bank or domain.endswith("." + bank) for bank in self.domains)
