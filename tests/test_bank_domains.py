"""Tests for the bank sender allow-list."""

from gmail_txn_sync.bank_domains import BankDomainGate, normalize_domain, sender_domain


def test_sender_domain_from_header():
    """The domain is taken from the address part of a From header."""
    assert sender_domain("HDFC Bank <Alerts@HDFCBank.net>") == "hdfcbank.net"
    assert sender_domain("alerts@icicibank.com") == "icicibank.com"
    assert sender_domain("not an address") == ""
    assert sender_domain("") == ""


def test_normalize_strips_one_alerting_label():
    """Only one leading alerting label is stripped."""
    assert normalize_domain("alerts.hdfcbank.net") == "hdfcbank.net"
    assert normalize_domain("mail.icicibank.com") == "icicibank.com"
    assert normalize_domain("hdfcbank.net") == "hdfcbank.net"


def test_exact_domain_is_eligible(gate):
    """Senders on an allow-listed domain pass."""
    assert gate.is_eligible_sender("alerts@hdfcbank.net")
    assert gate.is_eligible_sender("ICICI Bank <credit_cards@icicibank.com>")


def test_subdomains_are_eligible(gate):
    """Subdomains of an allow-listed domain pass."""
    assert gate.is_eligible_sender("alerts@alerts.hdfcbank.net")
    assert gate.is_eligible_sender("noreply@cards.icicibank.com")


def test_non_bank_senders_rejected(gate):
    """Lookalike and unrelated domains are rejected."""
    assert not gate.is_eligible_sender("deals@amazon.in")
    assert not gate.is_eligible_sender("alerts@nothdfcbank.net")
    assert not gate.is_eligible_sender("alerts@hdfcbank.net.evil.com")
    assert not gate.is_eligible_sender("")


def test_empty_allow_list_rejects_everything():
    """With no allow-list nothing is eligible."""
    gate = BankDomainGate([])
    assert not gate.is_eligible_sender("alerts@hdfcbank.net")


def test_allow_list_is_normalized():
    gate = BankDomainGate([" HDFCBank.net ", ""])
    assert gate.domains == frozenset({"hdfcbank.net"})
    assert gate.is_eligible_sender("alerts@hdfcbank.net")
