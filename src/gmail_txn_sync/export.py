"""Export stored transactions to CSV or JSON."""

import csv
import json

from .models import CandidateTransaction

FIELDNAMES = [
    "date",
    "type",
    "amount",
    "currency",
    "merchant",
    "method",
    "description",
    "sender",
    "message_id",
    "source",
    "fingerprint",
]


def _row(tx: CandidateTransaction) -> dict:
    return {
        "date": tx.date.isoformat(),
        "type": tx.type.value,
        "amount": str(tx.amount),
        "currency": tx.currency.value,
        "merchant": tx.merchant,
        "method": tx.method.value,
        "description": tx.description,
        "sender": tx.sender,
        "message_id": tx.message_id,
        "source": tx.source,
        "fingerprint": tx.fingerprint,
    }


def export_transactions(transactions: list[CandidateTransaction], format: str, output_path: str) -> int:
    """Export transactions to a file.

    Args:
        transactions: The transactions to export.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.

    Returns:
        Number of rows written.
    """
    rows = [_row(tx) for tx in transactions]

    if format == "csv":
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
            writer.writeheader()
            writer.writerows(rows)
    elif format == "json":
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(rows, f, indent=2, ensure_ascii=False)
    else:
        raise ValueError(f"Unsupported export format: {format}")

    return len(rows)
