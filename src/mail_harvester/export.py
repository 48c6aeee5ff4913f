"""Export ledgered attachments to CSV or JSON."""

import csv
import json

from .display import console

_FIELDS = [
    "message",
    "date",
    "subject",
    "filename",
    "original_file_name",
    "extension",
    "size",
    "mime",
    "is_duplicate",
    "status",
]


def _flatten(rows: list[dict]) -> list[dict]:
    flat = []
    for row in rows:
        for attachment in row["attachments"].values():
            flat.append(
                {
                    "message": row["key"],
                    "date": row.get("date"),
                    "subject": row.get("subject"),
                    "filename": attachment.get("filename"),
                    "original_file_name": attachment.get("original_file_name"),
                    "extension": attachment.get("extension"),
                    "size": attachment.get("size"),
                    "mime": attachment.get("mime"),
                    "is_duplicate": attachment.get("is_duplicate", False),
                    "status": attachment.get("status", {}),
                }
            )
    return flat


def export_attachments(rows: list[dict], format: str, output_path: str) -> int:
    """Export ledger rows to a file, one record per attachment.

    Args:
        rows: Ledger rows as returned by the ledger query methods.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.

    Returns:
        The number of exported attachments.
    """
    flat = _flatten(rows)

    if format == "csv":
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=_FIELDS)
            writer.writeheader()
            for record in flat:
                writer.writerow({**record, "status": json.dumps(record["status"], sort_keys=True)})
    elif format == "json":
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(flat, f, indent=2)
    else:
        raise ValueError(f"Unsupported export format: {format}")

    console.print(f"Results saved to {output_path}")
    return len(flat)
