"""JSON ledger of processed messages and their attachments."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable

from . import constants
from .headers import parse_ledger_date

logger = logging.getLogger(__name__)


def _summary(key: str, record: dict) -> dict:
    return {
        "key": key,
        "subject": record.get("subject"),
        "date": record.get("date"),
        "read_date": record.get("read_date"),
        "attachments": record.get("attachments", {}),
    }


class Ledger:
    """Durable mapping from message hash to processed-message record.

    The ledger is the only record of what has already been harvested.
    Writes go through a temporary file that replaces the ledger in one
    step; concurrent writers are not supported.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or constants.LEDGER_PATH)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._records: dict[str, dict] = self._load()

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Ledger %s is not valid JSON, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ledger %s does not hold a JSON object, starting empty", self.path)
            return {}
        return data

    def _write(self, data: dict[str, dict]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
        os.replace(tmp, self.path)

    # --- public API ---

    @property
    def records(self) -> dict[str, dict]:
        return self._records

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def reload(self) -> None:
        """Re-read the ledger file, dropping in-memory state."""
        self._records = self._load()

    def attachment_hashes(self) -> set[str]:
        """Union of the attachment keys of every entry, computed fresh."""
        hashes: set[str] = set()
        for record in self._records.values():
            hashes.update((record.get("attachments") or {}).keys())
        return hashes

    def save(self, new_records: dict[str, dict]) -> None:
        """Merge ``new_records`` into the ledger (last write wins) and rewrite it."""
        merged = {**self._records, **new_records}
        self._write(merged)
        self._records = merged

    def update_attachment_status(self, filenames: Iterable[str], status: dict) -> int:
        """Merge ``status`` into the status of each named attachment file.

        ``filenames`` are attachment file names (``<hash>.<ext>``, any
        directory part is ignored).  Only the first ledger entry holding a
        matching key and extension is updated.  Returns the number of
        updated attachments.
        """
        updated = 0
        for full_name in filenames:
            name = Path(full_name).name
            stem, dot, extension = name.rpartition(".")
            if not dot:
                stem, extension = name, ""

            matched = False
            mismatched = False
            for key, record in self._records.items():
                attachment = (record.get("attachments") or {}).get(stem)
                if attachment is None:
                    continue
                if attachment.get("extension") != extension:
                    mismatched = True
                    logger.warning(
                        "Wrong attachment for %s: entry %s records extension '%s'",
                        full_name,
                        key,
                        attachment.get("extension"),
                    )
                    continue
                attachment["status"] = {**attachment.get("status", {}), **status}
                updated += 1
                matched = True
                break

            if not matched and not mismatched:
                logger.warning("No ledgered attachment matches %s", full_name)

        if updated:
            self._write(self._records)
        return updated

    def attachments_by_month(self, year: int, month: int) -> list[dict]:
        """Entries with attachments whose message date falls in ``year``/``month``."""
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        if year < 1:
            raise ValueError(f"Invalid year: {year}")

        rows: list[dict] = []
        for key, record in self._records.items():
            if not record.get("attachments"):
                continue
            date = parse_ledger_date(record.get("date"))
            if date is not None and date.year == year and date.month == month:
                rows.append(_summary(key, record))
        return rows

    def all_attachments(self) -> list[dict]:
        """Every entry that carries attachments."""
        return [_summary(key, record) for key, record in self._records.items() if record.get("attachments")]

    def get_info(self) -> dict:
        """Return ledger statistics."""
        file_size = self.path.stat().st_size if self.path.exists() else 0
        attachment_count = sum(len(r.get("attachments") or {}) for r in self._records.values())
        read_dates = [d for d in (parse_ledger_date(r.get("read_date")) for r in self._records.values()) if d]
        last_read = max(read_dates).strftime(constants.DATE_FORMAT) if read_dates else None

        return {
            "file_size": file_size,
            "message_count": len(self._records),
            "attachment_count": attachment_count,
            "last_read_date": last_read,
        }
