"""Data models for Mail Harvester."""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import DEFAULT_MIME_TYPE, MIME_TYPES


@dataclass(frozen=True)
class ListingEntry:
    """One line of the server's LIST response."""

    number: int
    size: int


@dataclass
class EmailInfo:
    """Summary derived from a message's (trimmed) header block."""

    sender: list[str] = field(default_factory=list)  # Return-Path addresses
    receivers: list[str] = field(default_factory=list)  # Delivered-To and To addresses
    subject: str | None = None
    date: str | None = None  # DATE_FORMAT


@dataclass
class Attachment:
    """A spreadsheet attachment extracted from a message body."""

    content_hash: str  # key of the base64 payload, also the file name stem
    original_filename: str
    extension: str
    size: int  # decoded length
    content: bytes = field(default=b"", repr=False)
    is_duplicate: bool = False
    status: dict = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return f"{self.content_hash}.{self.extension}"

    @property
    def mime(self) -> str:
        return MIME_TYPES.get(self.extension, DEFAULT_MIME_TYPE)

    def to_record(self) -> dict:
        """Serialise to the ledger's attachment record."""
        return {
            "filename": self.filename,
            "original_file_name": self.original_filename,
            "extension": self.extension,
            "status": {"duplicate": self.is_duplicate, **self.status},
            "size": self.size,
            "mime": self.mime,
            "is_duplicate": self.is_duplicate,
        }


@dataclass
class Message:
    """A mailbox entry, enriched stage by stage during one run."""

    number: int  # 1-based, only valid for the current session
    size: int
    header_raw: str
    read_date: str = ""
    header_hash: str = ""
    is_duplicate: bool = False
    body_raw: bytes = field(default=b"", repr=False)
    body_hash: str = ""
    info: EmailInfo | None = None
    attachments: dict[str, Attachment] = field(default_factory=dict)

    def to_record(self) -> dict:
        """Serialise to the ledger's message record."""
        info = self.info or EmailInfo()
        record: dict = {
            "from": info.sender,
            "to": info.receivers,
            "subject": info.subject,
            "date": info.date,
            "read_date": self.read_date,
        }
        if self.attachments:
            record["attachments"] = {
                key: attachment.to_record() for key, attachment in self.attachments.items()
            }
        return record


@dataclass(frozen=True)
class Mismatch:
    """A ledgered attachment whose file is missing or no longer matches its key."""

    ledger_key: str
    attachment_key: str
    original_filename: str
    expected_filename: str


@dataclass
class HarvestResult:
    """Counters describing one harvest run."""

    listed: int = 0
    whitelisted: int = 0
    duplicates: int = 0
    fetched: int = 0
    saved: int = 0
    attachments_stored: int = 0
    duplicate_attachments: int = 0
    saved_keys: list[str] = field(default_factory=list)
