"""Header block parsing: fields, addresses and the derived message summary."""

from __future__ import annotations

import email.header
import re
from datetime import datetime
from email.errors import HeaderParseError
from email.utils import parseaddr, parsedate_to_datetime
from typing import Iterator, NamedTuple

from .constants import DATE_FORMAT
from .models import EmailInfo

_LINE_SPLIT_RE = re.compile(r"\r\n|\n|\r")
_ADDRESS_RE = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}$"
)


class HeaderField(NamedTuple):
    name: str
    value: str  # unfolded and stripped
    text: str  # the field's original lines, continuations included


def is_valid_address(value: str) -> bool:
    """Return True for a syntactically valid bare address like ``a@example.com``."""
    return bool(_ADDRESS_RE.match(value))


def parse_address(value: str) -> str:
    """Return the address in ``value`` if it parses as a valid email address, else "".

    Accepts bare addresses, ``<angle-addr>`` and ``Name <addr>`` forms.
    """
    if not value or not value.strip():
        return ""
    _name, address = parseaddr(value.strip())
    address = address.strip()
    return address if is_valid_address(address) else ""


def decode_header_value(value: str | None) -> str:
    """Decode RFC 2047 encoded words, falling back to the raw value."""
    if not value:
        return ""
    try:
        fragments = email.header.decode_header(value)
    except (ValueError, HeaderParseError):
        return value.strip()
    decoded = []
    for fragment, encoding in fragments:
        if isinstance(fragment, bytes):
            try:
                decoded.append(fragment.decode(encoding or "utf-8", errors="replace"))
            except LookupError:
                decoded.append(fragment.decode("utf-8", errors="replace"))
        else:
            decoded.append(fragment)
    return "".join(decoded).strip()


def iter_header_fields(raw: str) -> Iterator[HeaderField]:
    """Yield header fields up to the first blank line.

    Folded continuation lines are joined onto their field; lines that are
    neither a field nor a continuation are skipped.
    """
    current: HeaderField | None = None
    for line in _LINE_SPLIT_RE.split(raw):
        if not line.strip():
            if current is not None:
                break
            continue
        if line[0] in " \t":
            if current is not None:
                current = current._replace(
                    value=f"{current.value} {line.strip()}".strip(),
                    text=f"{current.text}\r\n{line}",
                )
            continue
        if current is not None:
            yield current
            current = None
        name, sep, value = line.partition(":")
        if sep and name.strip() and " " not in name.strip():
            current = HeaderField(name.strip(), value.strip(), line)
    if current is not None:
        yield current


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def split_addresses(value: str) -> list[str]:
    """Split a comma-separated address list, keeping only valid addresses."""
    return [address for address in (parse_address(part) for part in value.split(",")) if address]


def format_date(value: str) -> str | None:
    """Reformat a Date header into DATE_FORMAT, keeping its wall-clock time."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    return parsed.strftime(DATE_FORMAT)


def parse_ledger_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return None


def extract_email_info(header_raw: str) -> EmailInfo:
    """Build the message summary stored in the ledger."""
    senders: list[str] = []
    receivers: list[str] = []
    subject: str | None = None
    date: str | None = None

    for field in iter_header_fields(header_raw):
        name = field.name.lower()
        if name == "return-path":
            senders.append(parse_address(field.value))
        elif name == "delivered-to":
            receivers.append(parse_address(field.value))
        elif name == "to":
            receivers.extend(split_addresses(field.value))
        elif name == "subject" and subject is None:
            subject = decode_header_value(field.value)
        elif name == "date" and date is None:
            date = format_date(field.value)

    return EmailInfo(
        sender=_unique(senders),
        receivers=_unique(receivers),
        subject=subject,
        date=date,
    )
