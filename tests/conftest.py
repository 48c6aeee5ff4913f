"""Shared fixtures for tests."""

from __future__ import annotations

import base64
from collections import deque

import pytest

from mail_harvester import constants
from mail_harvester.config import Login, MailConfig, Whitelist
from mail_harvester.ledger import Ledger
from mail_harvester.session import Pop3Session

SENDER = "reports@supplier.com"
RECEIVER = "inbox@shop.com"


def _b64_lines(data: bytes) -> list[str]:
    encoded = base64.b64encode(data).decode("ascii")
    return [encoded[i : i + 76] for i in range(0, len(encoded), 76)]


def build_message(
    sender: str = SENDER,
    to: str = RECEIVER,
    subject: str = "Monthly report",
    date: str = "Tue, 05 Mar 2024 10:15:00 +0100",
    message_id: str = "<1@supplier.com>",
    attachments: list[tuple[str, bytes, str]] | None = None,
) -> bytes:
    """Build a raw multipart message with base64 attachments.

    ``attachments`` holds ``(filename, content, content_type)`` tuples.
    """
    boundary = "=_boundary_42"
    lines = [
        f"Return-Path: <{sender}>",
        f"Delivered-To: {to.split(',')[0].strip()}",
        f"From: Supplier Reports <{sender}>",
        f"To: {to}",
        f"Subject: {subject}",
        f"Date: {date}",
        f"Message-ID: {message_id}",
        "X-Mailer: ReportBot 2.1",
        "MIME-Version: 1.0",
        f'Content-Type: multipart/mixed; boundary="{boundary}"',
        "",
        f"--{boundary}",
        'Content-Type: text/plain; charset="utf-8"',
        "",
        "Please find the report attached.",
    ]
    for filename, content, content_type in attachments or []:
        lines += [
            f"--{boundary}",
            f'Content-Type: {content_type}; name="{filename}"',
            f'Content-Disposition: attachment; filename="{filename}"',
            "Content-Transfer-Encoding: base64",
            "X-Attachment-Id: f_lt1x2",
            "",
            *_b64_lines(content),
        ]
    lines.append(f"--{boundary}--")
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


CSV_CONTENT = b"sku;qty\r\nA-100;4\r\nB-200;12\r\n"
XLSX_CONTENT = b"PK\x03\x04" + bytes(range(256)) * 2
PDF_CONTENT = b"%PDF-1.4 not a spreadsheet"


class FakePop3Server:
    """In-memory POP3 mailbox answering the commands the session sends."""

    def __init__(self, messages: list[bytes], password: str = "secret") -> None:
        self.messages = list(messages)
        self.password = password
        self.commands: list[str] = []
        self.failing: set[str] = set()  # commands answered with -ERR
        self.list_noise: list[bytes] = []  # extra lines inserted into LIST replies
        self.broken: set[str] = set()  # verbs whose send times out
        self.quit = False

    def respond(self, command: str) -> list[bytes]:
        self.commands.append(command)
        verb, _, arg = command.partition(" ")
        verb = verb.upper()

        if command in self.failing or verb in self.failing:
            return [b"-ERR command failed\r\n"]
        if verb == "USER":
            return [b"+OK\r\n"]
        if verb == "PASS":
            if arg == self.password:
                return [b"+OK logged in\r\n"]
            return [b"-ERR authentication failed\r\n"]
        if verb == "QUIT":
            self.quit = True
            return [b"+OK bye\r\n"]
        if verb == "LIST":
            lines = [f"+OK {len(self.messages)} messages\r\n".encode(), *self.list_noise]
            lines += [f"{i} {len(raw)}\r\n".encode() for i, raw in enumerate(self.messages, start=1)]
            return lines + [b".\r\n"]

        number = int(arg.split()[0]) if arg.split() and arg.split()[0].isdigit() else 0
        if not 1 <= number <= len(self.messages):
            return [b"-ERR no such message\r\n"]
        raw = self.messages[number - 1]
        if verb == "TOP":
            raw = raw.split(b"\r\n\r\n", 1)[0] + b"\r\n\r\n"
        elif verb != "RETR":
            return [b"-ERR unknown command\r\n"]

        lines = [b"+OK\r\n"]
        for line in raw.splitlines(keepends=True):
            lines.append(b"." + line if line.startswith(b".") else line)
        return lines + [b".\r\n"]


class _FakeFile:
    def __init__(self, lines: deque) -> None:
        self._lines = lines

    def readline(self) -> bytes:
        return self._lines.popleft() if self._lines else b""

    def close(self) -> None:
        pass


class FakeSocket:
    def __init__(self, server: FakePop3Server) -> None:
        self.server = server
        self.pending: deque = deque([b"+OK POP3 ready\r\n"])
        self.closed = False

    def sendall(self, data: bytes) -> None:
        command = data.decode("utf-8").rstrip("\r\n")
        if command.partition(" ")[0].upper() in self.server.broken:
            raise TimeoutError("timed out")
        self.pending.extend(self.server.respond(command))

    def makefile(self, mode: str) -> _FakeFile:
        return _FakeFile(self.pending)

    def close(self) -> None:
        self.closed = True


class FakeSession(Pop3Session):
    """Session talking to a :class:`FakePop3Server` instead of the network."""

    def __init__(self, server: FakePop3Server, username: str = "user", password: str = "secret") -> None:
        super().__init__("pop.example.com", 995, username, password)
        self.server = server

    def _open_socket(self):
        return FakeSocket(self.server)


@pytest.fixture
def app_home(tmp_path, monkeypatch):
    """Point every application path into a temporary directory."""
    monkeypatch.setattr(constants, "APP_DIR", tmp_path)
    monkeypatch.setattr(constants, "CONFIG_PATH", tmp_path / "config" / "mail_configurations.json")
    monkeypatch.setattr(constants, "LEDGER_PATH", tmp_path / "data" / "processed_emails.json")
    monkeypatch.setattr(constants, "EML_DIR", tmp_path / "emails")
    monkeypatch.setattr(constants, "ATTACHMENTS_DIR", tmp_path / "excels")
    return tmp_path


@pytest.fixture
def whitelist() -> Whitelist:
    return Whitelist(senders=["Reports@Supplier.com"], receivers=[RECEIVER])


@pytest.fixture
def mail_config(whitelist: Whitelist) -> MailConfig:
    return MailConfig(
        login=Login(hostname="pop.example.com", port=995, username="user", password="secret"),
        whitelist=whitelist,
    )


@pytest.fixture
def ledger(app_home) -> Ledger:
    return Ledger()


@pytest.fixture
def csv_message() -> bytes:
    return build_message(attachments=[("report.csv", CSV_CONTENT, "text/csv")])


@pytest.fixture
def mixed_message() -> bytes:
    return build_message(
        subject="Stock and invoice",
        message_id="<2@supplier.com>",
        attachments=[
            ("stock.xlsx", XLSX_CONTENT, "application/octet-stream"),
            ("invoice.pdf", PDF_CONTENT, "application/pdf"),
        ],
    )


@pytest.fixture
def pdf_message() -> bytes:
    return build_message(
        subject="Invoice only",
        message_id="<3@supplier.com>",
        attachments=[("invoice.pdf", PDF_CONTENT, "application/pdf")],
    )
