"""POP3 session driver: TLS transport, commands and line-oriented replies."""

from __future__ import annotations

import logging
import socket
import ssl

from .constants import ACK_LINES, CONNECT_TIMEOUT, CRLF, LINE_ENCODING, TERMINATOR
from .errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)


def _decode(raw: bytes) -> str:
    # surrogateescape keeps the round trip back to the original bytes lossless
    return raw.decode(LINE_ENCODING, errors="surrogateescape")


def encode_lines(lines: list[str]) -> bytes:
    """Join lines read from a session back into the bytes the server sent."""
    return "".join(lines).encode(LINE_ENCODING, errors="surrogateescape")


class Pop3Session:
    """A single exclusive request/response connection to a POP3 server.

    Only one command may be in flight at a time.  Failing to open the
    transport, or losing it later, raises :class:`TransportError`; there
    is no retry.
    """

    def __init__(
        self,
        hostname: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        timeout: float = CONNECT_TIMEOUT,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.hostname = hostname
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.ssl_context = ssl_context
        self._sock = None
        self._file = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def _open_socket(self):
        context = self.ssl_context or ssl.create_default_context()
        raw = socket.create_connection((self.hostname, self.port), timeout=self.timeout)
        try:
            return context.wrap_socket(raw, server_hostname=self.hostname)
        except OSError:
            raw.close()
            raise

    def connect(self) -> None:
        """Open the TLS transport and consume the server greeting."""
        if self.connected:
            return
        try:
            self._sock = self._open_socket()
        except OSError as exc:
            raise TransportError(
                f"Unable to connect to the POP3 server {self.hostname}:{self.port}: {exc}"
            ) from exc
        self._file = self._sock.makefile("rb")
        try:
            greeting = self.read_line()
        except TransportError:
            self.close()
            raise
        if greeting is None:
            self.close()
            raise TransportError(f"{self.hostname}:{self.port} closed the connection without a greeting")
        logger.debug("Connected to %s:%s: %s", self.hostname, self.port, greeting.strip())

    def login(self) -> None:
        """Authenticate with USER/PASS.  Does nothing when not connected."""
        if not self.connected or self.username is None:
            return
        try:
            self.send_command(f"USER {self.username}")
            self.read_line()
            self.send_command(f"PASS {self.password}")
            reply = self.read_line()
        except TransportError:
            self.close()
            raise
        if reply is None or reply.startswith("-ERR"):
            self.close()
            raise TransportError(f"Login rejected for {self.username}")

    def _lost(self, exc: OSError) -> TransportError:
        return TransportError(f"Connection to {self.hostname}:{self.port} failed: {exc}")

    def send_command(self, text: str) -> None:
        if not self.connected:
            raise TransportError("Not connected to a POP3 server")
        try:
            self._sock.sendall((text + CRLF).encode(LINE_ENCODING))
        except OSError as exc:
            raise self._lost(exc) from exc

    def read_line(self) -> str | None:
        """Return the next line including its terminator, or None at end of stream.

        Socket errors and timeouts raise :class:`TransportError`.
        """
        if self._file is None:
            return None
        try:
            raw = self._file.readline()
        except OSError as exc:
            raise self._lost(exc) from exc
        if not raw:
            return None
        return _decode(raw)

    def read_multiline(self) -> list[str]:
        """Read a dot-terminated reply and return its content lines.

        The leading ``+OK`` status line, acknowledgment lines and the
        terminator are dropped and dot-stuffing is undone.  A leading
        ``-ERR`` status raises :class:`ProtocolError`.
        """
        lines: list[str] = []
        first = True
        while True:
            line = self.read_line()
            if line is None:
                logger.warning("Stream ended before the multi-line terminator")
                break
            bare = line.rstrip("\r\n")
            if first:
                first = False
                if bare.startswith("-ERR"):
                    raise ProtocolError(bare)
                if bare.startswith("+OK"):
                    continue
            if bare == TERMINATOR:
                break
            if bare.strip() in ACK_LINES:
                continue
            if line.startswith(".."):
                line = line[1:]
            lines.append(line)
        return lines

    def command(self, text: str) -> list[str]:
        """Send a command that expects a multi-line reply."""
        self.send_command(text)
        return self.read_multiline()

    def close(self) -> None:
        """Send QUIT and release the transport.  Safe to call at any time."""
        if self._sock is None:
            return
        try:
            self._sock.sendall(("QUIT" + CRLF).encode(LINE_ENCODING))
        except OSError as exc:
            logger.debug("QUIT failed: %s", exc)
        finally:
            if self._file is not None:
                self._file.close()
            self._sock.close()
            self._sock = None
            self._file = None

    # --- context manager ---

    def __enter__(self) -> Pop3Session:
        self.connect()
        self.login()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
