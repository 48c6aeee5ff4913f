"""Loading, validating and bootstrapping the mail configuration file."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import constants
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class Login:
    hostname: str
    port: int
    username: str
    password: str


@dataclass
class Whitelist:
    """Allowed sender and receiver addresses, compared case-insensitively."""

    senders: list[str] = field(default_factory=list)
    receivers: list[str] = field(default_factory=list)


@dataclass
class MailConfig:
    login: Login
    whitelist: Whitelist
    headers_to_filter: list[str] = field(
        default_factory=lambda: list(constants.DEFAULT_HEADERS_TO_KEEP)
    )

    @property
    def is_placeholder(self) -> bool:
        """True while the login still holds the generated default values."""
        placeholder = constants.PLACEHOLDER_LOGIN
        return (
            self.login.hostname == placeholder["hostname"]
            and self.login.port == placeholder["port"]
            and self.login.username == placeholder["username"]
            and self.login.password == placeholder["password"]
        )


def default_config() -> dict:
    """Return the placeholder configuration written on first run."""
    return {
        "login": dict(constants.PLACEHOLDER_LOGIN),
        "whitelist": {k: list(v) for k, v in constants.PLACEHOLDER_WHITELIST.items()},
        "headers_to_filter": list(constants.DEFAULT_HEADERS_TO_KEEP),
    }


def _read_json(path: Path) -> dict | None:
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path} is not valid JSON: {exc}") from exc
    return data or None


def ensure_config(path: Path | None = None, custom_path: Path | None = None) -> Path:
    """Make sure a non-empty config file exists at ``path``.

    An existing non-empty file is left alone.  Otherwise the custom config
    at ``custom_path`` is copied when it exists and is non-empty, and the
    placeholder configuration is written in every other case.
    """
    path = Path(path or constants.CONFIG_PATH)
    if path.exists() and path.read_text(encoding="utf-8").strip():
        return path

    config: dict | None = None
    if custom_path is not None:
        custom_path = Path(custom_path)
        if custom_path.exists():
            config = _read_json(custom_path)
            if config:
                logger.info("Using custom configuration from %s", custom_path)
            else:
                logger.warning("Custom configuration %s is empty, using the default configuration", custom_path)
        else:
            logger.warning("Custom configuration %s not found, using the default configuration", custom_path)

    if not config:
        config = default_config()
        logger.info("Writing default configuration to %s", path)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=4)
    return path


def load_config(path: Path | None = None) -> MailConfig:
    """Parse the config file into a :class:`MailConfig`."""
    path = Path(path or constants.CONFIG_PATH)
    data = _read_json(path)
    if data is None:
        raise ConfigError(f"Configuration file {path} is missing or empty. Run 'config init' first.")

    try:
        login = data["login"]
        whitelist = data["whitelist"]
        return MailConfig(
            login=Login(
                hostname=str(login["hostname"]),
                port=int(login["port"]),
                username=str(login["username"]),
                password=str(login["password"]),
            ),
            whitelist=Whitelist(
                senders=list(whitelist.get("senders", [])),
                receivers=list(whitelist.get("receivers", [])),
            ),
            headers_to_filter=list(
                data.get("headers_to_filter", constants.DEFAULT_HEADERS_TO_KEEP)
            ),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc!r}") from exc


def ensure_directories(*paths: Path) -> None:
    """Create the given directories (defaults: config, data, eml and attachment dirs)."""
    if not paths:
        paths = (
            constants.CONFIG_PATH.parent,
            constants.LEDGER_PATH.parent,
            constants.EML_DIR,
            constants.ATTACHMENTS_DIR,
        )
    for directory in paths:
        Path(directory).mkdir(parents=True, exist_ok=True)
