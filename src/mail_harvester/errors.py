"""Exceptions raised by Mail Harvester."""


class MailHarvesterError(Exception):
    """Base class for all Mail Harvester errors."""


class TransportError(MailHarvesterError):
    """The connection to the POP3 server could not be established."""


class ProtocolError(MailHarvesterError):
    """The server rejected a command with an ``-ERR`` status."""


class ConfigError(MailHarvesterError):
    """The configuration file is missing, malformed or still a placeholder."""
