"""Constants for Mail Harvester."""

import os
from pathlib import Path

# --- Paths ---
APP_DIR = Path(os.environ.get("MAIL_HARVESTER_HOME", Path.home() / ".mail-harvester"))
CONFIG_DIR = APP_DIR / "config"
DATA_DIR = APP_DIR / "data"
EML_DIR = APP_DIR / "emails"
ATTACHMENTS_DIR = APP_DIR / "excels"
CONFIG_PATH = CONFIG_DIR / "mail_configurations.json"
LEDGER_PATH = DATA_DIR / "processed_emails.json"

# --- POP3 ---
CRLF = "\r\n"
TERMINATOR = "."
ACK_LINES = ("+OK", "-ERR unimplemented")
CONNECT_TIMEOUT = 60  # seconds
LINE_ENCODING = "utf-8"

# --- Attachments ---
ALLOWED_EXTENSIONS = ("xlsx", "xls", "csv")
MIME_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "csv": "text/csv",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

# --- Ledger ---
DATE_FORMAT = "%d.%m.%Y %H:%M:%S"
HASH_ALGORITHM = "md5"

# --- Default configuration ---
PLACEHOLDER_LOGIN = {
    "hostname": "yourhost.name.com",
    "port": 995,
    "username": "test@test.com",
    "password": "yourPasswordToEmailServer",
}
PLACEHOLDER_WHITELIST = {
    "senders": ["test@test.com"],
    "receivers": ["test@test.com"],
}
DEFAULT_HEADERS_TO_KEEP = [
    "From",
    "Return-Path",
    "To",
    "Date",
    "Subject",
    "Delivered-To",
]

# --- Display ---
SUBJECT_DISPLAY_LIMIT = 60
