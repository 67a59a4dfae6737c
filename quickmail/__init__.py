"""Small webmail backend: SQLite-cached IMAP inbox, SMTP sending and a JSON HTTP API."""

__version__ = "0.1.0"