from __future__ import annotations

import functools
import imaplib

from imap_organizer.config import OrganizerConfig
from imap_organizer.imap_manager import IMAPSession


def unquote(name: str) -> str:
    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        return name[1:-1].replace(r'\"', '"').replace(r"\\", "\\")
    return name


def make_headers(
    to: str | None = "jane.doe@example.com",
    envelope_to: str | None = None,
    subject: str = "Hello",
) -> bytes:
    lines = ["From: Sender <sender@remote.test>"]
    if to is not None:
        lines.append(f"To: {to}")
    lines.append(f"Subject: {subject}")
    if envelope_to is not None:
        lines.append(f"Envelope-to: {envelope_to}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def make_config(**overrides) -> OrganizerConfig:
    values = dict(
        server_address="mail.example.com",
        port=993,
        username="catchall@example.com",
        password="secret",
        match_domain="example.com",
    )
    values.update(overrides)
    return OrganizerConfig(**values)


class FakeIMAPConnection:
    """In-memory stand-in for imaplib.IMAP4_SSL."""

    def __init__(
        self,
        mailboxes: list[str] | None = None,
        messages: dict[str, bytes] | None = None,
        delimiter: str | None = ".",
        support_move: bool = True,
        list_created: bool = True,
        password: str = "secret",
    ) -> None:
        self.mailboxes = list(mailboxes or ["INBOX"])
        self.messages = dict(messages or {})
        self.delimiter = delimiter
        self.support_move = support_move
        self.list_created = list_created
        self.password = password
        self.moved: dict[str, str] = {}
        self.copied: dict[str, str] = {}
        self.stored: list[str] = []
        self.created: list[str] = []
        self.expunged = 0
        self.logged_out = False
        self.selected: str | None = None

    def _list_line(self, name: str) -> bytes:
        delim = "NIL" if self.delimiter is None else f'"{self.delimiter}"'
        return f'(\\HasNoChildren) {delim} "{name}"'.encode("utf-8")

    def login(self, username: str, password: str):
        if password != self.password:
            raise imaplib.IMAP4.error("[AUTHENTICATIONFAILED] Invalid credentials")
        return "OK", [b"LOGIN completed"]

    def select(self, mailbox: str):
        self.selected = unquote(mailbox)
        if self.selected not in self.mailboxes:
            return "NO", [b"Mailbox does not exist"]
        return "OK", [str(len(self.messages)).encode()]

    def list(self, directory: str = '""', pattern: str = "*"):
        pattern = unquote(pattern)
        names = self.mailboxes if pattern == "*" else [m for m in self.mailboxes if m == pattern]
        return "OK", [self._list_line(name) for name in names] or [None]

    def uid(self, command: str, *args):
        command = command.upper()
        if command == "SEARCH":
            return "OK", [" ".join(self.messages).encode()]
        if command == "FETCH":
            uid = args[0]
            raw = self.messages.get(uid)
            if raw is None:
                return "OK", [None]
            meta = f"1 (UID {uid} BODY[HEADER] {{{len(raw)}}}".encode()
            return "OK", [(meta, raw), b")"]
        if command == "MOVE":
            if not self.support_move:
                raise imaplib.IMAP4.error("UID command error: BAD [b'Unknown command MOVE']")
            uid, target = args
            self.moved[uid] = unquote(target)
            self.messages.pop(uid, None)
            return "OK", [b"MOVE completed"]
        if command == "COPY":
            uid, target = args
            self.copied[uid] = unquote(target)
            return "OK", [b"COPY completed"]
        if command == "STORE":
            self.stored.append(args[0])
            return "OK", [b"STORE completed"]
        return "BAD", [b"unsupported"]

    def expunge(self):
        self.expunged += 1
        for uid in self.stored:
            self.messages.pop(uid, None)
        return "OK", [None]

    def create(self, mailbox: str):
        name = unquote(mailbox)
        self.created.append(name)
        if self.list_created:
            self.mailboxes.append(name)
        return "OK", [b"CREATE completed"]

    def logout(self):
        self.logged_out = True
        return "BYE", [b"Logging out"]


def session_factory_for(conn: FakeIMAPConnection):
    """Return a session factory that connects to the fake instead of a server."""
    return functools.partial(IMAPSession.connect, imap_factory=lambda host, port, timeout=None: conn)
