"""
IMAP session management.

Wraps a single imaplib SSL connection and exposes the operations the
organizer needs: list, search, fetch, move and create.
"""

import email
import imaplib
import re
from dataclasses import dataclass, field
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.utils import getaddresses
from typing import Callable, Dict, List, Optional, Tuple

from .exceptions import IMAPConnectionError, IMAPOperationError

DEFAULT_DELIMITER = "."

LIST_LINE_RE = re.compile(
    r'^\((?P<flags>[^)]*)\)\s+(?P<delim>"(?:[^"\\]|\\.)*"|NIL)\s+(?P<name>.*?)\s*$',
    re.IGNORECASE,
)
LITERAL_MARKER_RE = re.compile(r"\{\d+\}$")


@dataclass(frozen=True)
class MailboxEntry:
    """A mailbox as reported by LIST."""

    short_path: str
    full_path: str
    delimiter: Optional[str] = DEFAULT_DELIMITER
    flags: Tuple[str, ...] = ()


@dataclass
class Message:
    """Headers of one message, kept only while it is being processed."""

    uid: str
    to: Dict[str, str] = field(default_factory=dict)
    to_string: str = ""
    headers_raw: str = ""
    subject: str = ""


def quote_mailbox(name: str) -> str:
    """Quote a mailbox name for use in an IMAP command."""
    escaped = name.replace("\\", "\\\\").replace('"', r'\"')
    return f'"{escaped}"'


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace(r"\\", "\\").replace(r'\"', '"')
    return value


def decode_header_value(value: Optional[str]) -> str:
    """Decode an RFC 2047 header value, falling back to the raw text."""
    if not value:
        return ""
    try:
        return str(make_header(decode_header(value))).strip()
    except (LookupError, UnicodeDecodeError, HeaderParseError):
        return str(value).strip()


def parse_list_line(item, server_prefix: str = "") -> Optional[MailboxEntry]:
    """Parse one LIST response item into a MailboxEntry.

    Args:
        item: A bytes line, or a (header, literal) tuple when the server
            sent the name as a literal
        server_prefix: Server reference prepended to build the full path

    Returns:
        MailboxEntry, or None if the line cannot be parsed
    """
    if isinstance(item, tuple):
        header = item[0].decode("utf-8", errors="replace")
        header = LITERAL_MARKER_RE.sub("", header.strip())
        literal_name = item[1].decode("utf-8", errors="replace")
        text = f"{header} {quote_mailbox(literal_name)}"
    elif isinstance(item, bytes):
        text = item.decode("utf-8", errors="replace")
    else:
        return None

    match = LIST_LINE_RE.match(text)
    if not match:
        return None

    flags = tuple(token for token in match.group("flags").split() if token)
    delim = match.group("delim")
    delimiter = None if delim.upper() == "NIL" else _unquote(delim)
    name = _unquote(match.group("name"))
    return MailboxEntry(short_path=name, full_path=f"{server_prefix}{name}",
                        delimiter=delimiter, flags=flags)


def parse_message(uid: str, raw_headers: bytes) -> Message:
    """Build a Message from a raw header block.

    Args:
        uid: Message UID
        raw_headers: Raw header bytes as fetched from the server

    Returns:
        Message with recipients keyed by lower-cased address, in header order
    """
    msg = email.message_from_bytes(raw_headers)
    recipients: Dict[str, str] = {}
    for name, addr in getaddresses(msg.get_all("To", [])):
        addr = addr.strip().lower()
        if addr and addr not in recipients:
            recipients[addr] = decode_header_value(name)

    return Message(
        uid=uid,
        to=recipients,
        to_string=decode_header_value(msg.get("To", "")),
        headers_raw=raw_headers.decode("utf-8", errors="replace"),
        subject=decode_header_value(msg.get("Subject", "")),
    )


class IMAPSession:
    """One authenticated IMAP session on a selected mailbox."""

    def __init__(self, conn: imaplib.IMAP4, host: str, port: int, mailbox: str = "INBOX"):
        """Initialize IMAP session.

        Args:
            conn: Logged-in IMAP connection with the mailbox selected
            host: IMAP server hostname
            port: IMAP server port
            mailbox: Currently selected mailbox
        """
        self.conn = conn
        self.host = host
        self.port = port
        self.mailbox = mailbox
        self.server_prefix = f"{{{host}:{port}/imap/ssl}}"

    @classmethod
    def connect(cls, host: str, port: int, username: str, password: str,
                mailbox: str = "INBOX", timeout: Optional[float] = None,
                imap_factory: Callable[..., imaplib.IMAP4] = imaplib.IMAP4_SSL) -> "IMAPSession":
        """Open an SSL connection, log in and select the mailbox.

        Args:
            host: IMAP server hostname or IP address
            port: IMAP server port
            username: IMAP username
            password: IMAP password
            mailbox: Mailbox to select
            timeout: Socket timeout in seconds, None to block indefinitely
            imap_factory: Connection class, IMAP4_SSL unless overridden

        Returns:
            Connected IMAPSession

        Raises:
            IMAPConnectionError: The server is unreachable or rejects the login
        """
        try:
            conn = imap_factory(host, port, timeout=timeout)
        except (imaplib.IMAP4.error, OSError) as e:
            raise IMAPConnectionError(f"Cannot connect to {host}:{port}: {e}") from e

        try:
            conn.login(username, password)
            typ, data = conn.select(quote_mailbox(mailbox))
        except (imaplib.IMAP4.error, OSError) as e:
            raise IMAPConnectionError(f"Cannot log in to {host}:{port} as {username}: {e}") from e
        if typ != "OK":
            raise IMAPConnectionError(f"Cannot select {mailbox}: {_describe(data)}")

        return cls(conn, host, port, mailbox)

    def _run(self, command: str, func: Callable, *args) -> list:
        try:
            typ, data = func(*args)
        except imaplib.IMAP4.error as e:
            raise IMAPOperationError(command, str(e)) from e
        if typ != "OK":
            raise IMAPOperationError(command, _describe(data))
        return data

    def list_mailboxes(self, pattern: str = "*") -> List[MailboxEntry]:
        """List all mailboxes matching the pattern.

        Returns:
            Mailbox entries in server order
        """
        data = self._run("LIST", self.conn.list, '""', pattern)
        entries = []
        for item in data:
            if not item:
                continue
            entry = parse_list_line(item, self.server_prefix)
            if entry:
                entries.append(entry)
        return entries

    def hierarchy_delimiter(self) -> str:
        """Delimiter of the selected mailbox, '.' when the server reports NIL."""
        data = self._run("LIST", self.conn.list, '""', quote_mailbox(self.mailbox))
        for item in data:
            entry = parse_list_line(item, self.server_prefix) if item else None
            if entry and entry.delimiter:
                return entry.delimiter
        return DEFAULT_DELIMITER

    def search_all(self) -> List[str]:
        """Return the UIDs of every message in the selected mailbox."""
        data = self._run("SEARCH", self.conn.uid, "SEARCH", None, "ALL")
        if not data or data[0] is None:
            return []
        return data[0].decode().split()

    def fetch_message(self, uid: str) -> Message:
        """Fetch the headers of one message without marking it seen."""
        data = self._run("FETCH", self.conn.uid, "FETCH", uid, "(BODY.PEEK[HEADER])")
        for part in data:
            if isinstance(part, tuple) and len(part) >= 2:
                return parse_message(uid, part[1])
        raise IMAPOperationError("FETCH", f"no headers returned for UID {uid}")

    def move(self, uid: str, mailbox: str) -> None:
        """Move a message to another mailbox.

        Uses UID MOVE (RFC 6851) and falls back to COPY, STORE and EXPUNGE
        when the server does not support it.
        """
        target = quote_mailbox(mailbox)
        try:
            typ, _ = self.conn.uid("MOVE", uid, target)
            if typ == "OK":
                return
        except imaplib.IMAP4.error:
            pass

        self._run("COPY", self.conn.uid, "COPY", uid, target)
        self._run("STORE", self.conn.uid, "STORE", uid, "+FLAGS", r"(\Deleted)")
        self._run("EXPUNGE", self.conn.expunge)

    def create_mailbox(self, name: str) -> str:
        """Create a mailbox nested under the selected one.

        Returns:
            The created mailbox path
        """
        path = f"{self.mailbox}{self.hierarchy_delimiter()}{name}"
        self._run("CREATE", self.conn.create, quote_mailbox(path))
        return path

    def logout(self) -> None:
        """Close the session."""
        try:
            self.conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass


def _describe(data) -> str:
    parts = []
    for item in data or []:
        if isinstance(item, bytes):
            parts.append(item.decode("utf-8", errors="replace"))
        elif item is not None:
            parts.append(str(item))
    return " ".join(parts) or "no response"
