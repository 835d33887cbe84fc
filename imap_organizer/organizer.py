"""
Mailbox organizer.

Moves every message of the selected mailbox into a sub-mailbox named after
its recipient, creating sub-mailboxes on demand.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import OrganizerConfig
from .exceptions import MailboxNotFoundError
from .imap_manager import DEFAULT_DELIMITER, IMAPSession, MailboxEntry, Message
from .log import get_logger
from .mailbox_resolver import resolve_mailbox_name

logger = get_logger()


@dataclass
class RunSummary:
    """Counters for one organizer run."""

    total: int = 0
    moved: int = 0
    unroutable: int = 0
    created: List[str] = field(default_factory=list)


class MailboxOrganizer:
    """Sorts messages into per-recipient sub-mailboxes."""

    def __init__(self, config: OrganizerConfig,
                 session_factory: Callable[..., IMAPSession] = IMAPSession.connect):
        """Initialize the organizer.

        Args:
            config: Run configuration
            session_factory: Callable opening an IMAPSession, IMAPSession.connect
                unless overridden
        """
        self.config = config
        self.session_factory = session_factory
        self.session: Optional[IMAPSession] = None
        self.mailboxes: List[MailboxEntry] = []
        self.summary = RunSummary()

    def connect(self) -> IMAPSession:
        """Open the authenticated session on the configured mailbox.

        Raises:
            IMAPConnectionError: Credentials or network are invalid
        """
        self.session = self.session_factory(
            self.config.server_address,
            self.config.port,
            self.config.username,
            self.config.password,
            mailbox=self.config.mailbox,
            timeout=self.config.timeout,
        )
        print(f"[i] Connected to {self.config.server_address}:{self.config.port} ({self.config.mailbox})")
        return self.session

    def close(self) -> None:
        """Log out of the session if one is open."""
        if self.session is not None:
            self.session.logout()
            self.session = None

    def load_mailboxes(self) -> List[MailboxEntry]:
        """Refresh the cached mailbox list."""
        self.mailboxes = self.session.list_mailboxes("*")
        return self.mailboxes

    def run(self) -> RunSummary:
        """Organize every message of the selected mailbox.

        Returns:
            RunSummary with processed, moved and unroutable counts
        """
        if self.session is None:
            self.connect()

        try:
            self.load_mailboxes()
            uids = self.session.search_all()
            print(f"[i] {len(uids)} messages in {self.config.mailbox}")

            for uid in uids:
                message = self.session.fetch_message(uid)
                self.summary.total += 1
                destination = self.resolve_destination(message)
                if destination:
                    logger.info("Email moved to %s", destination)
                    if not self.config.dry_run:
                        self.session.move(uid, destination)
                    self.summary.moved += 1
                else:
                    logger.error("Unknown email %s", message.to_string)
                    self.summary.unroutable += 1
        finally:
            self.close()

        return self.summary

    def resolve_destination(self, message: Message) -> Optional[str]:
        """Return the mailbox a message should be moved to, creating it if needed.

        Args:
            message: Fetched message headers

        Returns:
            Mailbox path, or None when the message cannot be routed
        """
        name = resolve_mailbox_name(message, self.config.match_domain)
        if name is None:
            return None
        return self.find_or_create_mailbox(name)

    def _find_mailbox(self, name: str) -> Optional[str]:
        for entry in self.mailboxes:
            delimiter = entry.delimiter or DEFAULT_DELIMITER
            if entry.short_path.endswith(delimiter + name):
                return entry.short_path
        return None

    def find_or_create_mailbox(self, name: str) -> str:
        """Find a mailbox ending with the given name, creating it once if missing.

        Args:
            name: Mailbox name derived from the recipient

        Returns:
            Path of the matching mailbox

        Raises:
            MailboxNotFoundError: The mailbox is still missing after creation
        """
        created = False
        while True:
            path = self._find_mailbox(name)
            if path is not None:
                return path
            if created:
                raise MailboxNotFoundError(
                    f"Mailbox {name} was created but the server does not list it")

            if self.config.dry_run:
                logger.info("Mailbox would be created %s", name)
                return self._plan_mailbox(name)

            logger.info("Mailbox created %s", name)
            self.session.create_mailbox(name)
            self.summary.created.append(name)
            created = True
            self.load_mailboxes()

    def _plan_mailbox(self, name: str) -> str:
        # Dry runs only record the mailbox locally so it is announced once.
        delimiter = self.session.hierarchy_delimiter()
        path = f"{self.config.mailbox}{delimiter}{name}"
        self.mailboxes.append(MailboxEntry(short_path=path,
                                           full_path=f"{self.session.server_prefix}{path}",
                                           delimiter=delimiter))
        self.summary.created.append(name)
        return path
