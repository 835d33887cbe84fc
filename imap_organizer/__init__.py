"""
IMAP Organizer Package

Sorts the messages of an IMAP inbox into per-recipient sub-mailboxes.
"""

__version__ = "1.0.0"

from .config import ConfigPrompter, OrganizerConfig, SettingsManager
from .exceptions import IMAPConnectionError, IMAPOperationError, MailboxNotFoundError, OrganizerError
from .imap_manager import IMAPSession, MailboxEntry, Message
from .organizer import MailboxOrganizer, RunSummary

__all__ = [
    "ConfigPrompter",
    "OrganizerConfig",
    "SettingsManager",
    "IMAPConnectionError",
    "IMAPOperationError",
    "MailboxNotFoundError",
    "OrganizerError",
    "IMAPSession",
    "MailboxEntry",
    "Message",
    "MailboxOrganizer",
    "RunSummary",
]
