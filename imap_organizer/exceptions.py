"""
Exceptions raised by IMAP Organizer.
"""


class OrganizerError(Exception):
    """Base class for all organizer errors."""


class IMAPConnectionError(OrganizerError, ConnectionError):
    """Raised when the IMAP server cannot be reached or rejects the login."""


class IMAPOperationError(OrganizerError):
    """Raised when the server answers an IMAP command with anything but OK."""

    def __init__(self, command: str, response: str):
        self.command = command
        self.response = response
        super().__init__(f"{command} failed: {response}")


class MailboxNotFoundError(OrganizerError):
    """Raised when a mailbox is still missing after it was created."""
