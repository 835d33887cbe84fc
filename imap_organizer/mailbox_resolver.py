"""
Recipient to mailbox name resolution.

Pure functions without any I/O: the organizer feeds them fetched messages
and looks up or creates the resulting mailbox itself.
"""

import email
import re
from typing import Optional

from .imap_manager import Message

ENVELOPE_TO_HEADER = "Envelope-to"
FOLDING_RE = re.compile(r"\r?\n[ \t]+")


def generate_mailbox_name(address: str) -> str:
    """Derive a mailbox name from the local part of an address.

    jane.doe@example.com becomes jane_doe.
    """
    local_part = address.rsplit("@", 1)[0]
    return local_part.replace(".", "_")


def matches_domain(address: Optional[str], domain: str) -> bool:
    """Check whether an address belongs to the given domain."""
    if not address or not domain:
        return False
    return address.lower().endswith("@" + domain.lower())


def first_recipient(message: Message) -> str:
    """Return the first To address of a message, or an empty string."""
    return next(iter(message.to), "").lower()


def envelope_to(headers_raw: str) -> Optional[str]:
    """Return the unfolded Envelope-to header value, if present."""
    if not headers_raw:
        return None
    value = email.message_from_string(headers_raw).get(ENVELOPE_TO_HEADER)
    if value is None:
        return None
    return FOLDING_RE.sub(" ", str(value))


def resolve_mailbox_name(message: Message, domain: str) -> Optional[str]:
    """Work out which sub-mailbox a message belongs in.

    The first To recipient wins when it is in the matched domain. Otherwise
    the first address of the Envelope-to header added by the relay is used.

    Args:
        message: Fetched message headers
        domain: Recipient domain to match

    Returns:
        Mailbox name, or None if no recipient matches the domain
    """
    recipient = first_recipient(message)
    if matches_domain(recipient, domain):
        return generate_mailbox_name(recipient)

    envelope = envelope_to(message.headers_raw)
    if envelope is not None:
        recipient = envelope.split(",")[0].strip().lower()
        if matches_domain(recipient, domain):
            return generate_mailbox_name(recipient)

    return None
