#!/usr/bin/env python3
"""
IMAP Organizer

Moves every message of an IMAP inbox into a sub-mailbox named after its
recipient, creating the sub-mailbox when it does not exist yet.

Requirements: Python 3.9+, python-dotenv.
Usage:
  1) Optionally set IMAP_HOST/IMAP_PORT/IMAP_USER/IMAP_MATCH_DOMAIN in .env
  2) Adjust settings.json as needed (log file, dry_run, mailbox)
  3) Run: python imap_organizer_cli.py [ip] [port] [username] [domain]
"""

import sys
from imap_organizer.cli import main

if __name__ == "__main__":
    sys.exit(main())
