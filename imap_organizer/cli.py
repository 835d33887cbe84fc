"""
Command Line Interface for IMAP Organizer.

Provides the CLI entry point for the organizer.
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ConfigPrompter, SettingsManager
from .log import setup_logging
from .organizer import MailboxOrganizer


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the optional positional arguments."""
    parser = argparse.ArgumentParser(
        prog="imap-organizer",
        description="Organize your IMAP inbox into per-recipient mailboxes.",
    )
    parser.add_argument("ip", nargs="?", help="mail server domain name or IP address")
    parser.add_argument("port", nargs="?", help="mail server port (default 993)")
    parser.add_argument("username", nargs="?", help="mail server username")
    parser.add_argument("domain", nargs="?", help="recipient domain to match")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for IMAP Organizer."""
    try:
        args = parse_args(argv)

        print(f"IMAP Organizer v{__version__}")
        print("=" * 40)

        settings_manager = SettingsManager()
        log_settings = settings_manager.get_log_settings()
        setup_logging(log_settings["log_file"], log_settings["level"])

        config = ConfigPrompter(settings_manager).configure(
            args.ip, args.port, args.username, args.domain)

        organizer = MailboxOrganizer(config)
        organizer.connect()
        summary = organizer.run()

        print(f"\n[done] Messages processed: {summary.total}")
        print(f"[done] Moved:              {summary.moved}")
        print(f"[done] Unroutable:         {summary.unroutable}")
        if summary.created:
            print(f"[done] Mailboxes created:  {', '.join(summary.created)}")
        if config.dry_run:
            print("[note] DRY-RUN enabled - no changes were made. Set dry_run=false in settings.json to execute.")

        return 0

    except KeyboardInterrupt:
        print("\n[!] Interrupted by user")
        return 1
    except Exception as e:
        print(f"[!] Unexpected error: {e}")
        raise


if __name__ == "__main__":
    sys.exit(main())
