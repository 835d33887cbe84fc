"""
Configuration management for IMAP Organizer.

Handles loading of the settings files with support for local overrides,
.env defaults, and the interactive prompting that produces the immutable
run configuration.
"""

import copy
import getpass
import ipaddress
import json
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from dotenv import find_dotenv, load_dotenv

DOMAIN_CHARS_RE = re.compile(r"^([a-z\d](-*[a-z\d])*)(\.([a-z\d](-*[a-z\d])*))*$", re.IGNORECASE)
DOMAIN_LENGTH_RE = re.compile(r"^.{1,253}$")
DOMAIN_LABELS_RE = re.compile(r"^[^.]{1,63}(\.[^.]{1,63})*$")


def validate_domain(domain: Optional[str]) -> bool:
    """Check that a string is a valid domain name.

    Args:
        domain: Candidate domain name

    Returns:
        True if the characters, overall length and label lengths are valid
    """
    if not domain:
        return False
    return bool(DOMAIN_CHARS_RE.match(domain)
                and DOMAIN_LENGTH_RE.match(domain)
                and DOMAIN_LABELS_RE.match(domain))


def validate_ip(ip: Optional[str]) -> bool:
    """Check that a string is an IPv4 or IPv6 address."""
    if not ip:
        return False
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return True


def validate_port(port: Union[str, int, None]) -> bool:
    """Check that a value is a numeric TCP port."""
    if isinstance(port, bool) or port is None:
        return False
    if isinstance(port, int):
        return 0 < port <= 65535
    port = str(port).strip()
    return port.isdigit() and 0 < int(port) <= 65535


@dataclass(frozen=True)
class OrganizerConfig:
    """Run configuration, captured once and never mutated."""

    server_address: str
    port: int
    username: str
    password: str
    match_domain: str
    mailbox: str = "INBOX"
    timeout: Optional[float] = None
    dry_run: bool = False

    def __repr__(self) -> str:
        return (f"OrganizerConfig(server_address={self.server_address!r}, port={self.port!r}, "
                f"username={self.username!r}, password='***', match_domain={self.match_domain!r}, "
                f"mailbox={self.mailbox!r}, timeout={self.timeout!r}, dry_run={self.dry_run!r})")


class SettingsManager:
    """Handles settings loading and .env defaults."""

    DEFAULT_SETTINGS = {
        "mail_settings": {
            "imap_port": 993,
            "mailbox": "INBOX",
            "timeout": None
        },
        "organizer_settings": {
            "dry_run": False
        },
        "log_settings": {
            "log_file": "imaporganizer.log",
            "level": "INFO"
        }
    }

    ENV_KEYS = {
        "ip": "IMAP_HOST",
        "port": "IMAP_PORT",
        "username": "IMAP_USER",
        "domain": "IMAP_MATCH_DOMAIN",
    }

    def __init__(self, settings_file: str = "settings.json", local_settings_file: str = "settings.local.json"):
        """Initialize settings manager.

        Args:
            settings_file: Main settings file path
            local_settings_file: Local overrides settings file path
        """
        self.settings_file = settings_file
        self.local_settings_file = local_settings_file
        self.settings = self._load_settings()

    def _load_settings(self) -> Dict[str, Any]:
        """Load settings from files with fallback to defaults."""
        settings = copy.deepcopy(self.DEFAULT_SETTINGS)

        for path in (self.settings_file, self.local_settings_file):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    self._merge_settings(settings, json.load(f))
            except FileNotFoundError:
                pass
            except json.JSONDecodeError as e:
                print(f"[!] Error parsing {path}: {e}, ignoring it")

        return settings

    def _merge_settings(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge settings dictionaries.

        Args:
            base: Base settings dictionary to merge into
            override: Override settings dictionary to merge from
        """
        for section, values in override.items():
            if section not in base:
                base[section] = values
            elif isinstance(values, dict) and isinstance(base[section], dict):
                self._merge_settings(base[section], values)
            else:
                base[section] = values

    def get_mail_settings(self) -> Dict[str, Any]:
        """Get mail server settings."""
        return self.settings["mail_settings"]

    def get_organizer_settings(self) -> Dict[str, Any]:
        """Get organizer behaviour settings."""
        return self.settings["organizer_settings"]

    def get_log_settings(self) -> Dict[str, Any]:
        """Get log channel settings."""
        return self.settings["log_settings"]

    def get_env_defaults(self) -> Dict[str, Optional[str]]:
        """Read connection defaults from the environment or a .env file.

        The password is never read here, it is always prompted.

        Returns:
            Dictionary with ip, port, username and domain (None when unset)
        """
        load_dotenv(find_dotenv(usecwd=True))
        return {key: os.getenv(env_name) or None for key, env_name in self.ENV_KEYS.items()}


class ConfigPrompter:
    """Collects and validates the run configuration, re-prompting on bad input."""

    def __init__(self, settings_manager: SettingsManager,
                 ask: Callable[[str], str] = input,
                 secret: Callable[[str], str] = getpass.getpass,
                 error: Callable[[str], None] = print):
        self.settings_manager = settings_manager
        self.ask = ask
        self.secret = secret
        self.error = error

    def _ask_until(self, value: Optional[str], is_valid: Callable[[Any], bool],
                   error_message: str, question: str, default: Optional[str] = None) -> Any:
        while not is_valid(value):
            self.error(f"[!] {error_message}")
            prompt = f"{question} [{default}]: " if default else f"{question} "
            value = self.ask(prompt).strip()
            if not value and default:
                value = default
        return value

    def configure(self, ip: Optional[str] = None, port: Union[str, int, None] = None,
                  username: Optional[str] = None, domain: Optional[str] = None) -> OrganizerConfig:
        """Build the run configuration from arguments, .env values and prompts.

        Args:
            ip: Mail server domain name or IP address
            port: Mail server port
            username: Mail server username
            domain: Recipient domain to match

        Returns:
            The validated OrganizerConfig
        """
        env = self.settings_manager.get_env_defaults()
        mail_settings = self.settings_manager.get_mail_settings()
        default_port = str(mail_settings["imap_port"])

        ip = ip or env["ip"]
        ip = self._ask_until(ip, lambda v: validate_domain(v) or validate_ip(v),
                             "Please input a valid domain name or IP address.",
                             "Please input your mail server domain/ip.")

        port = port if port is not None else (env["port"] or default_port)
        port = self._ask_until(port, validate_port, "Please input a valid port.",
                               "Please input your mail server port.", default=default_port)

        username = username or env["username"]
        username = self._ask_until(username, lambda v: bool(v),
                                   "Please input a valid server username.",
                                   "Please input your mail server username.")

        password = self.secret("Please input your mail server password. ")

        domain = domain or env["domain"]
        domain = self._ask_until(domain, validate_domain,
                                 "Please input the domain to match.",
                                 "Please input the domain to match.")

        return OrganizerConfig(
            server_address=ip,
            port=int(str(port).strip()),
            username=username,
            password=password,
            match_domain=domain.lower(),
            mailbox=mail_settings["mailbox"],
            timeout=mail_settings["timeout"],
            dry_run=bool(self.settings_manager.get_organizer_settings()["dry_run"]),
        )
