"""Input validation for wizard answers.

Every validator is a pure function: it takes the raw answer(s), returns a
ValidationResult and never prompts, prints or touches the filesystem.
"""
import ipaddress
import re
from typing import Optional

from vpn_bootstrap.wizard.domains.models import ValidationResult

USERNAME_PATTERN = re.compile(r'^[a-z0-9]{1,15}$')
YES_PATTERN = re.compile(r'^[Yy]$')

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72

DEFAULT_SMTP_PORT = "465"

# Menu order matters: the operator may answer with the 1-based position.
DNS_PROVIDERS = [
    ("Cloudflare", "1.1.1.1"),
    ("Quad9", "9.9.9.9"),
    ("Google", "8.8.8.8"),
    ("Custom", None),
]


def validate_username(username: str) -> ValidationResult:
    """
    Validate a UNIX username.

    Only lowercase letters and digits, 1 to 15 characters.

    Args:
        username: Candidate username

    Returns:
        ValidationResult carrying the username when accepted
    """
    if username is not None and USERNAME_PATTERN.fullmatch(username):
        return ValidationResult.accept(username, "Username valid.")
    return ValidationResult.reject(
        "Invalid username. Use only lowercase letters and numbers, up to 15 characters."
    )


def validate_password(password: str, confirmation: str) -> ValidationResult:
    """
    Validate a password and its confirmation.

    The rejection message deliberately covers both conditions at once so the
    operator is not told which of them failed.

    Args:
        password: Primary entry
        confirmation: Repeated entry

    Returns:
        ValidationResult carrying the password when accepted
    """
    if (
        password == confirmation
        and PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH
    ):
        return ValidationResult.accept(password, "Password valid.")
    return ValidationResult.reject(
        f"Passwords do not match or are outside valid length "
        f"({PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters)."
    )


def validate_passphrase(passphrase: str, confirmation: str) -> ValidationResult:
    """Validate the vault passphrase used to encrypt the documents."""
    if not passphrase or not passphrase.strip():
        return ValidationResult.reject("Vault passphrase cannot be empty.")
    if passphrase != confirmation:
        return ValidationResult.reject("Vault passphrases do not match.")
    return ValidationResult.accept(passphrase)


def validate_domain_answer(domain: str) -> ValidationResult:
    """Reject blank domain answers; whether the name is usable is left to DNS."""
    domain = (domain or "").strip()
    if not domain:
        return ValidationResult.reject("Domain name is required.")
    return ValidationResult.accept(domain)


def parse_yes_no(answer: Optional[str]) -> bool:
    """Only a single 'y' or 'Y' means yes; anything else, blank included, means no."""
    return bool(answer) and YES_PATTERN.fullmatch(answer.strip()) is not None


def validate_dns_provider(choice: str) -> ValidationResult:
    """
    Validate a DNS provider selection.

    Accepts the menu number (1-4) or the provider name in any case.

    Returns:
        ValidationResult whose value is a (provider, nameserver) tuple. The
        nameserver is None for "Custom"; it is collected separately.
    """
    choice = (choice or "").strip()
    if choice.isdecimal():
        index = int(choice) - 1
        if 0 <= index < len(DNS_PROVIDERS):
            return ValidationResult.accept(DNS_PROVIDERS[index])
    for name, nameserver in DNS_PROVIDERS:
        if choice.lower() == name.lower():
            return ValidationResult.accept((name, nameserver))
    return ValidationResult.reject("Invalid option, please choose again.")


def validate_nameserver(address: str) -> ValidationResult:
    """Validate a custom nameserver address (IPv4 or IPv6)."""
    address = (address or "").strip()
    try:
        ipaddress.ip_address(address)
    except ValueError:
        return ValidationResult.reject(f"'{address}' is not a valid IP address.")
    return ValidationResult.accept(address)


def validate_smtp_host(host: str) -> ValidationResult:
    host = (host or "").strip()
    if not host:
        return ValidationResult.reject("SMTP server address is required.")
    return ValidationResult.accept(host)


def validate_smtp_port(port: str) -> ValidationResult:
    """
    Validate the SMTP port answer.

    A blank answer falls back to 465. Any other answer is taken as given;
    the port is not checked for being numeric or in range.
    """
    port = (port or "").strip()
    return ValidationResult.accept(port or DEFAULT_SMTP_PORT)


def validate_smtp_login(login: str) -> ValidationResult:
    login = (login or "").strip()
    if not login:
        return ValidationResult.reject("SMTP username is required.")
    return ValidationResult.accept(login)


def validate_smtp_password(password: str) -> ValidationResult:
    if not password:
        return ValidationResult.reject("SMTP password cannot be empty.")
    return ValidationResult.accept(password)
