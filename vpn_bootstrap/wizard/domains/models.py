"""Domain models for the configuration wizard."""
from dataclasses import dataclass, field
from typing import Any, List, Optional


class BootstrapError(Exception):
    """Base class for all bootstrap errors."""
    pass


class DocumentError(BootstrapError):
    """Raised when a document write would break a document invariant."""
    pass


class VaultError(BootstrapError):
    """Raised when an encrypted document cannot be opened or written."""
    pass


class HandoffError(BootstrapError):
    """Raised when the deployment playbook cannot be started."""
    pass


class WizardAborted(BootstrapError):
    """Raised when the operator aborts the wizard."""
    pass


@dataclass
class ValidationResult:
    """Outcome of validating one operator answer."""
    accepted: bool
    reason: str = ""
    value: Any = None

    @classmethod
    def accept(cls, value: Any = None, reason: str = "") -> "ValidationResult":
        return cls(accepted=True, reason=reason, value=value)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


@dataclass
class DnsCheckResult:
    """Outcome of checking that a domain points at this host."""
    accepted: bool
    domain: str
    public_ip: Optional[str] = None
    resolved_ips: List[str] = field(default_factory=list)
    reason: str = ""
    error_kind: Optional[str] = None  # "mismatch", "resolution_failed", "echo_unavailable", "timeout"


@dataclass
class SmtpSettings:
    """Outgoing mail settings used for notifications and 2FA."""
    host: str
    port: str
    login: str
    password: str


@dataclass
class Session:
    """Answers collected during one wizard run.

    Lives for the duration of the process only and is passed explicitly to
    every wizard stage. It is never written to disk as a whole.
    """
    username: Optional[str] = None
    password: Optional[str] = None
    passphrase: Optional[str] = None
    feature_enabled: bool = False
    domain: Optional[str] = None
    public_ip: Optional[str] = None
    dns_provider: Optional[str] = None
    dns_nameservers: Optional[str] = None
    email_enabled: bool = False
    smtp: Optional[SmtpSettings] = None
    deploy_exit_code: Optional[int] = None
    history: List[str] = field(default_factory=list)
