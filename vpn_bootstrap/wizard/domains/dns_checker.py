"""Check that a domain name points at this host's public address."""
import ipaddress
import logging
from typing import List, Optional

import dns.exception
import dns.resolver
import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import MaxRetryError
from urllib3.exceptions import TimeoutError as Urllib3Timeout
from urllib3.util.retry import Retry

from .models import DnsCheckResult

logger = logging.getLogger(__name__)

MISMATCH = "mismatch"
RESOLUTION_FAILED = "resolution_failed"
ECHO_UNAVAILABLE = "echo_unavailable"
TIMEOUT = "timeout"


class DnsCheckError(Exception):
    """A lookup failed; `kind` says which one and how."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


def _retries_timed_out(error: requests.exceptions.ConnectionError) -> bool:
    # a read timeout that outlives the adapter retries surfaces as
    # ConnectionError(MaxRetryError(reason=ReadTimeoutError))
    cause = error.args[0] if error.args else None
    return isinstance(cause, MaxRetryError) and isinstance(cause.reason, Urllib3Timeout)


class DnsResolutionChecker:
    """
    Compare a domain's A record against the public IPv4 of this host.

    The public address comes from an HTTPS IP-echo service, the A record from
    a fixed recursive resolver rather than the system one, so a stale local
    cache cannot produce a false positive. Nothing is cached between checks:
    an operator waiting for DNS propagation simply retries.
    """

    def __init__(
        self,
        ip_echo_url: str = "https://api.ipify.org",
        resolver_address: str = "1.1.1.1",
        timeout: float = 5.0,
        retries: int = 3,
        session: Optional[requests.Session] = None,
        resolver: Optional[dns.resolver.Resolver] = None,
    ):
        self.ip_echo_url = ip_echo_url
        self.resolver_address = resolver_address
        self.timeout = timeout
        self.retries = retries
        self._session = session
        self._resolver = resolver

    @classmethod
    def from_settings(cls, settings) -> "DnsResolutionChecker":
        return cls(
            ip_echo_url=settings.ip_echo_url,
            resolver_address=settings.resolver,
            timeout=settings.timeout,
            retries=settings.retries,
        )

    @property
    def session(self) -> requests.Session:
        """Lazy-initialize an HTTP session with bounded retries."""
        if self._session is None:
            session = requests.Session()
            retry = Retry(
                total=self.retries,
                backoff_factor=0.5,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )
            session.mount("https://", HTTPAdapter(max_retries=retry))
            session.mount("http://", HTTPAdapter(max_retries=retry))
            self._session = session
        return self._session

    @property
    def resolver(self) -> dns.resolver.Resolver:
        """Lazy-initialize a resolver pinned to the configured nameserver."""
        if self._resolver is None:
            resolver = dns.resolver.Resolver(configure=False)
            resolver.nameservers = [self.resolver_address]
            resolver.timeout = self.timeout
            resolver.lifetime = self.timeout
            self._resolver = resolver
        return self._resolver

    def fetch_public_ip(self) -> str:
        """
        Ask the IP-echo service for this host's public IPv4 address.

        Raises:
            DnsCheckError: kind TIMEOUT or ECHO_UNAVAILABLE
        """
        try:
            response = self.session.get(self.ip_echo_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise DnsCheckError(TIMEOUT, f"IP echo service {self.ip_echo_url} timed out: {e}")
        except requests.exceptions.ConnectionError as e:
            kind = TIMEOUT if _retries_timed_out(e) else ECHO_UNAVAILABLE
            raise DnsCheckError(kind, f"IP echo service {self.ip_echo_url} unavailable: {e}")
        except requests.exceptions.RequestException as e:
            raise DnsCheckError(ECHO_UNAVAILABLE, f"IP echo service {self.ip_echo_url} unavailable: {e}")

        body = response.text.strip()
        try:
            return str(ipaddress.IPv4Address(body))
        except ValueError:
            raise DnsCheckError(
                ECHO_UNAVAILABLE, f"IP echo service returned an unexpected answer: {body[:40]!r}"
            )

    def resolve(self, domain: str) -> List[str]:
        """
        Resolve the A records of `domain` through the pinned resolver.

        Timeouts are retried up to `retries` attempts; a definite negative
        answer is not.

        Raises:
            DnsCheckError: kind RESOLUTION_FAILED or TIMEOUT
        """
        for attempt in range(1, self.retries + 1):
            try:
                answers = self.resolver.resolve(domain, "A")
                return [rdata.address for rdata in answers]
            except dns.exception.Timeout:
                logger.info(f"DNS timeout for '{domain}' (attempt {attempt}/{self.retries})")
            except dns.resolver.NXDOMAIN:
                raise DnsCheckError(RESOLUTION_FAILED, f"Domain '{domain}' does not exist.")
            except (dns.resolver.NoAnswer, dns.resolver.NoNameservers) as e:
                raise DnsCheckError(RESOLUTION_FAILED, f"Domain '{domain}' has no A record: {e}")
            except dns.exception.DNSException as e:
                raise DnsCheckError(RESOLUTION_FAILED, f"Could not resolve '{domain}': {e}")
        raise DnsCheckError(
            TIMEOUT, f"Resolver {self.resolver_address} did not answer after {self.retries} attempts."
        )

    def check(self, domain: str) -> DnsCheckResult:
        """
        Accept `domain` iff its A records are exactly this host's public IP.

        Never raises for network trouble; every failure is a rejection.
        """
        domain = (domain or "").strip()
        if not domain:
            return DnsCheckResult(
                accepted=False, domain=domain, reason="Domain name is required.",
                error_kind=RESOLUTION_FAILED,
            )

        try:
            public_ip = self.fetch_public_ip()
        except DnsCheckError as e:
            logger.warning(str(e))
            return DnsCheckResult(accepted=False, domain=domain, reason=str(e), error_kind=e.kind)

        try:
            resolved = self.resolve(domain)
        except DnsCheckError as e:
            logger.warning(str(e))
            return DnsCheckResult(
                accepted=False, domain=domain, public_ip=public_ip, reason=str(e), error_kind=e.kind
            )

        if set(resolved) == {public_ip}:
            logger.info(f"Domain '{domain}' resolves to {public_ip}")
            return DnsCheckResult(
                accepted=True, domain=domain, public_ip=public_ip, resolved_ips=resolved,
                reason="Domain validation successful.",
            )

        return DnsCheckResult(
            accepted=False,
            domain=domain,
            public_ip=public_ip,
            resolved_ips=resolved,
            reason=(
                f"The domain resolves to {', '.join(resolved)}, "
                f"not to the public IP of this server ({public_ip})."
            ),
            error_kind=MISMATCH,
        )
