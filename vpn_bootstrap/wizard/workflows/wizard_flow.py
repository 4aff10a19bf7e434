"""Interactive configuration wizard.

The wizard is a small state machine. Each state handler prompts, validates
and persists, then returns the next state; a handler that rejects an answer
returns its own state, so the operator is asked again. There is no way back
to an earlier state: to change an earlier answer the operator restarts the
wizard, which rewrites both documents from scratch.

Documents produced (both under the playbook checkout):
    custom.yml  - plain settings: username, feature_XYZ, root_host,
                  dns_nameservers, email_smtp_host, email_smtp_port
    secret.yml  - encrypted secrets: user_password, email_login, email_password
"""
import logging
from enum import Enum
from typing import Callable, Dict, Optional

from vpn_bootstrap.cli import validators
from vpn_bootstrap.cli.prompts import Prompter, confirm_passphrase
from vpn_bootstrap.wizard.domains.config_loader import BootstrapSettings
from vpn_bootstrap.wizard.domains.dns_checker import (
    ECHO_UNAVAILABLE,
    RESOLUTION_FAILED,
    TIMEOUT,
    DnsResolutionChecker,
)
from vpn_bootstrap.wizard.domains.documents import DocumentWriter, restrict
from vpn_bootstrap.wizard.domains.models import HandoffError, Session, SmtpSettings, WizardAborted
from vpn_bootstrap.wizard.domains.vault import DocumentVault
from vpn_bootstrap.wizard.workflows.handoff import PlaybookHandoff

logger = logging.getLogger(__name__)


class WizardState(Enum):
    COLLECT_USERNAME = "collect_username"
    COLLECT_PASSWORD = "collect_password"
    PERSIST_IDENTITY = "persist_identity"
    OPTIONAL_FEATURE_TOGGLE = "optional_feature_toggle"
    COLLECT_DOMAIN = "collect_domain"
    SELECT_DNS_PROVIDER = "select_dns_provider"
    PERSIST_NETWORK = "persist_network"
    OPTIONAL_EMAIL_SETUP = "optional_email_setup"
    COLLECT_SMTP_FIELDS = "collect_smtp_fields"
    FINALIZE = "finalize"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({WizardState.DONE, WizardState.ABORTED})

_DNS_HINTS = {
    RESOLUTION_FAILED: "If you just created the record, DNS may still be propagating.",
    TIMEOUT: "Check this server's network connectivity.",
    ECHO_UNAVAILABLE: "Could not determine this server's public IP.",
}


class ConfigurationWizard:
    """Runs the prompt-validate-persist sequence for one session."""

    def __init__(
        self,
        settings: BootstrapSettings,
        prompter: Optional[Prompter] = None,
        checker: Optional[DnsResolutionChecker] = None,
        handoff: Optional[PlaybookHandoff] = None,
    ):
        self.settings = settings
        self.prompter = prompter or Prompter()
        self.checker = checker or DnsResolutionChecker.from_settings(settings)
        self.handoff = handoff or PlaybookHandoff(settings)
        self.plain = DocumentWriter(settings.settings_path)
        self._handlers: Dict[WizardState, Callable[[Session], WizardState]] = {
            WizardState.COLLECT_USERNAME: self._collect_username,
            WizardState.COLLECT_PASSWORD: self._collect_password,
            WizardState.PERSIST_IDENTITY: self._persist_identity,
            WizardState.OPTIONAL_FEATURE_TOGGLE: self._feature_toggle,
            WizardState.COLLECT_DOMAIN: self._collect_domain,
            WizardState.SELECT_DNS_PROVIDER: self._select_dns_provider,
            WizardState.PERSIST_NETWORK: self._persist_network,
            WizardState.OPTIONAL_EMAIL_SETUP: self._email_setup,
            WizardState.COLLECT_SMTP_FIELDS: self._collect_smtp_fields,
            WizardState.FINALIZE: self._finalize,
        }

    def run(self, session: Optional[Session] = None) -> Session:
        """
        Drive the state machine to a terminal state.

        Args:
            session: Pre-seeded session (e.g. with a known passphrase);
                a fresh one is created when omitted

        Returns:
            The completed session

        Raises:
            WizardAborted: If the operator pressed Ctrl+C or closed input
        """
        session = session or Session()
        state = WizardState.COLLECT_USERNAME
        self.prompter.say("Setting up configurations interactively. Please follow the prompts.")

        while state not in TERMINAL_STATES:
            session.history.append(state.value)
            try:
                state = self._handlers[state](session)
            except (KeyboardInterrupt, EOFError):
                logger.info(f"Operator aborted during {session.history[-1]}")
                state = WizardState.ABORTED

        session.history.append(state.value)
        if state is WizardState.ABORTED:
            raise WizardAborted("Wizard aborted by operator; documents may be incomplete.")
        return session

    def _secrets(self, session: Session) -> DocumentVault:
        return DocumentVault(self.settings.secrets_path, session.passphrase)

    # -- identity -----------------------------------------------------

    def _collect_username(self, session: Session) -> WizardState:
        result = validators.validate_username(self.prompter.ask("Enter your desired UNIX username"))
        if not result.accepted:
            self.prompter.error(result.reason)
            return WizardState.COLLECT_USERNAME
        session.username = result.value
        self.prompter.say(result.reason)
        return WizardState.COLLECT_PASSWORD

    def _collect_password(self, session: Session) -> WizardState:
        password = self.prompter.ask_secret("Enter your password")
        confirmation = self.prompter.ask_secret("Repeat your password")
        result = validators.validate_password(password, confirmation)
        if not result.accepted:
            self.prompter.error(result.reason)
            return WizardState.COLLECT_PASSWORD
        session.password = result.value
        self.prompter.say(result.reason)
        return WizardState.PERSIST_IDENTITY

    def _persist_identity(self, session: Session) -> WizardState:
        if session.passphrase is None:
            self.prompter.say("Choose a vault passphrase. You will need it to run the playbook.")
            result = validators.validate_passphrase(*confirm_passphrase(self.prompter))
            if not result.accepted:
                self.prompter.error(result.reason)
                return WizardState.PERSIST_IDENTITY
            session.passphrase = result.value

        # first write of the run: both documents start over
        self.plain.reset([("username", session.username)])
        self._secrets(session).commit([("user_password", session.password)], replace=True)
        self.prompter.say("Configurations set and stored securely.")
        return WizardState.OPTIONAL_FEATURE_TOGGLE

    def _feature_toggle(self, session: Session) -> WizardState:
        answer = self.prompter.ask("Enable feature XYZ? [y/N]")
        session.feature_enabled = validators.parse_yes_no(answer)
        self.plain.append("feature_XYZ", session.feature_enabled)
        return WizardState.COLLECT_DOMAIN

    # -- network ------------------------------------------------------

    def _collect_domain(self, session: Session) -> WizardState:
        answer = validators.validate_domain_answer(
            self.prompter.ask("Enter your domain name (must resolve to the public IP of this server)")
        )
        if not answer.accepted:
            self.prompter.error(answer.reason)
            return WizardState.COLLECT_DOMAIN

        check = self.checker.check(answer.value)
        if not check.accepted:
            self.prompter.error(check.reason)
            hint = _DNS_HINTS.get(check.error_kind)
            if hint:
                self.prompter.say(hint)
            self.prompter.say("Please try again.")
            return WizardState.COLLECT_DOMAIN

        session.domain = check.domain
        session.public_ip = check.public_ip
        self.prompter.say(check.reason)
        return WizardState.SELECT_DNS_PROVIDER

    def _select_dns_provider(self, session: Session) -> WizardState:
        self.prompter.say("Configuring DNS settings...")
        for index, (name, nameserver) in enumerate(validators.DNS_PROVIDERS, 1):
            self.prompter.say(f"{index}) {name}" + (f" ({nameserver})" if nameserver else ""))
        result = validators.validate_dns_provider(self.prompter.ask("Select a DNS provider"))
        if not result.accepted:
            self.prompter.error(result.reason)
            return WizardState.SELECT_DNS_PROVIDER

        provider, nameserver = result.value
        if nameserver is None:
            custom = validators.validate_nameserver(self.prompter.ask("Enter custom DNS IP"))
            if not custom.accepted:
                self.prompter.error(custom.reason)
                return WizardState.SELECT_DNS_PROVIDER
            nameserver = custom.value

        session.dns_provider = provider
        session.dns_nameservers = nameserver
        return WizardState.PERSIST_NETWORK

    def _persist_network(self, session: Session) -> WizardState:
        self.plain.append("root_host", session.domain)
        self.plain.append("dns_nameservers", session.dns_nameservers)
        self.prompter.say("DNS configuration set.")
        return WizardState.OPTIONAL_EMAIL_SETUP

    # -- email --------------------------------------------------------

    def _email_setup(self, session: Session) -> WizardState:
        self.prompter.say("Email is used for notifications and 2FA.")
        session.email_enabled = validators.parse_yes_no(
            self.prompter.ask("Would you like to set up email configurations? [y/N]")
        )
        if not session.email_enabled:
            self.prompter.say("Skipping email configuration.")
            return WizardState.FINALIZE
        return WizardState.COLLECT_SMTP_FIELDS

    def _collect_smtp_fields(self, session: Session) -> WizardState:
        results = [
            validators.validate_smtp_host(self.prompter.ask("Enter SMTP server address")),
            validators.validate_smtp_port(self.prompter.ask("Enter SMTP server port [default: 465]")),
            validators.validate_smtp_login(self.prompter.ask("Enter SMTP username")),
            validators.validate_smtp_password(self.prompter.ask_secret("Enter SMTP password")),
        ]
        rejected = [r for r in results if not r.accepted]
        if rejected:
            for result in rejected:
                self.prompter.error(result.reason)
            return WizardState.COLLECT_SMTP_FIELDS

        host, port, login, password = (r.value for r in results)
        session.smtp = SmtpSettings(host=host, port=port, login=login, password=password)

        self.plain.append("email_smtp_host", host)
        self.plain.append("email_smtp_port", port)
        # lands in the same envelope as user_password, re-encrypted once
        self._secrets(session).commit([("email_login", login), ("email_password", password)])
        self.prompter.say("Email configuration completed successfully.")
        return WizardState.FINALIZE

    # -- finalize -----------------------------------------------------

    def _finalize(self, session: Session) -> WizardState:
        self.prompter.say("Finalizing setup and securing configuration files...")
        settings_path = self.settings.settings_path
        restrict(settings_path)
        if self.settings.encrypt_settings:
            DocumentVault(settings_path, session.passphrase).encrypt_in_place()
        self.prompter.say("All configurations are secured. The system is ready for use.")

        run_now = validators.parse_yes_no(
            self.prompter.ask("Would you like to run the playbook now? [y/N]")
        )
        if not run_now:
            self._show_manual_command()
            return WizardState.DONE

        try:
            session.deploy_exit_code = self.handoff.run()
        except HandoffError as e:
            logger.warning(str(e))
            session.deploy_exit_code = 1
            self.prompter.error(str(e))
            self._show_manual_command()
            return WizardState.DONE

        if session.deploy_exit_code == 0:
            self.prompter.say("Playbook run successfully.")
        else:
            self.prompter.error(f"Playbook exited with code {session.deploy_exit_code}.")
        return WizardState.DONE

    def _show_manual_command(self) -> None:
        self.prompter.say("You can run the playbook manually by executing:")
        self.prompter.say(f"  {self.handoff.command_line()}")
