"""CLI entrypoint for vpn-bootstrap."""
import sys
import argparse
import logging
from pathlib import Path

from vpn_bootstrap.cli.prompts import Prompter, confirm_passphrase, stdin_is_interactive
from vpn_bootstrap.cli.validators import validate_passphrase
from vpn_bootstrap.wizard.domains.config_loader import default_config_path, load_config
from vpn_bootstrap.wizard.domains.models import WizardAborted

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _settings(args):
    settings = load_config()
    repo_dir = getattr(args, "repo_dir", None)
    if repo_dir:
        settings.repo_dir = Path(repo_dir).expanduser().resolve()
    return settings


def _ask_passphrase(prompter: Prompter, confirm: bool) -> str:
    if confirm:
        result = validate_passphrase(*confirm_passphrase(prompter, "Vault passphrase"))
        if not result.accepted:
            print(f"Error: {result.reason}", file=sys.stderr)
            sys.exit(2)
        return result.value
    passphrase = prompter.ask_secret("Vault passphrase")
    if not passphrase:
        print("Error: Vault passphrase cannot be empty", file=sys.stderr)
        sys.exit(2)
    return passphrase


def cmd_version(args):
    """Show version information."""
    print(f"vpn-bootstrap {VERSION}")


def cmd_preflight(args):
    """Check OS support and privileges without changing anything."""
    from vpn_bootstrap.host.domains.os_release import detect_os, require_root

    os_info = detect_os()
    print(f"Detected OS: {os_info.family} {os_info.version}")
    require_root()
    print("Running as root: yes")
    print("\nSuccess: All preflight checks passed")


def cmd_check_domain(args):
    """Check once whether a domain resolves to this server."""
    from vpn_bootstrap.wizard.domains.dns_checker import DnsResolutionChecker

    checker = DnsResolutionChecker.from_settings(_settings(args))
    result = checker.check(args.domain)
    if result.public_ip:
        print(f"Public IP: {result.public_ip}")
    if result.resolved_ips:
        print(f"Resolved:  {', '.join(result.resolved_ips)}")
    if result.accepted:
        print(f"Success: {result.reason}")
        sys.exit(0)
    print(f"Error: {result.reason}", file=sys.stderr)
    sys.exit(1)


def cmd_run(args):
    """Prepare the host and run the configuration wizard."""
    from vpn_bootstrap.host.domains.os_release import detect_os, require_root
    from vpn_bootstrap.host.workflows.prepare import prepare_host
    from vpn_bootstrap.wizard.workflows.wizard_flow import ConfigurationWizard

    # preconditions are fatal before any wizard state is entered
    os_info = detect_os()
    require_root()

    settings = _settings(args)
    if args.skip_prepare:
        logger.info("Skipping host preparation")
    else:
        prepare_host(os_info, settings)

    if not stdin_is_interactive():
        logger.warning("Standard input is not a terminal; answers will be read from it as-is.")

    session = ConfigurationWizard(settings).run()
    if session.deploy_exit_code:
        sys.exit(session.deploy_exit_code)


def cmd_vault_view(args):
    """Print the decrypted entries of a document."""
    from vpn_bootstrap.wizard.domains.documents import render_entry
    from vpn_bootstrap.wizard.domains.vault import DocumentVault

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    vault = DocumentVault(path, _ask_passphrase(Prompter(), confirm=False))
    for key, value in vault.entries():
        sys.stdout.write(render_entry(key, value))


def cmd_vault_encrypt(args):
    """Encrypt a plaintext document in place."""
    from vpn_bootstrap.wizard.domains.documents import is_encrypted_file
    from vpn_bootstrap.wizard.domains.vault import DocumentVault

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    if is_encrypted_file(path):
        print(f"Error: {path} is already encrypted", file=sys.stderr)
        sys.exit(1)
    vault = DocumentVault(path, _ask_passphrase(Prompter(), confirm=True))
    vault.encrypt_in_place()
    print(f"Encrypted: {path}")


def cmd_vault_decrypt(args):
    """Decrypt an encrypted document in place."""
    from vpn_bootstrap.wizard.domains.vault import DocumentVault

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    vault = DocumentVault(path, _ask_passphrase(Prompter(), confirm=False))
    if vault.decrypt_in_place():
        print(f"Decrypted: {path} (mode 0600)")
    else:
        print(f"Error: {path} is not encrypted", file=sys.stderr)
        sys.exit(1)


def cmd_config_set_path(args):
    """Record which config file later runs load."""
    from vpn_bootstrap.wizard.domains.config_loader import remember_config_path

    settings = remember_config_path(args.path)
    print(f"Config file:       {settings.source}")
    print(f"Playbook checkout: {settings.repo_dir}")


def cmd_config_show(args):
    """Show which config file applies and the settings it yields."""
    from vpn_bootstrap.wizard.domains.config_loader import stored_config_path

    stored = stored_config_path()
    settings = load_config()

    if settings.source is None:
        print("Config file:       none, built-in defaults apply")
    elif stored is not None and settings.source == str(stored):
        print(f"Config file:       {settings.source} (set with 'config set-path')")
    else:
        print(f"Config file:       {settings.source} (default location)")
    if stored is not None and not stored.is_file():
        print(f"Warning: recorded config file is missing: {stored}", file=sys.stderr)

    print(f"Playbook checkout: {settings.repo_dir}")
    print(f"Settings file:     {settings.settings_path}")
    print(f"Secrets file:      {settings.secrets_path}")
    print(f"IP echo service:   {settings.ip_echo_url}")
    print(f"DNS resolver:      {settings.resolver}")


def cmd_config_clear(args):
    """Forget the config file recorded by 'config set-path'."""
    from vpn_bootstrap.wizard.domains.config_loader import forget_config_path

    if forget_config_path():
        print("Recorded config path cleared.")
    else:
        print("No config path was recorded.")
    print(f"Runs now read {default_config_path()} when it exists.")


def main():
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (unsupported OS, not root, network, wrong passphrase, abort, etc.)
        2 - Usage errors (invalid arguments, empty passphrase, etc.)
    """
    parser = argparse.ArgumentParser(
        prog="vpn-bootstrap",
        description="Prepare this server and write the configuration for the VPN playbook",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (unsupported OS, not root, network, wrong passphrase, abort, etc.)
  2 - Usage error (invalid arguments, empty passphrase, etc.)

Environment variables:
  VPN_BOOTSTRAP_REPO_DIR - Playbook checkout directory (overrides config file)

Configuration:
  Default location: ~/.config/vpn-bootstrap/config.yml (optional)
  Custom path: Set with 'vpn-bootstrap config set-path <path>'
  View current: Run 'vpn-bootstrap config show'
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of vpn-bootstrap"
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Prepare the host and run the configuration wizard",
        description="""
Check OS and privileges, install base packages, check out the playbook and
its virtualenv, then walk through the configuration wizard.

The wizard writes two documents into the playbook checkout:
  custom.yml - settings (encrypted at the end)
  secret.yml - credentials (encrypted as soon as they are written)

Press Ctrl+C at any prompt to abort. Re-running starts over from the first question.
        """
    )
    run_parser.add_argument(
        "--skip-prepare",
        action="store_true",
        help="Skip package installation, playbook checkout and virtualenv setup"
    )
    run_parser.add_argument(
        "--repo-dir",
        help="Playbook checkout directory (default: ~/ansible-easy-vpn)"
    )

    _preflight_parser = subparsers.add_parser(
        "preflight",
        help="Check OS support and root privileges",
        description="Detect the OS and verify this process runs as root. Changes nothing."
    )

    check_domain_parser = subparsers.add_parser(
        "check-domain",
        help="Check that a domain resolves to this server",
        description="""
Look up this server's public IP and the domain's A record, and report whether they match.

Exit codes:
  0 - Domain resolves to this server
  1 - It does not, or a lookup failed
        """
    )
    check_domain_parser.add_argument("domain", help="Domain name to check")

    vault_parser = subparsers.add_parser(
        "vault",
        help="Inspect or (de)crypt wizard documents",
        description="Work with documents encrypted by the wizard. Prompts for the vault passphrase."
    )
    vault_subparsers = vault_parser.add_subparsers(dest="vault_command")
    for name, help_text in (
        ("view", "Print the decrypted entries"),
        ("encrypt", "Encrypt a plaintext document in place"),
        ("decrypt", "Decrypt an encrypted document in place"),
    ):
        vault_cmd_parser = vault_subparsers.add_parser(name, help=help_text, description=help_text)
        vault_cmd_parser.add_argument("path", help="Path to the document")

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Manage vpn-bootstrap configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Load a config file and use it for later runs",
        description="""
Load and validate a config file, then record its absolute path in
~/.config/vpn-bootstrap/config-path.yml (mode 0600).

Nothing is recorded when the file fails to load.
        """
    )
    config_set_path_parser.add_argument(
        "path",
        help="Path to config file"
    )

    _config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show which config file applies and its settings",
        description="""
Print the config file in effect and the playbook paths and network settings it yields.

Lookup order:
  1. Path recorded with 'config set-path'
  2. ~/.config/vpn-bootstrap/config.yml
  3. Built-in defaults
        """
    )

    _config_clear_parser = config_subparsers.add_parser(
        "clear",
        help="Forget the recorded config path",
        description="""
Forget the path recorded with 'config set-path'. Later runs fall back to
~/.config/vpn-bootstrap/config.yml, or the built-in defaults without it.
        """
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "run":
            cmd_run(args)
        elif args.command == "preflight":
            cmd_preflight(args)
        elif args.command == "check-domain":
            cmd_check_domain(args)
        elif args.command == "vault":
            if args.vault_command == "view":
                cmd_vault_view(args)
            elif args.vault_command == "encrypt":
                cmd_vault_encrypt(args)
            elif args.vault_command == "decrypt":
                cmd_vault_decrypt(args)
            else:
                vault_parser.print_help()
                sys.exit(2)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except WizardAborted as e:
        print(f"\n{e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
