"""Shared fixtures and fakes for the test suite."""
from pathlib import Path
from types import SimpleNamespace

import pytest

from vpn_bootstrap.cli.prompts import Prompter
from vpn_bootstrap.wizard.domains.config_loader import BootstrapSettings
from vpn_bootstrap.wizard.domains.models import DnsCheckResult


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    monkeypatch.delenv("VPN_BOOTSTRAP_REPO_DIR", raising=False)

    return fake_home


@pytest.fixture
def settings(tmp_path):
    repo_dir = tmp_path / "ansible-easy-vpn"
    repo_dir.mkdir()
    return BootstrapSettings(repo_dir=repo_dir)


class ScriptedPrompter(Prompter):
    """Answers prompts from a list; raises EOFError when the script runs out."""

    def __init__(self, answers, secrets):
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.questions = []
        self.messages = []
        self.errors = []
        super().__init__(self._next_answer, self._next_secret, self.messages.append)

    def _next_answer(self, question):
        self.questions.append(question)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def _next_secret(self, question):
        self.questions.append(question)
        if not self.secrets:
            raise EOFError
        return self.secrets.pop(0)

    def error(self, message):
        self.errors.append(message)
        super().error(message)


class FakeChecker:
    """DNS checker stand-in: a domain is accepted iff it maps to the public IP."""

    def __init__(self, public_ip="203.0.113.10", records=None):
        self.public_ip = public_ip
        self.records = records or {}
        self.checked = []

    def check(self, domain):
        self.checked.append(domain)
        resolved = self.records.get(domain)
        if resolved is None:
            return DnsCheckResult(
                accepted=False, domain=domain, public_ip=self.public_ip,
                reason=f"Domain '{domain}' does not exist.", error_kind="resolution_failed",
            )
        if resolved != [self.public_ip]:
            return DnsCheckResult(
                accepted=False, domain=domain, public_ip=self.public_ip, resolved_ips=resolved,
                reason="mismatch", error_kind="mismatch",
            )
        return DnsCheckResult(
            accepted=True, domain=domain, public_ip=self.public_ip, resolved_ips=resolved,
            reason="Domain validation successful.",
        )


class FakeHandoff:
    def __init__(self, returncode=0):
        self.returncode = returncode
        self.runs = 0

    def command_line(self):
        return "cd /tmp/playbook && ansible-playbook run.yml --ask-vault-pass"

    def run(self):
        self.runs += 1
        return self.returncode


def fake_response(text="203.0.113.10\n", status_code=200):
    import requests

    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.url = "https://api.ipify.org"
    return response


def fake_answer(*addresses):
    return [SimpleNamespace(address=a) for a in addresses]
