"""Tests for the wizard answer validators."""
import pytest

from vpn_bootstrap.cli import validators


class TestUsername:
    """Username must match ^[a-z0-9]{1,15}$."""

    @pytest.mark.parametrize("username", ["bob1", "a", "abc123", "a" * 15, "0"])
    def test_accepts_lowercase_alphanumeric(self, username):
        result = validators.validate_username(username)
        assert result.accepted
        assert result.value == username

    @pytest.mark.parametrize("username", ["Bob1", "a" * 16, "", "bob smith", "bob_1", "bob-1", "bób"])
    def test_rejects_everything_else(self, username):
        result = validators.validate_username(username)
        assert not result.accepted
        assert "lowercase letters and numbers" in result.reason

    def test_rejects_trailing_newline(self):
        assert not validators.validate_username("bob\n").accepted


class TestPassword:
    """Password pair must match and be 8-72 characters."""

    def test_accepts_matching_pair(self):
        result = validators.validate_password("goodpass1", "goodpass1")
        assert result.accepted
        assert result.value == "goodpass1"

    def test_rejects_short_password(self):
        assert not validators.validate_password("short1", "short1").accepted

    def test_rejects_mismatch(self):
        assert not validators.validate_password("goodpass1", "goodpass2").accepted

    @pytest.mark.parametrize("length,accepted", [(7, False), (8, True), (72, True), (73, False)])
    def test_length_bounds(self, length, accepted):
        password = "x" * length
        assert validators.validate_password(password, password).accepted is accepted

    def test_rejection_message_does_not_say_which_condition_failed(self):
        short = validators.validate_password("short1", "short1")
        mismatch = validators.validate_password("goodpass1", "goodpass2")
        assert short.reason == mismatch.reason
        assert "do not match or are outside valid length (8-72" in short.reason


class TestPassphrase:
    def test_rejects_empty(self):
        assert not validators.validate_passphrase("", "").accepted

    def test_rejects_blank(self):
        assert not validators.validate_passphrase("   ", "   ").accepted

    def test_rejects_mismatch(self):
        result = validators.validate_passphrase("one", "two")
        assert not result.accepted
        assert "do not match" in result.reason

    def test_accepts_confirmed(self):
        assert validators.validate_passphrase("s3cret", "s3cret").value == "s3cret"


class TestDnsProvider:
    @pytest.mark.parametrize("choice,expected", [
        ("1", ("Cloudflare", "1.1.1.1")),
        ("2", ("Quad9", "9.9.9.9")),
        ("3", ("Google", "8.8.8.8")),
        ("4", ("Custom", None)),
        ("cloudflare", ("Cloudflare", "1.1.1.1")),
        (" Google ", ("Google", "8.8.8.8")),
    ])
    def test_accepts_menu_number_or_name(self, choice, expected):
        result = validators.validate_dns_provider(choice)
        assert result.accepted
        assert result.value == expected

    @pytest.mark.parametrize("choice", ["0", "5", "", "OpenDNS", "1.1.1.1", "-1"])
    def test_rejects_other_input(self, choice):
        result = validators.validate_dns_provider(choice)
        assert not result.accepted
        assert "choose again" in result.reason

    def test_custom_nameserver_must_be_an_ip(self):
        assert validators.validate_nameserver("192.0.2.53").value == "192.0.2.53"
        assert validators.validate_nameserver("2606:4700:4700::1111").accepted
        assert not validators.validate_nameserver("dns.example.com").accepted
        assert not validators.validate_nameserver("").accepted


class TestYesNo:
    @pytest.mark.parametrize("answer", ["y", "Y", " y "])
    def test_yes(self, answer):
        assert validators.parse_yes_no(answer) is True

    @pytest.mark.parametrize("answer", ["", "n", "N", "yes", "yy", None, "1"])
    def test_everything_else_is_no(self, answer):
        assert validators.parse_yes_no(answer) is False


class TestSmtp:
    def test_port_defaults_to_465(self):
        assert validators.validate_smtp_port("").value == "465"
        assert validators.validate_smtp_port("   ").value == "465"

    def test_port_taken_as_given(self):
        # no numeric or range check on the port
        assert validators.validate_smtp_port("587").value == "587"
        assert validators.validate_smtp_port("smtps").value == "smtps"
        assert validators.validate_smtp_port("99999").accepted

    def test_host_and_login_required(self):
        assert not validators.validate_smtp_host("").accepted
        assert not validators.validate_smtp_login("  ").accepted
        assert validators.validate_smtp_host(" smtp.example.com ").value == "smtp.example.com"

    def test_password_required(self):
        assert not validators.validate_smtp_password("").accepted
        assert validators.validate_smtp_password(" p w ").value == " p w "


class TestDomainAnswer:
    def test_blank_rejected(self):
        assert not validators.validate_domain_answer("   ").accepted

    def test_no_format_check(self):
        # anything non-blank is left for DNS to judge
        assert validators.validate_domain_answer("not a domain").accepted
