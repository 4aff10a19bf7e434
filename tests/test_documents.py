"""Tests for the settings/secrets document writer."""
import os
import stat

import pytest

from vpn_bootstrap.wizard.domains.documents import (
    DocumentWriter,
    parse_entries,
    render_entry,
    write_private,
)
from vpn_bootstrap.wizard.domains.models import DocumentError
from vpn_bootstrap.wizard.domains.vault import DocumentVault


def mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


class TestRendering:
    def test_strings_are_quoted(self):
        assert render_entry("username", "alice") == 'username: "alice"\n'

    def test_booleans_are_bare(self):
        assert render_entry("feature_XYZ", False) == "feature_XYZ: false\n"
        assert render_entry("feature_XYZ", True) == "feature_XYZ: true\n"

    def test_quotes_and_backslashes_escaped(self):
        line = render_entry("user_password", 'pa"ss\\word')
        assert line == 'user_password: "pa\\"ss\\\\word"\n'
        assert parse_entries(line) == [("user_password", 'pa"ss\\word')]

    def test_parse_keeps_order_and_duplicates(self):
        text = 'a: "1"\nb: true\n# note\n\na: "2"\n'
        assert parse_entries(text) == [("a", "1"), ("b", True), ("a", "2")]


class TestPlainWriter:
    def test_reset_then_append_preserves_order(self, tmp_path):
        writer = DocumentWriter(tmp_path / "custom.yml")
        writer.reset([("username", "alice")])
        writer.append("feature_XYZ", False)
        writer.append("root_host", "vpn.example.com")
        assert (tmp_path / "custom.yml").read_text() == (
            'username: "alice"\nfeature_XYZ: false\nroot_host: "vpn.example.com"\n'
        )

    def test_reset_discards_previous_content(self, tmp_path):
        writer = DocumentWriter(tmp_path / "custom.yml")
        writer.reset([("username", "alice")])
        writer.append("feature_XYZ", True)
        writer.reset([("username", "bob")])
        assert writer.read_entries() == [("username", "bob")]

    def test_duplicate_keys_are_appended_not_merged(self, tmp_path):
        writer = DocumentWriter(tmp_path / "custom.yml")
        writer.reset([("root_host", "a.example.com")])
        writer.append("root_host", "b.example.com")
        assert writer.read_entries() == [("root_host", "a.example.com"), ("root_host", "b.example.com")]

    @pytest.mark.parametrize("key", ["user_password", "email_login", "email_password"])
    def test_refuses_secret_keys(self, tmp_path, key):
        writer = DocumentWriter(tmp_path / "custom.yml")
        with pytest.raises(DocumentError):
            writer.append(key, "x")
        assert not (tmp_path / "custom.yml").exists()

    def test_refuses_to_append_to_encrypted_document(self, tmp_path):
        path = tmp_path / "custom.yml"
        DocumentVault(path, "passphrase").commit([("username", "alice")])
        with pytest.raises(DocumentError):
            DocumentWriter(path).append("feature_XYZ", False)


class TestSecretWriter:
    def test_created_owner_only(self, tmp_path):
        path = tmp_path / "secret.yml"
        DocumentWriter(path, secret=True).reset([("user_password", "hunter22")])
        assert mode(path) == 0o600

    def test_permissions_restored_after_every_write(self, tmp_path):
        path = tmp_path / "secret.yml"
        writer = DocumentWriter(path, secret=True)
        writer.reset([("user_password", "hunter22")])
        for i in range(3):
            os.chmod(path, 0o644)
            writer.append("email_login", f"login{i}")
            assert mode(path) == 0o600

    def test_secret_writer_accepts_secret_keys(self, tmp_path):
        writer = DocumentWriter(tmp_path / "secret.yml", secret=True)
        writer.reset([("user_password", "hunter22")])
        writer.append("email_password", "mailpass")
        assert writer.read_entries() == [("user_password", "hunter22"), ("email_password", "mailpass")]


class TestWritePrivate:
    def test_replaces_content_with_owner_only_file(self, tmp_path):
        path = tmp_path / "doc.yml"
        path.write_text("old")
        os.chmod(path, 0o644)
        write_private(path, "new")
        assert path.read_text() == "new"
        assert mode(path) == 0o600

    def test_leaves_no_temp_files(self, tmp_path):
        write_private(tmp_path / "doc.yml", b"data")
        assert [p.name for p in tmp_path.iterdir()] == ["doc.yml"]
