"""Tests for host detection and preparation."""
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from vpn_bootstrap.host.domains import os_release
from vpn_bootstrap.host.domains.os_release import (
    OsInfo,
    PrivilegeError,
    UnsupportedOSError,
    detect_os,
    require_root,
)
from vpn_bootstrap.host.workflows import prepare
from vpn_bootstrap.wizard.domains.config_loader import BootstrapSettings


@pytest.fixture
def fake_root(tmp_path):
    (tmp_path / "etc").mkdir()
    return tmp_path


def write_etc(root: Path, name: str, content: str) -> None:
    (root / "etc" / name).write_text(content)


class TestDetectOs:
    def test_supported_ubuntu(self, fake_root):
        write_etc(fake_root, "os-release", 'NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="22.04"\n')
        write_etc(fake_root, "debian_version", "bookworm/sid\n")
        assert detect_os(fake_root) == OsInfo("ubuntu", 2204)

    def test_old_ubuntu_rejected(self, fake_root):
        write_etc(fake_root, "os-release", 'ID=ubuntu\nVERSION_ID="18.04"\n')
        with pytest.raises(UnsupportedOSError) as exc_info:
            detect_os(fake_root)
        assert str(exc_info.value) == "Ubuntu 20.04 or higher is required to use this installer."

    def test_supported_debian(self, fake_root):
        write_etc(fake_root, "os-release", 'ID=debian\nVERSION_ID="12"\n')
        write_etc(fake_root, "debian_version", "12.5\n")
        info = detect_os(fake_root)
        assert info == OsInfo("debian", 12)
        assert info.is_debian_family

    def test_old_debian_rejected(self, fake_root):
        write_etc(fake_root, "debian_version", "10.13\n")
        with pytest.raises(UnsupportedOSError) as exc_info:
            detect_os(fake_root)
        assert "Debian 11" in str(exc_info.value)

    @pytest.mark.parametrize("release_file", ["almalinux-release", "rocky-release", "centos-release"])
    def test_enterprise_linux(self, fake_root, release_file):
        write_etc(fake_root, release_file, "Rocky Linux release 9.3 (Blue Onyx)\n")
        info = detect_os(fake_root)
        assert info == OsInfo("centos", 9)
        assert not info.is_debian_family

    def test_old_enterprise_linux_rejected(self, fake_root):
        write_etc(fake_root, "centos-release", "CentOS Linux release 7.9.2009 (Core)\n")
        with pytest.raises(UnsupportedOSError):
            detect_os(fake_root)

    def test_unknown_os(self, fake_root):
        write_etc(fake_root, "os-release", 'ID=arch\n')
        with pytest.raises(UnsupportedOSError) as exc_info:
            detect_os(fake_root)
        assert str(exc_info.value) == "Unsupported OS."


class TestRequireRoot:
    def test_root_passes(self, monkeypatch):
        monkeypatch.setattr(os_release.os, "geteuid", lambda: 0)
        require_root()

    def test_non_root_fails(self, monkeypatch):
        monkeypatch.setattr(os_release.os, "geteuid", lambda: 1000)
        with pytest.raises(PrivilegeError):
            require_root()


class TestPrepare:
    @pytest.fixture
    def run(self):
        with mock.patch.object(prepare.subprocess, "run") as run:
            yield run

    def commands(self, run):
        return [c.args[0] for c in run.call_args_list]

    def test_debian_packages(self, run):
        prepare.install_dependencies(OsInfo("ubuntu", 2204))
        commands = self.commands(run)
        assert commands[0] == ["apt", "update", "-y"]
        assert commands[-1][:3] == ["apt", "install", "-y"]
        assert "python3-venv" in commands[-1]
        for c in run.call_args_list:
            assert c.kwargs["check"] is True

    def test_enterprise_linux_packages(self, run):
        prepare.install_dependencies(OsInfo("centos", 9))
        commands = self.commands(run)
        assert commands[0] == ["dnf", "install", "-y", "epel-release"]
        assert "bind-utils" in commands[1]

    def test_clone_when_missing(self, run, tmp_path):
        repo_dir = tmp_path / "ansible-easy-vpn"
        prepare.sync_playbook("https://example.com/playbook.git", repo_dir)
        assert self.commands(run) == [
            ["git", "clone", "https://example.com/playbook.git", str(repo_dir)]
        ]
        assert run.call_args.kwargs["cwd"] is None

    def test_pull_when_present(self, run, tmp_path):
        prepare.sync_playbook("https://example.com/playbook.git", tmp_path)
        run.assert_called_once_with(["git", "pull"], cwd=str(tmp_path), check=True)

    def test_virtualenv_created_once(self, run, tmp_path):
        venv = prepare.setup_virtualenv(tmp_path)
        assert self.commands(run)[0] == ["python3", "-m", "venv", str(tmp_path / ".venv")]
        assert venv == tmp_path / ".venv"

        run.reset_mock()
        venv.mkdir()
        prepare.setup_virtualenv(tmp_path)
        assert self.commands(run)[0][1:] == ["install", "--upgrade", "pip"]

    def test_failure_propagates(self, run, tmp_path):
        run.side_effect = subprocess.CalledProcessError(100, ["apt", "update", "-y"])
        with pytest.raises(subprocess.CalledProcessError):
            prepare.prepare_host(OsInfo("debian", 12), BootstrapSettings(repo_dir=tmp_path))
        assert run.call_count == 1
