"""Prepare the host: base packages, playbook checkout and its virtualenv.

Every step shells out and uses check=True; a failing package manager or git
run aborts the bootstrap with CalledProcessError.
"""
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from vpn_bootstrap.host.domains.os_release import OsInfo

logger = logging.getLogger(__name__)

DEBIAN_PACKAGES = [
    "sudo",
    "software-properties-common",
    "dnsutils",
    "curl",
    "git",
    "locales",
    "rsync",
    "apparmor",
    "python3",
    "python3-setuptools",
    "python3-apt",
    "python3-venv",
    "python3-pip",
    "aptitude",
    "direnv",
    "iptables",
]

CENTOS_PACKAGES = [
    "sudo",
    "bind-utils",
    "curl",
    "git",
    "rsync",
    "python3",
    "python3-setuptools",
    "python3-pip",
    "python3-firewall",
]


def _run(command: List[str], cwd: Optional[Path] = None) -> None:
    logger.info(f"Running: {' '.join(command)}")
    subprocess.run(command, cwd=str(cwd) if cwd else None, check=True)


def package_commands(os_info: OsInfo) -> List[List[str]]:
    """The package manager invocations for this OS family, in order."""
    if os_info.is_debian_family:
        return [
            ["apt", "update", "-y"],
            ["apt", "upgrade", "-y"],
            ["apt", "install", "-y", *DEBIAN_PACKAGES],
        ]
    return [
        ["dnf", "install", "-y", "epel-release"],
        ["dnf", "install", "-y", *CENTOS_PACKAGES],
    ]


def install_dependencies(os_info: OsInfo) -> None:
    for command in package_commands(os_info):
        _run(command)


def sync_playbook(repository: str, repo_dir: Path) -> None:
    """Clone the playbook, or pull if a checkout is already there."""
    if repo_dir.is_dir():
        _run(["git", "pull"], cwd=repo_dir)
    else:
        _run(["git", "clone", repository, str(repo_dir)])


def setup_virtualenv(repo_dir: Path, python: str = "python3") -> Path:
    """
    Create <repo_dir>/.venv if missing and install the playbook requirements.

    Returns:
        Path to the virtualenv
    """
    venv = repo_dir / ".venv"
    if not venv.is_dir():
        _run([python, "-m", "venv", str(venv)])
    pip = str(venv / "bin" / "pip")
    _run([pip, "install", "--upgrade", "pip"])
    _run([pip, "install", "-r", str(repo_dir / "requirements.txt")])
    logger.info("Python virtual environment set up successfully.")
    return venv


def prepare_host(os_info: OsInfo, settings) -> None:
    """Run every preparation step for the detected OS."""
    install_dependencies(os_info)
    sync_playbook(settings.repository, settings.repo_dir)
    setup_virtualenv(settings.repo_dir)
