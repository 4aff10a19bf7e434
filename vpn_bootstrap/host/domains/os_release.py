"""Operating system detection and privilege checks."""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vpn_bootstrap.wizard.domains.models import BootstrapError

logger = logging.getLogger(__name__)

UBUNTU = "ubuntu"
DEBIAN = "debian"
CENTOS = "centos"

# family -> (minimum version, human name); Ubuntu versions are VERSION_ID without the dot
MINIMUM_VERSIONS = {
    UBUNTU: (2004, "Ubuntu 20.04"),
    DEBIAN: (11, "Debian 11"),
    CENTOS: (8, "Rocky Linux 8"),
}

EL_RELEASE_FILES = ("almalinux-release", "rocky-release", "centos-release")


class UnsupportedOSError(BootstrapError):
    """The host OS or its version is not supported."""
    pass


class PrivilegeError(BootstrapError):
    """The bootstrap is not running as root."""
    pass


@dataclass
class OsInfo:
    family: str
    version: int

    @property
    def is_debian_family(self) -> bool:
        return self.family in (UBUNTU, DEBIAN)


def _first_int(text: str) -> Optional[int]:
    match = re.search(r'[0-9]+', text)
    return int(match.group(0)) if match else None


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text()
    except OSError:
        return None


def _ubuntu_version(os_release: str) -> Optional[int]:
    for line in os_release.splitlines():
        if line.startswith("VERSION_ID="):
            value = line.split("=", 1)[1].strip().strip('"')
            digits = value.replace(".", "")
            return int(digits) if digits.isdigit() else None
    return None


def detect_os(root: Path = Path("/")) -> OsInfo:
    """
    Detect the distribution family and major version.

    Args:
        root: Filesystem root to inspect (tests point this at a temp dir)

    Returns:
        OsInfo for a supported host

    Raises:
        UnsupportedOSError: Unknown distribution or version below the minimum
    """
    etc = root / "etc"
    os_release = _read(etc / "os-release")

    if os_release and "ubuntu" in os_release:
        info = OsInfo(UBUNTU, _ubuntu_version(os_release) or 0)
    elif (etc / "debian_version").exists():
        info = OsInfo(DEBIAN, _first_int(_read(etc / "debian_version") or "") or 0)
    else:
        release = next(
            (etc / name for name in EL_RELEASE_FILES if (etc / name).exists()), None
        )
        if release is None:
            raise UnsupportedOSError("Unsupported OS.")
        info = OsInfo(CENTOS, _first_int(_read(release) or "") or 0)

    minimum, name = MINIMUM_VERSIONS[info.family]
    if info.version < minimum:
        raise UnsupportedOSError(f"{name} or higher is required to use this installer.")

    logger.info(f"Detected {info.family} {info.version}")
    return info


def require_root() -> None:
    """
    Raises:
        PrivilegeError: If the effective user is not root
    """
    if os.geteuid() != 0:
        raise PrivilegeError("This script must be run as root.")
