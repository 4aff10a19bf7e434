"""Writers for the settings and secrets documents handed to the playbook.

Both documents are line-oriented `key: "value"` YAML. Entries keep their
insertion order and are never deduplicated: appending an existing key adds a
second line, and the playbook's YAML parser keeps the last one.
"""
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from ansible.parsing.vault import is_encrypted_file as _is_vault_file

from .models import DocumentError

logger = logging.getLogger(__name__)

OWNER_ONLY = 0o600
DEFAULT_MODE = 0o644

# Keys that must only ever land in the secrets document.
SECRET_KEYS = frozenset({"user_password", "email_login", "email_password"})

_ENTRY_RE = re.compile(r'^([A-Za-z0-9_]+):\s*(?:"((?:[^"\\]|\\.)*)"|(\S.*?))\s*$')

Value = Union[str, bool, int]


def render_value(value: Value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def render_entry(key: str, value: Value) -> str:
    """Render one `key: "value"` line, newline included."""
    return f"{key}: {render_value(value)}\n"


def _unescape(text: str) -> str:
    return re.sub(r'\\(.)', r'\1', text)


def parse_entries(text: str) -> List[Tuple[str, Value]]:
    """
    Parse a document back into (key, value) pairs, in file order.

    Duplicate keys are kept. Bare `true`/`false` come back as booleans.
    Lines that are not entries (comments, blanks) are skipped.
    """
    entries: List[Tuple[str, Value]] = []
    for line in text.splitlines():
        match = _ENTRY_RE.match(line)
        if not match:
            continue
        key, quoted, bare = match.groups()
        if quoted is not None:
            entries.append((key, _unescape(quoted)))
        elif bare in ("true", "false"):
            entries.append((key, bare == "true"))
        else:
            entries.append((key, bare))
    return entries


def is_encrypted_file(path: Path) -> bool:
    """True if `path` holds ansible-vault data."""
    try:
        with open(path, 'rb') as f:
            return _is_vault_file(f)
    except FileNotFoundError:
        return False


def restrict(path: Path) -> None:
    """Limit `path` to owner read/write."""
    os.chmod(path, OWNER_ONLY)


def write_private(path: Path, data: Union[bytes, str]) -> None:
    """
    Atomically replace `path` with `data`, mode 0600 from the first byte.

    The content goes to a temporary file in the same directory which is
    renamed over the target, so readers see either the old or the new
    document, never a partial one.
    """
    path = Path(path)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    # mkstemp creates the file 0600
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    restrict(path)


class DocumentWriter:
    """
    Append-only writer for one plaintext document.

    A secret writer creates its file 0600 and re-restricts it after every
    write. A plain writer refuses secret keys outright.
    """

    def __init__(self, path: Path, secret: bool = False):
        self.path = Path(path)
        self.secret = secret

    def _check_key(self, key: str) -> None:
        if not self.secret and key in SECRET_KEYS:
            raise DocumentError(f"Refusing to write secret '{key}' to plain document {self.path}")

    def _write(self, entries: Iterable[Tuple[str, Value]], flags: int) -> None:
        entries = list(entries)
        for key, _ in entries:
            self._check_key(key)
        if is_encrypted_file(self.path) and flags & os.O_APPEND:
            raise DocumentError(f"{self.path} is encrypted; plaintext appends would corrupt it")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        mode = OWNER_ONLY if self.secret else DEFAULT_MODE
        fd = os.open(self.path, flags | os.O_WRONLY | os.O_CREAT, mode)
        with os.fdopen(fd, 'w', encoding="utf-8") as f:
            for key, value in entries:
                f.write(render_entry(key, value))
        if self.secret:
            restrict(self.path)
        logger.info(f"Wrote {', '.join(k for k, _ in entries)} to {self.path}")

    def reset(self, entries: Iterable[Tuple[str, Value]]) -> None:
        """Overwrite the document with `entries`."""
        self._write(entries, os.O_TRUNC)

    def append(self, key: str, value: Value) -> None:
        self._write([(key, value)], os.O_APPEND)

    def read_entries(self) -> List[Tuple[str, Value]]:
        return parse_entries(self.path.read_text(encoding="utf-8"))
