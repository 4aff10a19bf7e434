"""Passphrase-based encryption of the wizard documents.

Documents are written in ansible-vault format (`$ANSIBLE_VAULT;1.1;AES256`)
so that `ansible-playbook --ask-vault-pass` opens them with the same
passphrase the operator chose in the wizard.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Tuple

from ansible.errors import AnsibleError
from ansible.parsing.vault import VaultLib, VaultSecret, b_HEADER, is_encrypted

from .documents import Value, is_encrypted_file, parse_entries, render_entry, write_private
from .models import VaultError

logger = logging.getLogger(__name__)

VAULT_HEADER = b_HEADER
VAULT_ID = "default"


class VaultCipher:
    """Encrypts and decrypts ansible-vault data under one passphrase."""

    def __init__(self, passphrase: str):
        # ansible strips the passphrase read by --ask-vault-pass
        secret = (passphrase or "").encode("utf-8").strip()
        if not secret:
            raise VaultError("Vault passphrase cannot be empty")
        self._secret = VaultSecret(secret)
        self._vault = VaultLib([(VAULT_ID, self._secret)])

    def encrypt(self, plaintext: bytes) -> bytes:
        vaulttext = self._vault.encrypt(plaintext, self._secret)
        if not vaulttext.endswith(b"\n"):
            vaulttext += b"\n"
        return vaulttext

    def decrypt(self, vaulttext: bytes) -> bytes:
        """
        Open ansible-vault data.

        Raises:
            VaultError: If the data is not vault data, is damaged, or the
                passphrase is wrong
        """
        if not is_encrypted(vaulttext):
            raise VaultError("Not ansible-vault encrypted data")
        try:
            return self._vault.decrypt(vaulttext)
        except AnsibleError:
            raise VaultError("Decryption failed: wrong passphrase or damaged document")


class DocumentVault:
    """
    Encrypted-at-rest view of one document.

    Every change goes through a plaintext staging buffer: the current content
    is decrypted if needed, new entries are appended, and the result is
    encrypted and swapped in atomically. Encrypted bytes are therefore never
    encrypted a second time, and plaintext is never appended to vault data.
    """

    def __init__(self, path: Path, passphrase: str):
        self.path = Path(path)
        self.cipher = VaultCipher(passphrase)

    def is_encrypted(self) -> bool:
        return is_encrypted_file(self.path)

    def read(self) -> str:
        """Return the plaintext content, decrypting if necessary. Missing file reads as empty."""
        if not self.path.exists():
            return ""
        data = self.path.read_bytes()
        if is_encrypted(data):
            data = self.cipher.decrypt(data)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise VaultError(f"{self.path} is not a UTF-8 text document: {e}")

    def entries(self) -> List[Tuple[str, Value]]:
        return parse_entries(self.read())

    def commit(self, entries: Iterable[Tuple[str, Value]], replace: bool = False) -> None:
        """
        Add `entries` and leave the document encrypted.

        Args:
            entries: (key, value) pairs appended in order
            replace: Start from an empty document instead of the current one
        """
        entries = list(entries)
        staged = "" if replace else self.read()
        if staged and not staged.endswith("\n"):
            staged += "\n"
        staged += "".join(render_entry(key, value) for key, value in entries)
        write_private(self.path, self.cipher.encrypt(staged.encode("utf-8")))
        logger.info(f"Committed {', '.join(k for k, _ in entries)} to encrypted {self.path}")

    def encrypt_in_place(self) -> bool:
        """
        Encrypt the document if it is still plaintext.

        Returns:
            True if the document was encrypted, False if it already was

        Raises:
            VaultError: If the document does not exist
        """
        if not self.path.exists():
            raise VaultError(f"Cannot encrypt missing document {self.path}")
        data = self.path.read_bytes()
        if is_encrypted(data):
            logger.warning(f"{self.path} is already encrypted, leaving it untouched")
            return False
        write_private(self.path, self.cipher.encrypt(data))
        logger.info(f"Encrypted {self.path}")
        return True

    def decrypt_in_place(self) -> bool:
        """Decrypt the document back to plaintext (still 0600). Returns False if it was plaintext."""
        if not self.path.exists():
            raise VaultError(f"Cannot decrypt missing document {self.path}")
        data = self.path.read_bytes()
        if not is_encrypted(data):
            return False
        write_private(self.path, self.cipher.decrypt(data))
        logger.info(f"Decrypted {self.path}")
        return True
