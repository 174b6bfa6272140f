import os
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from loguru import logger


class KeyMaterialError(OSError):
    pass


def _load_private_key(key_data: bytes):
    try:
        return serialization.load_pem_private_key(key_data, password=None, backend=default_backend())
    except ValueError:
        return serialization.load_ssh_private_key(key_data, password=None, backend=default_backend())


class SshKeyPair:
    """SSH key pair stored on disk as ``<path>`` and ``<path>.pub``."""

    def __init__(self, private_key_path: str):
        self.private_key_path = os.path.expanduser(private_key_path)

    @property
    def public_key_path(self) -> str:
        return self.private_key_path + ".pub"

    def read_public_key(self) -> str:
        """Return the public key in OpenSSH format.

        Uses ``<path>.pub`` when it exists, otherwise derives the key from the
        private key file (PEM or OpenSSH encoded, no passphrase).
        """
        if os.path.exists(self.public_key_path):
            with open(self.public_key_path, "r") as f:
                return f.read().strip()

        try:
            with open(self.private_key_path, "rb") as f:
                key_data = f.read()
        except OSError as e:
            raise KeyMaterialError(f"Cannot read SSH key {self.private_key_path}: {e}") from e

        try:
            private_key = _load_private_key(key_data)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            # TypeError: the key is passphrase protected
            raise KeyMaterialError(f"Unsupported SSH key {self.private_key_path}: {e}") from e

        public_key_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
        return public_key_bytes.decode("utf-8").strip()

    @classmethod
    def generate(cls, private_key_path: str) -> "SshKeyPair":
        key_pair = cls(private_key_path)
        path = Path(key_pair.private_key_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        private_key = rsa.generate_private_key(public_exponent=65537, key_size=4096)
        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.OpenSSH,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(private_bytes)
        # O_CREAT mode does not apply to a file that already existed
        os.chmod(path, 0o600)
        Path(key_pair.public_key_path).write_text(public_bytes.decode("utf-8") + "\n")
        logger.info(f"Generated SSH key pair at {path}")
        return key_pair

    @classmethod
    def load_or_generate(cls, private_key_path: str) -> "SshKeyPair":
        key_pair = cls(private_key_path)
        if os.path.exists(key_pair.private_key_path):
            return key_pair
        return cls.generate(private_key_path)
