import asyncio
import time
from typing import Sequence

import asyncssh
from loguru import logger

from .crypto import SshKeyPair
from .provider_interface import Authenticator


class PublicKeyAuthenticator(Authenticator):
    """Logs in as ``user`` with the private half of ``key_pair``."""

    def __init__(self, user: str, key_pair: SshKeyPair):
        self._user = user
        self.key_pair = key_pair

    @property
    def user(self) -> str:
        return self._user

    def connect_kwargs(self) -> dict:
        return {
            "username": self._user,
            "client_keys": [self.key_pair.private_key_path],
            "known_hosts": None,
        }

    async def wait_ready(self, host: str, timeout: int, interval: int = 3) -> None:
        deadline = time.time() + timeout
        while time.time() < deadline:
            try:
                conn = await asyncssh.connect(host, **self.connect_kwargs())
                conn.close()
                await conn.wait_closed()
                return
            except (OSError, asyncssh.Error) as exc:
                logger.debug(f"SSH not ready on {host}: {exc}")
                await asyncio.sleep(interval)
        raise TimeoutError(f"SSH not ready for {host}")

    async def run(self, host: str, command: str | Sequence[str], *, check: bool = True):
        if isinstance(command, (list, tuple)):
            command = " ".join(str(part) for part in command)
        async with asyncssh.connect(host, **self.connect_kwargs()) as conn:
            return await conn.run(command, check=check)
