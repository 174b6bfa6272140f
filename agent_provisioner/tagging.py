import hashlib
import os
from typing import Optional, Sequence


def workspace_tag(working_dir: str, public_addresses: Sequence[str]) -> str:
    """Hex-encoded MD5 of the working directory followed by the node addresses.

    Same workspace and same address always give the same tag, so nodes from
    repeated runs can be found again. It is an identifier, not a unique id.
    """
    try:
        md = hashlib.new("md5", usedforsecurity=False)
    except ValueError as e:
        # md5 is missing from the OpenSSL build (FIPS mode): nothing to retry
        raise AssertionError(e) from e

    md.update(f"{working_dir}{','.join(public_addresses)}".encode("utf-8"))
    return md.hexdigest().upper()


def current_workspace_tag(public_addresses: Sequence[str], working_dir: Optional[str] = None) -> str:
    return workspace_tag(working_dir if working_dir is not None else os.getcwd(), public_addresses)
