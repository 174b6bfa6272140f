"""Host records for provisioned agent nodes."""
from __future__ import annotations

from dataclasses import asdict, dataclass
import json
from typing import List, Optional


@dataclass
class HostSpec:
    ip: str
    ssh_user: str = "ubuntu"
    ssh_key_path: Optional[str] = None
    provider: Optional[str] = None
    region: Optional[str] = None
    instance_id: Optional[str] = None


def save_hosts(hosts: List[HostSpec], file_path: str):
    with open(file_path, "w") as f:
        json.dump([asdict(host) for host in hosts], f, ensure_ascii=True, indent=2)
