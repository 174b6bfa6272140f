from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass
class Ec2TemplateOptions:
    public_key: Optional[str] = None
    security_groups: Tuple[str, ...] = ()
    inbound_ports: Tuple[int, ...] = ()
    login_user: Optional[str] = None
    key_pair_name: Optional[str] = None
    # launch without any key pair, login relies on public_key only
    no_key_pair: bool = False


@dataclass
class InstanceTemplate:
    image_id: str
    location_id: str
    hardware_id: str
    options: Ec2TemplateOptions = field(default_factory=Ec2TemplateOptions)


@dataclass
class NodeHandle:
    provider_id: str
    region_id: str
    public_addresses: List[str] = field(default_factory=list)
    private_addresses: List[str] = field(default_factory=list)
    state: str = "pending"

    @property
    def public_ip(self) -> Optional[str]:
        return self.public_addresses[0] if self.public_addresses else None

    @property
    def is_running(self) -> bool:
        return self.state == "running" and len(self.public_addresses) > 0


class SecurityGroupError(Enum):
    Nil = 0
    Duplicate = 1
    Conflict = 2

    @property
    def ignorable(self) -> bool:
        return self in (SecurityGroupError.Duplicate, SecurityGroupError.Conflict)


@dataclass
class KeyPairInfo:
    key_pair_name: str
    finger_print: str


@dataclass
class InstanceInfoWithTag:
    instance_id: str
    instance_name: str
    tags: Dict[str, str]
    public_ip: Optional[str] = None
