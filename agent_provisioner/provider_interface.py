from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .types import InstanceInfoWithTag, InstanceTemplate, KeyPairInfo, NodeHandle, SecurityGroupError


class Authenticator(ABC):
    """Opaque login handle handed back to whoever opens sessions on a node."""

    @property
    @abstractmethod
    def user(self) -> str:
        ...

    @abstractmethod
    def connect_kwargs(self) -> dict:
        ...


class MachineProvisioner(ABC):
    @abstractmethod
    def build_template(self) -> InstanceTemplate:
        ...

    @abstractmethod
    def post_startup_setup(self, node: NodeHandle) -> None:
        ...

    @abstractmethod
    def get_available_inbound_ports(self) -> Tuple[int, ...]:
        ...

    @abstractmethod
    def authenticator(self) -> Authenticator:
        ...


class ICloudClient(ABC):
    @abstractmethod
    def create_security_group(self, region_id: str, security_group_name: str) -> SecurityGroupError:
        ...

    @abstractmethod
    def authorize_security_group_ingress(
        self,
        region_id: str,
        security_group_name: str,
        from_port: int,
        to_port: int,
        cidr_ip: str,
    ) -> SecurityGroupError:
        ...

    @abstractmethod
    def create_tags(self, region_id: str, resource_ids: List[str], tags: Dict[str, str]):
        ...

    @abstractmethod
    def run_instance(self, template: InstanceTemplate, instance_name: str, tags: Dict[str, str]) -> str:
        ...

    @abstractmethod
    def describe_nodes(self, region_id: str, instance_ids: List[str]) -> List[NodeHandle]:
        ...

    @abstractmethod
    def delete_instances(self, region_id: str, instance_ids: List[str]):
        ...

    @abstractmethod
    def get_instances_with_tag(self, region_id: str) -> List[InstanceInfoWithTag]:
        ...

    @abstractmethod
    def get_keypairs_in_region(self, region_id: str, key_pair_name: str) -> Optional[KeyPairInfo]:
        ...
