from typing import Dict, List, Optional, Tuple

import pytest

from agent_provisioner.crypto import SshKeyPair
from agent_provisioner.provider_interface import Authenticator, ICloudClient
from agent_provisioner.provision_config import ProvisionerConfig
from agent_provisioner.types import InstanceInfoWithTag, InstanceTemplate, KeyPairInfo, NodeHandle, SecurityGroupError


PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIFakeKeyForUnitTests unit@test"


class FakeCloudClient(ICloudClient):
    def __init__(self):
        self.calls: List[Tuple] = []
        self.create_results: Dict[str, SecurityGroupError] = {}
        self.authorize_results: Dict[Tuple[str, int, int], SecurityGroupError] = {}
        self.nodes: Dict[str, List[NodeHandle]] = {}
        self.instances: List[InstanceInfoWithTag] = []
        self.key_pairs: Dict[str, KeyPairInfo] = {}
        self.launched: List[Tuple[InstanceTemplate, str, Dict[str, str]]] = []
        self.deleted: List[Tuple[str, List[str]]] = []

    def create_security_group(self, region_id: str, security_group_name: str) -> SecurityGroupError:
        self.calls.append(("create_security_group", region_id, security_group_name))
        return self.create_results.get(security_group_name, SecurityGroupError.Nil)

    def authorize_security_group_ingress(self, region_id, security_group_name, from_port, to_port, cidr_ip):
        self.calls.append(("authorize", region_id, security_group_name, from_port, to_port, cidr_ip))
        return self.authorize_results.get((security_group_name, from_port, to_port), SecurityGroupError.Nil)

    def create_tags(self, region_id: str, resource_ids: List[str], tags: Dict[str, str]):
        self.calls.append(("create_tags", region_id, resource_ids, tags))

    def run_instance(self, template: InstanceTemplate, instance_name: str, tags: Dict[str, str]) -> str:
        self.launched.append((template, instance_name, tags))
        return "i-0123456789"

    def describe_nodes(self, region_id: str, instance_ids: List[str]) -> List[NodeHandle]:
        states = self.nodes.get(instance_ids[0], [])
        if len(states) > 1:
            return [states.pop(0)]
        return list(states)

    def delete_instances(self, region_id: str, instance_ids: List[str]):
        self.deleted.append((region_id, list(instance_ids)))

    def get_instances_with_tag(self, region_id: str) -> List[InstanceInfoWithTag]:
        return list(self.instances)

    def get_keypairs_in_region(self, region_id: str, key_pair_name: str) -> Optional[KeyPairInfo]:
        return self.key_pairs.get(key_pair_name)

    def group_calls(self):
        return [call for call in self.calls if call[0] in ("create_security_group", "authorize")]

    def tag_calls(self):
        return [call for call in self.calls if call[0] == "create_tags"]


class FakeAuthenticator(Authenticator):
    @property
    def user(self) -> str:
        return "ubuntu"

    def connect_kwargs(self) -> dict:
        return {"username": "ubuntu"}


@pytest.fixture
def fake_client() -> FakeCloudClient:
    return FakeCloudClient()


@pytest.fixture
def key_pair(tmp_path) -> SshKeyPair:
    private_path = tmp_path / "id_agent"
    private_path.write_text("unused private key")
    (tmp_path / "id_agent.pub").write_text(PUBLIC_KEY + "\n")
    return SshKeyPair(str(private_path))


def make_config(**overrides) -> ProvisionerConfig:
    data = {
        "region": "us-west-2",
        "image_id": "ami-123",
        "instance_type": "m6i.large",
        "security_groups": (),
        "inbound_ports": (8080,),
        "user": "ubuntu",
    }
    data.update(overrides)
    return ProvisionerConfig(**data)
