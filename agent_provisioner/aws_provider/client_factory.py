from dataclasses import dataclass
from typing import Dict, List, Optional
import boto3

from .instance import create_tags, delete_instances, describe_nodes, get_instances_with_tag, run_instance
from .key_pair import get_keypairs_in_region
from .security_group import authorize_security_group_ingress, create_security_group

from ..provider_interface import ICloudClient
from ..provision_config import ProvisionerConfig
from ..types import InstanceInfoWithTag, InstanceTemplate, KeyPairInfo, NodeHandle, SecurityGroupError

from mypy_boto3_ec2.client import EC2Client


@dataclass
class AwsClient(ICloudClient):
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    @classmethod
    def new(cls, config: ProvisionerConfig) -> 'AwsClient':
        return AwsClient(access_key_id=config.key, secret_access_key=config.secret)

    def build(self, region_id: str) -> EC2Client:
        session = boto3.Session(
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=region_id,
        )
        return session.client('ec2')

    def create_security_group(self, region_id: str, security_group_name: str) -> SecurityGroupError:
        client = self.build(region_id)
        return create_security_group(client, security_group_name)

    def authorize_security_group_ingress(
        self,
        region_id: str,
        security_group_name: str,
        from_port: int,
        to_port: int,
        cidr_ip: str,
    ) -> SecurityGroupError:
        client = self.build(region_id)
        return authorize_security_group_ingress(client, security_group_name, from_port, to_port, cidr_ip)

    def create_tags(self, region_id: str, resource_ids: List[str], tags: Dict[str, str]):
        client = self.build(region_id)
        return create_tags(client, resource_ids, tags)

    def run_instance(self, template: InstanceTemplate, instance_name: str, tags: Dict[str, str]) -> str:
        client = self.build(template.location_id)
        return run_instance(client, template, instance_name, tags)

    def describe_nodes(self, region_id: str, instance_ids: List[str]) -> List[NodeHandle]:
        client = self.build(region_id)
        return describe_nodes(client, region_id, instance_ids)

    def delete_instances(self, region_id: str, instance_ids: List[str]):
        client = self.build(region_id)
        return delete_instances(client, instance_ids)

    def get_instances_with_tag(self, region_id: str) -> List[InstanceInfoWithTag]:
        client = self.build(region_id)
        return get_instances_with_tag(client)

    def get_keypairs_in_region(self, region_id: str, key_pair_name: str) -> Optional[KeyPairInfo]:
        client = self.build(region_id)
        return get_keypairs_in_region(client, region_id, key_pair_name)
