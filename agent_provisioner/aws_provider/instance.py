# pyright: reportTypedDictNotRequiredAccess=false

import json
import time
from typing import Any, Dict, List

from botocore.exceptions import ClientError
from loguru import logger

from ..types import InstanceInfoWithTag, InstanceTemplate, NodeHandle

from mypy_boto3_ec2.client import EC2Client


def _as_tag_list(tags: Dict[str, str]) -> List[dict]:
    return [{'Key': key, 'Value': value} for key, value in tags.items()]


def cloud_init_user_data(login_user: str, public_key: str) -> str:
    # JSON strings are valid double-quoted YAML scalars
    return "\n".join([
        "#cloud-config",
        "users:",
        "  - default",
        f"  - name: {json.dumps(login_user)}",
        "    shell: /bin/bash",
        "    sudo: ALL=(ALL) NOPASSWD:ALL",
        "    ssh_authorized_keys:",
        f"      - {json.dumps(public_key)}",
        "",
    ])


def as_run_instances_kwargs(template: InstanceTemplate, instance_name: str, tags: Dict[str, str]) -> Dict[str, Any]:
    options = template.options
    all_tags = dict(tags)
    all_tags['Name'] = instance_name

    kwargs: Dict[str, Any] = {
        'ImageId': template.image_id,
        'InstanceType': template.hardware_id,
        'MinCount': 1,
        'MaxCount': 1,
        'TagSpecifications': [{
            'ResourceType': 'instance',
            'Tags': _as_tag_list(all_tags),
        }],
    }

    if options.security_groups:
        kwargs['SecurityGroups'] = list(options.security_groups)

    if options.key_pair_name and not options.no_key_pair:
        kwargs['KeyName'] = options.key_pair_name

    if options.public_key:
        kwargs['UserData'] = cloud_init_user_data(options.login_user or "ubuntu", options.public_key)

    return kwargs


def run_instance(client: EC2Client, template: InstanceTemplate, instance_name: str, tags: Dict[str, str]) -> str:
    response = client.run_instances(**as_run_instances_kwargs(template, instance_name, tags))
    instance_id = response['Instances'][0]['InstanceId']
    assert type(instance_id) is str
    logger.success(f"Create instance at {template.location_id}: instance_type={template.hardware_id}, image={template.image_id}, id={instance_id}")
    return instance_id


def as_node_handle(region_id: str, instance) -> NodeHandle:
    public_ip = instance.get('PublicIpAddress')
    private_ip = instance.get('PrivateIpAddress')
    return NodeHandle(
        provider_id=instance['InstanceId'],
        region_id=region_id,
        public_addresses=[public_ip] if public_ip else [],
        private_addresses=[private_ip] if private_ip else [],
        state=instance['State']['Name'],
    )


def describe_nodes(client: EC2Client, region_id: str, instance_ids: List[str]) -> List[NodeHandle]:
    nodes = []
    for i in range(0, len(instance_ids), 1000):
        try:
            response = client.describe_instances(InstanceIds=instance_ids[i: i+1000])
        except ClientError as exc:
            # freshly launched instances are not visible to describe calls right away
            if exc.response['Error']['Code'] == 'InvalidInstanceID.NotFound':
                continue
            raise
        for reservation in response['Reservations']:
            for instance in reservation['Instances']:
                nodes.append(as_node_handle(region_id, instance))
    return nodes


def as_instance_info_with_tag(instance):
    if instance.get('Tags'):
        tags = {tag['Key']: tag['Value'] for tag in instance['Tags']}
    else:
        tags = dict()

    return InstanceInfoWithTag(
        instance_id=instance['InstanceId'],
        instance_name=tags.get('Name', ''),
        tags=tags,
        public_ip=instance.get('PublicIpAddress'),
    )


def get_instances_with_tag(client: EC2Client) -> List[InstanceInfoWithTag]:
    instances = []
    next_token = None

    while True:
        params = {}
        if next_token:
            params['NextToken'] = next_token

        response = client.describe_instances(**params)

        for reservation in response['Reservations']:
            for instance in reservation['Instances']:
                # terminated instances stay visible for a while
                if instance['State']['Name'] == 'terminated':
                    continue
                instances.append(as_instance_info_with_tag(instance))

        next_token = response.get('NextToken')
        if not next_token:
            break

    return instances


def create_tags(client: EC2Client, resource_ids: List[str], tags: Dict[str, str]):
    client.create_tags(Resources=resource_ids, Tags=_as_tag_list(tags))  # pyright: ignore[reportArgumentType]


def delete_instances(client: EC2Client, instance_ids: List[str], retry_interval: float = 5, max_attempts: int = 3):
    for i in range(0, len(instance_ids), 1000):
        chunk = instance_ids[i:i+1000]
        for attempt in range(1, max_attempts + 1):
            try:
                client.terminate_instances(InstanceIds=chunk)
                logger.info(f"Terminated instances: {chunk}")
                break
            except Exception as e:
                logger.error(f"Cannot delete {chunk} (attempt {attempt}/{max_attempts}): {e}")
                if attempt == max_attempts:
                    raise
            time.sleep(retry_interval)
