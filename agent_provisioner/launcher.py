import time
from collections import defaultdict
from typing import Dict, List, Optional

from loguru import logger

from .ec2_provisioner import ANYWHERE_CIDR, SSH_PORT, check_group_result
from .provider_interface import ICloudClient, MachineProvisioner
from .provision_config import DEFAULT_COMMON_TAG_KEY, DEFAULT_COMMON_TAG_VALUE, ProvisionerConfig
from .tagging import current_workspace_tag
from .types import InstanceInfoWithTag, InstanceTemplate, NodeHandle
from .utils.wait_until import WaitUntilTimeoutError, wait_until


class KeyPairNotFoundError(Exception):
    pass


def _common_tags() -> Dict[str, str]:
    return {DEFAULT_COMMON_TAG_KEY: DEFAULT_COMMON_TAG_VALUE}


def _ensure_inbound_port_group(client: ICloudClient, template: InstanceTemplate, config: ProvisionerConfig):
    """Attach a shared group opening each of the template's inbound ports plus SSH.

    Only used when no security groups are configured, otherwise the instance
    would land in the default group with none of its ports reachable.
    """
    options = template.options
    if options.security_groups or not options.inbound_ports:
        return

    region_id = template.location_id
    ports = sorted(set(options.inbound_ports) | {SSH_PORT})
    group_name = f"{config.instance_name_prefix}-ports-{'-'.join(str(port) for port in ports)}"

    result = client.create_security_group(region_id, group_name)
    check_group_result(result, f"create security group {group_name}")
    for port in ports:
        result = client.authorize_security_group_ingress(region_id, group_name, port, port, ANYWHERE_CIDR)
        check_group_result(result, f"authorize tcp {port} in {group_name}")

    options.security_groups = (group_name,)


def launch_node(
    provisioner: MachineProvisioner,
    client: ICloudClient,
    config: ProvisionerConfig,
    retry_interval: float = 5,
) -> NodeHandle:
    """Start one instance from the provisioner's template and wait until it runs.

    The post-startup hook runs once the instance has a public address. If the
    instance does not come up in ``config.launch_timeout`` seconds, or anything
    fails before the hook completes, it is terminated and the error propagates.
    """
    template = provisioner.build_template()
    region_id = template.location_id

    key_pair_name = template.options.key_pair_name
    if key_pair_name and client.get_keypairs_in_region(region_id, key_pair_name) is None:
        raise KeyPairNotFoundError(f"Key pair {key_pair_name} not found in {region_id}")

    _ensure_inbound_port_group(client, template, config)

    instance_name = f"{config.instance_name_prefix}-{int(time.time())}"
    instance_id = client.run_instance(template, instance_name, _common_tags())

    node: Optional[NodeHandle] = None

    def _running():
        nonlocal node
        nodes = client.describe_nodes(region_id, [instance_id])
        node = nodes[0] if nodes else None
        return node is not None and node.is_running

    try:
        wait_until(_running, timeout=config.launch_timeout, retry_interval=retry_interval)
        assert node is not None
        provisioner.post_startup_setup(node)
    except WaitUntilTimeoutError:
        logger.error(f"Instance {instance_id} not running after {config.launch_timeout}s, terminating it")
        client.delete_instances(region_id, [instance_id])
        raise
    except Exception as e:
        logger.error(f"Launch of {instance_id} failed, terminating it: {e}")
        client.delete_instances(region_id, [instance_id])
        raise

    logger.success(f"Node {instance_id} is running at {node.public_ip}")
    return node


def release_nodes(client: ICloudClient, nodes: List[NodeHandle]):
    by_region: Dict[str, List[str]] = defaultdict(list)
    for node in nodes:
        by_region[node.region_id].append(node.provider_id)

    for region_id, instance_ids in by_region.items():
        client.delete_instances(region_id, instance_ids)


def check_tag(instance: InstanceInfoWithTag, workspace_only: bool, working_dir: Optional[str] = None) -> bool:
    if instance.tags.get(DEFAULT_COMMON_TAG_KEY) != DEFAULT_COMMON_TAG_VALUE:
        return False
    if not workspace_only:
        return True
    if not instance.public_ip:
        return False
    return current_workspace_tag([instance.public_ip], working_dir) in instance.tags


def cleanup_instances(
    client: ICloudClient,
    region_id: str,
    workspace_only: bool = False,
    working_dir: Optional[str] = None,
) -> List[str]:
    logger.info(f"Cleaning region {region_id}")
    instances = [instance for instance in client.get_instances_with_tag(region_id)
                 if check_tag(instance, workspace_only, working_dir)]

    instance_ids = [instance.instance_id for instance in instances]
    if len(instance_ids) > 0:
        logger.debug(f"{len(instance_ids)} instances to terminate in region {region_id}: {instance_ids}")
        client.delete_instances(region_id, instance_ids)
    logger.success(f"Cleanup region {region_id} done")
    return instance_ids
