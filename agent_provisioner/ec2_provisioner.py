"""
EC2 machine provisioner

Builds launch templates for test-agent hosts, prepares the security groups
they run in and tags the started instance so it can be found again from the
same workspace.
"""

from typing import Optional, Tuple

from loguru import logger

from .crypto import SshKeyPair
from .provider_interface import Authenticator, ICloudClient, MachineProvisioner
from .provision_config import ProvisionerConfig
from .tagging import current_workspace_tag
from .types import Ec2TemplateOptions, InstanceTemplate, NodeHandle, SecurityGroupError


ANYWHERE_CIDR = "0.0.0.0/0"
SSH_PORT = 22


def check_group_result(result: SecurityGroupError, action: str):
    # other EC2 errors are raised by the client and never reach here
    if result.ignorable:
        logger.warning(f"Failed to {action} ({result.name}), ignored")


class Ec2Provisioner(MachineProvisioner):
    def __init__(
        self,
        config: ProvisionerConfig,
        client: ICloudClient,
        key_pair: SshKeyPair,
        authenticator: Authenticator,
        working_dir: Optional[str] = None,
    ):
        self.config = config
        self.client = client
        self.key_pair = key_pair
        self._authenticator = authenticator
        # None means the process working directory at tagging time
        self.working_dir = working_dir

    def build_template(self) -> InstanceTemplate:
        config = self.config

        for security_group in config.security_groups:
            self._ensure_security_group(security_group)

        template = InstanceTemplate(
            image_id=config.image_id,
            location_id=config.region,
            hardware_id=config.instance_type,
        )

        public_key = self.key_pair.read_public_key()

        template.options = Ec2TemplateOptions(
            public_key=public_key,
            security_groups=config.security_groups,
            inbound_ports=config.inbound_ports,
            login_user=config.user,
        )
        if config.key_pair_name is None:
            template.options.no_key_pair = True
        else:
            template.options.key_pair_name = config.key_pair_name

        return template

    def _ensure_security_group(self, security_group: str):
        region = self.config.region
        ports = self.config.inbound_ports

        result = self.client.create_security_group(region, security_group)
        check_group_result(result, f"create security group {security_group}")

        if ports:
            result = self.client.authorize_security_group_ingress(region, security_group, ports[0], ports[-1], ANYWHERE_CIDR)
            check_group_result(result, f"authorize tcp {ports[0]}-{ports[-1]} in {security_group}")

        # SSH is opened even when the range above already covers it
        result = self.client.authorize_security_group_ingress(region, security_group, SSH_PORT, SSH_PORT, ANYWHERE_CIDR)
        check_group_result(result, f"authorize tcp {SSH_PORT} in {security_group}")

    def post_startup_setup(self, node: NodeHandle) -> None:
        if not self.config.security_groups:
            return

        tag = current_workspace_tag(node.public_addresses, self.working_dir)
        self.client.create_tags(self.config.region, [node.provider_id], {tag: ""})
        logger.info(f"Tagged {node.provider_id} ({','.join(node.public_addresses)}) with {tag}")

    def get_available_inbound_ports(self) -> Tuple[int, ...]:
        return self.config.inbound_ports

    def authenticator(self) -> Authenticator:
        return self._authenticator
