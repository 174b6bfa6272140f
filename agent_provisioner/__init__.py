"""
Agent Provisioner

Provisions EC2 instances that host remote test-execution agents.
"""

from .authenticator import PublicKeyAuthenticator
from .crypto import KeyMaterialError, SshKeyPair
from .ec2_provisioner import Ec2Provisioner
from .provider_interface import Authenticator, ICloudClient, MachineProvisioner
from .provision_config import ProvisionerConfig, load_provisioner_config
from .tagging import workspace_tag
from .types import Ec2TemplateOptions, InstanceTemplate, NodeHandle, SecurityGroupError

__all__ = [
    "Authenticator",
    "Ec2Provisioner",
    "Ec2TemplateOptions",
    "ICloudClient",
    "InstanceTemplate",
    "KeyMaterialError",
    "MachineProvisioner",
    "NodeHandle",
    "ProvisionerConfig",
    "PublicKeyAuthenticator",
    "SecurityGroupError",
    "SshKeyPair",
    "load_provisioner_config",
    "workspace_tag",
]
