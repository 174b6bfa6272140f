import os
import tomllib
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator


DEFAULT_COMMON_TAG_KEY = "agent-provisioner"
DEFAULT_COMMON_TAG_VALUE = "true"


class ProvisionerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # None means boto3 falls back to its default credential chain
    key: Optional[str] = None
    secret: Optional[str] = None

    region: str
    image_id: str
    instance_type: str
    security_groups: Tuple[str, ...] = ()
    # first and last entries bound the range opened in each security group
    inbound_ports: Tuple[int, ...] = ()
    user: str = "ubuntu"
    key_pair_name: Optional[str] = None

    ssh_key_path: str = "~/.ssh/id_rsa"
    instance_name_prefix: str = "acceptance-agent"
    launch_timeout: int = 600

    @field_validator("security_groups")
    @classmethod
    def _dedup_security_groups(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @field_validator("inbound_ports")
    @classmethod
    def _check_ports(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        for port in value:
            if not 0 < port < 65536:
                raise ValueError(f"inbound port out of range: {port}")
        return value

    @field_validator("key_pair_name")
    @classmethod
    def _empty_key_pair_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


def load_provisioner_config(config_path: str) -> ProvisionerConfig:
    """Load the ``[ec2]`` table of a TOML file.

    Credentials missing from the file are taken from ``AWS_ACCESS_KEY_ID`` and
    ``AWS_SECRET_ACCESS_KEY``; callers load ``.env`` beforehand if they use one.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    ec2_data = dict(data.get("ec2", data))
    ec2_data.setdefault("key", os.getenv("AWS_ACCESS_KEY_ID"))
    ec2_data.setdefault("secret", os.getenv("AWS_SECRET_ACCESS_KEY"))

    return ProvisionerConfig(**ec2_data)
