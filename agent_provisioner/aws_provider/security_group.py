from botocore.exceptions import ClientError
from loguru import logger

from ..types import SecurityGroupError

from mypy_boto3_ec2.client import EC2Client


DUPLICATE_ERROR_CODES = {"InvalidGroup.Duplicate", "InvalidPermission.Duplicate"}
CONFLICT_ERROR_CODES = {"IncorrectState", "DependencyViolation", "InvalidGroup.InUse"}


def _as_security_group_error(exc: ClientError) -> SecurityGroupError:
    code = exc.response['Error']['Code']
    if code in DUPLICATE_ERROR_CODES:
        return SecurityGroupError.Duplicate
    if code in CONFLICT_ERROR_CODES:
        return SecurityGroupError.Conflict
    raise exc


def create_security_group(client: EC2Client, security_group_name: str) -> SecurityGroupError:
    try:
        rep = client.create_security_group(
            GroupName=security_group_name,
            Description=security_group_name,
        )
    except ClientError as exc:
        return _as_security_group_error(exc)

    logger.info(f"Created security group {security_group_name}: {rep['GroupId']}")
    return SecurityGroupError.Nil


def authorize_security_group_ingress(
    client: EC2Client,
    security_group_name: str,
    from_port: int,
    to_port: int,
    cidr_ip: str,
) -> SecurityGroupError:
    try:
        client.authorize_security_group_ingress(
            GroupName=security_group_name,
            IpPermissions=[
                {
                    'IpProtocol': 'tcp',
                    'FromPort': from_port,
                    'ToPort': to_port,
                    'IpRanges': [{'CidrIp': cidr_ip}]
                }
            ]
        )
    except ClientError as exc:
        return _as_security_group_error(exc)

    return SecurityGroupError.Nil
