# pyright: reportTypedDictNotRequiredAccess=false

from typing import Optional
from botocore.exceptions import ClientError

from ..types import KeyPairInfo

from mypy_boto3_ec2.client import EC2Client
from mypy_boto3_ec2.type_defs import KeyPairInfoTypeDef


def as_key_pair_info(rep: KeyPairInfoTypeDef):
    assert type(rep['KeyName']) is str
    assert type(rep['KeyFingerprint']) is str
    return KeyPairInfo(key_pair_name=rep['KeyName'], finger_print=rep['KeyFingerprint'])


def get_keypairs_in_region(client: EC2Client, region_id: str, key_pair_name: str) -> Optional[KeyPairInfo]:
    try:
        response = client.describe_key_pairs(KeyNames=[key_pair_name])
    except ClientError as e:
        if e.response['Error']['Code'] == 'InvalidKeyPair.NotFound':
            return None
        raise

    result = [as_key_pair_info(kp) for kp in response['KeyPairs']]

    if len(result) == 0:
        return None
    elif len(result) == 1:
        return result[0]
    else:
        raise Exception(f"Unexpected: multiple result for key pair {key_pair_name} in {region_id}")
