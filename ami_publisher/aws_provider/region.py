# pyright: reportTypedDictNotRequiredAccess=false

from typing import List, Set

import boto3
from mypy_boto3_ssm.client import SSMClient


EC2_REGIONS_PARAMETER_PATH = "/aws/service/global-infrastructure/services/ec2/regions"


def get_ec2_regions(client: SSMClient) -> List[str]:
    result = []

    next_token = None
    while True:
        kwargs = dict()
        if next_token:
            kwargs['NextToken'] = next_token

        response = client.get_parameters_by_path(Path=EC2_REGIONS_PARAMETER_PATH, **kwargs)

        result.extend([param['Value'] for param in response.get('Parameters', [])])

        next_token = response.get('NextToken')
        if not next_token:
            break

    return result


def get_known_regions() -> Set[str]:
    session = boto3.session.Session()
    regions = set()
    for partition in session.get_available_partitions():
        regions.update(session.get_available_regions('ec2', partition_name=partition))
    return regions
