# pyright: reportTypedDictNotRequiredAccess=false

import threading
from typing import List, Optional

from loguru import logger
from mypy_boto3_ec2.client import EC2Client
from mypy_boto3_ec2.type_defs import BlockDeviceMappingTypeDef

from utils.wait_until import wait_until


ROOT_DEVICE_NAME = "/dev/xvda"
# 与 nixpkgs create-amis.sh 保持一致, 与实例类型实际的 ephemeral 磁盘数量无关
EPHEMERAL_DEVICES = [
    ("/dev/sdb", "ephemeral0"),
    ("/dev/sdc", "ephemeral1"),
    ("/dev/sdd", "ephemeral2"),
    ("/dev/sde", "ephemeral3"),
]


def block_device_mappings(snapshot_id: str, volume_gbs: int, volume_type: str = "gp3") -> List[BlockDeviceMappingTypeDef]:
    mappings: List[BlockDeviceMappingTypeDef] = [{
        'DeviceName': ROOT_DEVICE_NAME,
        'Ebs': {
            'SnapshotId': snapshot_id,
            'VolumeSize': volume_gbs,
            'VolumeType': volume_type,  # pyright: ignore[reportAssignmentType]
            'DeleteOnTermination': True,
        },
    }]
    mappings.extend({'DeviceName': device, 'VirtualName': virtual} for device, virtual in EPHEMERAL_DEVICES)
    return mappings


def register_image(
    client: EC2Client,
    *,
    name: str,
    description: str,
    architecture: str,
    snapshot_id: str,
    volume_gbs: int,
    volume_type: str = "gp3",
) -> str:
    response = client.register_image(
        Name=name,
        Description=description,
        Architecture=architecture,  # pyright: ignore[reportArgumentType]
        EnaSupport=True,
        VirtualizationType='hvm',
        RootDeviceName=ROOT_DEVICE_NAME,
        BlockDeviceMappings=block_device_mappings(snapshot_id, volume_gbs, volume_type),
    )
    image_id = response.get('ImageId')
    if not image_id:
        raise RuntimeError("register_image did not return image_id")
    return image_id


def copy_image(client: EC2Client, *, name: str, source_image_id: str, source_region: str, description: Optional[str] = None) -> str:
    kwargs = dict()
    if description:
        kwargs['Description'] = description
    response = client.copy_image(Name=name, SourceImageId=source_image_id, SourceRegion=source_region, **kwargs)
    image_id = response.get('ImageId')
    if not image_id:
        raise RuntimeError("copy_image did not return image_id")
    return image_id


def tag_resource(client: EC2Client, resource_id: str, key: str, value: str):
    client.create_tags(Resources=[resource_id], Tags=[{'Key': key, 'Value': value}])


def wait_image_available(client: EC2Client, image_id: str, *, poll: float, timeout: float, stop_event: Optional[threading.Event] = None) -> None:
    def chk() -> bool:
        resp = client.describe_images(ImageIds=[image_id])
        imgs = resp.get('Images', [])
        if not imgs:
            return False
        st = imgs[0].get('State')
        logger.debug(f"image {image_id}: {st}")
        if st in {'failed', 'deregistered', 'invalid', 'error'}:
            reason = imgs[0].get('StateReason', {}).get('Message', '')
            raise RuntimeError(f"image {image_id} {st}: {reason}")
        return st == 'available'

    wait_until(chk, timeout=timeout, retry_interval=poll, stop_event=stop_event)
