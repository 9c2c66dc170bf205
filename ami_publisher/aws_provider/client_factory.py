from dataclasses import dataclass
import threading
from pathlib import Path
from typing import List, Optional, Set

import boto3
from mypy_boto3_ebs.client import EBSClient
from mypy_boto3_ec2.client import EC2Client
from mypy_boto3_ssm.client import SSMClient

from .image import copy_image, register_image, tag_resource, wait_image_available
from .region import get_ec2_regions, get_known_regions
from .snapshot import upload_snapshot, wait_snapshot_completed

from ..progress import NO_PROGRESS, ProgressSink
from ..provider_interface import IAmiClient


@dataclass
class AwsClient(IAmiClient):
    pass

    @classmethod
    def new(cls) -> 'AwsClient':
        return AwsClient()

    def build(self, region_id: str) -> EC2Client:
        return boto3.client('ec2', region_name=region_id)

    def build_ebs(self, region_id: str) -> EBSClient:
        return boto3.client('ebs', region_name=region_id)

    def build_ssm(self, region_id: str) -> SSMClient:
        return boto3.client('ssm', region_name=region_id)

    def get_known_regions(self) -> Set[str]:
        return get_known_regions()

    def get_ec2_regions(self, region_id: str) -> List[str]:
        client = self.build_ssm(region_id)
        return get_ec2_regions(client)

    def upload_snapshot(self, region_id: str, path: Path, description: Optional[str], *, workers: int = 16, progress: ProgressSink = NO_PROGRESS) -> str:
        client = self.build_ebs(region_id)
        return upload_snapshot(client, path, description, workers=workers, progress=progress)

    def wait_snapshot_completed(self, region_id: str, snapshot_id: str, *, poll: float, timeout: float):
        client = self.build(region_id)
        return wait_snapshot_completed(client, snapshot_id, poll=poll, timeout=timeout)

    def register_image(
        self,
        region_id: str,
        *,
        name: str,
        description: str,
        architecture: str,
        snapshot_id: str,
        volume_gbs: int,
        volume_type: str = "gp3",
    ) -> str:
        client = self.build(region_id)
        return register_image(
            client,
            name=name,
            description=description,
            architecture=architecture,
            snapshot_id=snapshot_id,
            volume_gbs=volume_gbs,
            volume_type=volume_type,
        )

    def copy_image(self, region_id: str, *, name: str, source_image_id: str, source_region: str, description: Optional[str] = None) -> str:
        client = self.build(region_id)
        return copy_image(client, name=name, source_image_id=source_image_id, source_region=source_region, description=description)

    def tag_resource(self, region_id: str, resource_id: str, key: str, value: str):
        client = self.build(region_id)
        return tag_resource(client, resource_id, key, value)

    def wait_image_available(self, region_id: str, image_id: str, *, poll: float, timeout: float, stop_event: Optional[threading.Event] = None):
        client = self.build(region_id)
        return wait_image_available(client, image_id, poll=poll, timeout=timeout, stop_event=stop_event)
