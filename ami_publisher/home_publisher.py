import os
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .errors import HomePublishFailed, InvalidRootSize, SnapshotNotReady
from .image_info import check_system
from .progress import NO_PROGRESS, ProgressSink
from .provider_interface import IAmiClient
from .publish_config import PublishConfig
from .types import ImageMetadata, ImageRecord, PublishedImage


BYTES_PER_GIB = 1024 * 1024 * 1024


def root_volume_gbs(logical_bytes: int, root_size: Optional[int] = None) -> int:
    """Root volume size in GiB, rounded up so the volume is never smaller than the image."""
    if root_size is not None:
        return root_size
    return (logical_bytes + BYTES_PER_GIB - 1) // BYTES_PER_GIB


def validate_root_size(image: ImageMetadata, root_size: Optional[int] = None) -> int:
    """Root volume size for ``image``, checked against the size of the disk file.

    The snapshot is as large as the disk file rounded up to a whole GiB, and EC2
    refuses a root volume smaller than its snapshot.
    """
    volume_gbs = root_volume_gbs(image.logical_bytes, root_size)
    if volume_gbs < 1:
        raise InvalidRootSize(f"root volume size must be at least 1 GiB, got {volume_gbs} for {image.logical_bytes} logical bytes")
    disk_gbs = max(1, (os.path.getsize(image.file) + BYTES_PER_GIB - 1) // BYTES_PER_GIB)
    if volume_gbs < disk_gbs:
        raise InvalidRootSize(f"root volume of {volume_gbs} GiB is smaller than the {disk_gbs} GiB disk image {image.file}")
    return volume_gbs


def derived_image_name(image: ImageMetadata) -> str:
    return f"NixOS-{image.label}-{image.system}"


def image_description(image: ImageMetadata) -> str:
    return f"NixOS {image.label} {image.system}"


def _call(operation: str, region: str, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except (ClientError, BotoCoreError, OSError, RuntimeError) as exc:
        raise HomePublishFailed(operation, region, exc) from exc


def publish_home_image(
    client: IAmiClient,
    image: ImageMetadata,
    home_region: str,
    *,
    root_size: Optional[int] = None,
    name: Optional[str] = None,
    progress: ProgressSink = NO_PROGRESS,
    config: Optional[PublishConfig] = None,
) -> PublishedImage:
    """Upload, wait, register and tag the image in ``home_region``.

    Every step depends on the previous one. Nothing created remotely is rolled
    back when a later step fails.
    """
    config = config or PublishConfig()
    architecture = check_system(image)
    volume_gbs = root_volume_gbs(image.logical_bytes, root_size)
    if volume_gbs < 1:
        raise InvalidRootSize(f"root volume size must be at least 1 GiB, got {volume_gbs} for {image.logical_bytes} logical bytes")

    logger.info(f"uploading snapshot to region {home_region}")
    snapshot_id = _call(
        "upload snapshot", home_region,
        client.upload_snapshot, home_region, image.file, image.label,
        workers=config.upload_workers, progress=progress,
    )

    logger.info(f"waiting for snapshot {snapshot_id} upload to finalize")
    try:
        client.wait_snapshot_completed(home_region, snapshot_id, poll=config.poll_interval, timeout=config.snapshot_timeout)
    except (ClientError, BotoCoreError) as exc:
        logger.warning(f"snapshot {snapshot_id} is left in place in {home_region}")
        raise HomePublishFailed("describe snapshot", home_region, exc) from exc
    except SnapshotNotReady:
        logger.warning(f"snapshot {snapshot_id} is left in place in {home_region}")
        raise

    tag_value = derived_image_name(image)
    image_name = name or tag_value

    logger.info(f"registering AMI {image_name} in {home_region} ({volume_gbs} GiB root volume)")
    try:
        image_id = _call(
            "register image", home_region,
            client.register_image, home_region,
            name=image_name,
            description=image_description(image),
            architecture=architecture,
            snapshot_id=snapshot_id,
            volume_gbs=volume_gbs,
            volume_type=config.volume_type,
        )
    except HomePublishFailed:
        logger.warning(f"snapshot {snapshot_id} is left in place in {home_region}")
        raise

    try:
        _call("tag image", home_region, client.tag_resource, home_region, image_id, config.tag_key, tag_value)
    except HomePublishFailed:
        logger.warning(f"snapshot {snapshot_id} and image {image_id} are left in place in {home_region}")
        raise
    logger.success(f"registered ami: region={home_region},id={image_id}")

    return PublishedImage(
        record=ImageRecord(region=home_region, image_id=image_id),
        snapshot_id=snapshot_id,
        name=image_name,
        tag_value=tag_value,
    )
