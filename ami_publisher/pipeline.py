from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .disk_check import validate_disk_image
from .home_publisher import derived_image_name, image_description, publish_home_image, validate_root_size
from .image_info import check_system, load_image_info
from .progress import NO_PROGRESS, ProgressSink
from .provider_interface import IAmiClient
from .publish_config import PublishConfig
from .region_resolver import resolve_regions
from .replication import replicate_image
from .report import aggregate
from .types import RegionSelector, ReplicationReport


@dataclass
class PublishRequest:
    image_dir: str
    selector: RegionSelector
    default_region: Optional[str] = None
    name: Optional[str] = None
    root_size: Optional[int] = None


def run_publish(
    client: IAmiClient,
    request: PublishRequest,
    *,
    config: Optional[PublishConfig] = None,
    progress: ProgressSink = NO_PROGRESS,
) -> ReplicationReport:
    config = config or PublishConfig()

    # 输入校验全部在任何远程调用之前完成
    image = load_image_info(request.image_dir)
    check_system(image)
    validate_disk_image(image.file)
    validate_root_size(image, request.root_size)

    regions = resolve_regions(request.selector, client, default_region=request.default_region)
    logger.debug(f"uploading to regions: home={regions.home_region}, replicas={regions.sorted_replicas()}")

    published = publish_home_image(
        client,
        image,
        regions.home_region,
        root_size=request.root_size,
        name=request.name,
        progress=progress,
        config=config,
    )

    outcomes = replicate_image(
        client,
        published.record,
        name=published.name,
        tag_value=derived_image_name(image),
        replica_regions=regions.replica_regions,
        description=image_description(image),
        config=config,
        progress=progress,
    )
    return aggregate(published.record, outcomes)
