from concurrent.futures import ThreadPoolExecutor, as_completed
import threading
from typing import Collection, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .errors import OperationCancelled, ReplicationFailed
from .progress import NO_PROGRESS, ProgressSink
from .provider_interface import IAmiClient
from .publish_config import PublishConfig
from .types import ImageRecord, ReplicationOutcome
from utils.wait_until import WaitUntilCancelled


def _copy_into_region(
    client: IAmiClient,
    home: ImageRecord,
    region: str,
    *,
    name: str,
    description: Optional[str],
    tag_value: str,
    config: PublishConfig,
    cancelled: threading.Event,
) -> ReplicationOutcome:
    if cancelled.is_set():
        raise OperationCancelled(f"copy to {region} cancelled")
    try:
        image_id = client.copy_image(
            region,
            name=name,
            source_image_id=home.image_id,
            source_region=home.region,
            description=description,
        )
    except (ClientError, BotoCoreError, RuntimeError) as exc:
        raise ReplicationFailed("copy image", region, exc) from exc
    logger.debug(f"created AMI: {region}, {image_id}")

    if cancelled.is_set():
        raise OperationCancelled(f"copy to {region} cancelled after creating {image_id}")

    # 复制出的镜像已可用, 打标签失败只记录警告
    tagged = True
    try:
        client.tag_resource(region, image_id, config.tag_key, tag_value)
    except (ClientError, BotoCoreError) as exc:
        tagged = False
        logger.warning(f"failed to tag {image_id} in {region}, keeping it untagged: {exc}")

    if config.wait_for_copies:
        try:
            client.wait_image_available(
                region, image_id, poll=config.poll_interval, timeout=config.copy_timeout, stop_event=cancelled,
            )
        except WaitUntilCancelled as exc:
            raise OperationCancelled(f"wait for {image_id} in {region} cancelled") from exc
        except (ClientError, BotoCoreError, RuntimeError, TimeoutError) as exc:
            raise ReplicationFailed("wait for image", region, exc) from exc
        logger.success(f"image available in {region}: {image_id}")

    return ReplicationOutcome(region=region, record=ImageRecord(region=region, image_id=image_id), tagged=tagged)


def replicate_image(
    client: IAmiClient,
    home: ImageRecord,
    *,
    name: str,
    tag_value: str,
    replica_regions: Collection[str],
    description: Optional[str] = None,
    config: Optional[PublishConfig] = None,
    progress: ProgressSink = NO_PROGRESS,
) -> List[ReplicationOutcome]:
    """Copy ``home`` into every replica region.

    Each region is attempted independently; a failure becomes that region's
    outcome instead of stopping the others. Outcomes are sorted by region.
    An interrupt cancels the copies not yet started and stops in-flight waits.
    """
    config = config or PublishConfig()
    regions = sorted(set(replica_regions) - {home.region})
    if not regions:
        return []

    outcomes: List[ReplicationOutcome] = []
    cancelled = threading.Event()
    progress.start(len(regions), "copying ami")
    try:
        max_workers = min(config.copy_workers, max(1, len(regions)))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(
                    _copy_into_region, client, home, region,
                    name=name, description=description, tag_value=tag_value, config=config, cancelled=cancelled,
                ): region
                for region in regions
            }
            try:
                for future in as_completed(futures):
                    region = futures[future]
                    try:
                        outcomes.append(future.result())
                    except ReplicationFailed as exc:
                        logger.error(f"image copy to {region} failed: {exc}")
                        outcomes.append(ReplicationOutcome(region=region, error=exc))
                    except Exception as exc:
                        logger.exception(f"image copy to {region} failed unexpectedly")
                        outcomes.append(ReplicationOutcome(region=region, error=ReplicationFailed("copy image", region, exc)))
                    progress.advance()
            except BaseException:
                cancelled.set()
                executor.shutdown(wait=False, cancel_futures=True)
                raise
    finally:
        progress.finish()

    outcomes.sort(key=lambda outcome: outcome.region)
    failed = [outcome.region for outcome in outcomes if not outcome.ok]
    if failed:
        logger.warning(f"AMI copy failed in {len(failed)}/{len(regions)} regions: {failed}")
    else:
        logger.success(f"copied AMI to all {len(regions)} regions")
    return outcomes
