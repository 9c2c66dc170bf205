# pyright: reportTypedDictNotRequiredAccess=false

from base64 import b64encode
from concurrent.futures import ThreadPoolExecutor, as_completed
import hashlib
import math
import os
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger
from mypy_boto3_ebs.client import EBSClient
from mypy_boto3_ec2.client import EC2Client

from ..errors import SnapshotNotReady
from ..progress import NO_PROGRESS, ProgressSink
from utils.wait_until import WaitUntilTimeoutError, wait_until


# EBS direct APIs only accept 512 KiB blocks
BLOCK_SIZE = 512 * 1024
GIBIBYTE = 1024 * 1024 * 1024
SPARSE_BLOCK = bytes(BLOCK_SIZE)


def _read_block(path: Path, index: int) -> bytes:
    with open(path, "rb") as f:
        f.seek(index * BLOCK_SIZE)
        data = f.read(BLOCK_SIZE)
    return data.ljust(BLOCK_SIZE, b"\0")


def _put_block(client: EBSClient, snapshot_id: str, path: Path, index: int) -> bool:
    data = _read_block(path, index)
    if data == SPARSE_BLOCK:
        # unwritten blocks read back as zeros, no need to upload them
        return False
    checksum = b64encode(hashlib.sha256(data).digest()).decode()
    client.put_snapshot_block(
        SnapshotId=snapshot_id,
        BlockIndex=index,
        BlockData=data,
        DataLength=BLOCK_SIZE,
        Checksum=checksum,
        ChecksumAlgorithm='SHA256',
    )
    return True


def snapshot_geometry(path: Path) -> Tuple[int, int]:
    """Return (volume size in GiB, number of blocks) for the file at ``path``."""
    size = os.path.getsize(path)
    volume_gbs = max(1, math.ceil(size / GIBIBYTE))
    blocks = math.ceil(size / BLOCK_SIZE)
    return volume_gbs, blocks


def upload_snapshot(
    client: EBSClient,
    path: Path,
    description: Optional[str] = None,
    *,
    workers: int = 16,
    progress: ProgressSink = NO_PROGRESS,
) -> str:
    volume_gbs, blocks = snapshot_geometry(path)

    kwargs = dict()
    if description:
        kwargs['Description'] = description
    response = client.start_snapshot(VolumeSize=volume_gbs, **kwargs)
    snapshot_id = response['SnapshotId']
    logger.info(f"started snapshot {snapshot_id}: {volume_gbs} GiB, {blocks} blocks")

    changed = 0
    progress.start(blocks, "snapshot upload")
    try:
        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = [executor.submit(_put_block, client, snapshot_id, path, index) for index in range(blocks)]
            try:
                for future in as_completed(futures):
                    if future.result():
                        changed += 1
                    progress.advance()
            except BaseException:
                # 不再上传剩余的 block, 未完成的 snapshot 由 EBS 超时后自动标记为 error
                executor.shutdown(wait=False, cancel_futures=True)
                raise
    finally:
        progress.finish()

    client.complete_snapshot(SnapshotId=snapshot_id, ChangedBlocksCount=changed)
    logger.debug(f"snapshot {snapshot_id}: uploaded {changed}/{blocks} non-empty blocks")
    return snapshot_id


def describe_snapshot_state(client: EC2Client, snapshot_id: str) -> Tuple[Optional[str], Optional[str]]:
    response = client.describe_snapshots(SnapshotIds=[snapshot_id])
    snapshots = response.get('Snapshots', [])
    if not snapshots:
        return None, None
    return snapshots[0].get('State'), snapshots[0].get('StateMessage')


def wait_snapshot_completed(client: EC2Client, snapshot_id: str, *, poll: float, timeout: float) -> None:
    def chk() -> bool:
        state, message = describe_snapshot_state(client, snapshot_id)
        logger.debug(f"snapshot {snapshot_id}: {state}")
        if state == 'error':
            raise SnapshotNotReady(snapshot_id, message)
        return state == 'completed'

    try:
        wait_until(chk, timeout=timeout, retry_interval=poll)
    except WaitUntilTimeoutError as exc:
        raise SnapshotNotReady(snapshot_id, f"timed out after {timeout}s") from exc
