from pathlib import Path

import pytest

from ami_publisher.aws_provider.snapshot import BLOCK_SIZE, snapshot_geometry, upload_snapshot, wait_snapshot_completed
from ami_publisher.errors import SnapshotNotReady
from ami_publisher.progress import ProgressSink


class _FakeEbs:
    def __init__(self):
        self.started = None
        self.blocks = {}
        self.completed = None

    def start_snapshot(self, **kwargs):
        self.started = kwargs
        return {"SnapshotId": "snap-upload", "Status": "pending"}

    def put_snapshot_block(self, **kwargs):
        assert kwargs["DataLength"] == BLOCK_SIZE
        assert len(kwargs["BlockData"]) == BLOCK_SIZE
        assert kwargs["ChecksumAlgorithm"] == "SHA256"
        self.blocks[kwargs["BlockIndex"]] = kwargs["BlockData"]
        return {}

    def complete_snapshot(self, **kwargs):
        self.completed = kwargs
        return {"Status": "completed"}


class _FakeEc2:
    def __init__(self, states):
        self._states = list(states)
        self.polls = 0

    def describe_snapshots(self, SnapshotIds):
        self.polls += 1
        state, message = self._states.pop(0) if len(self._states) > 1 else self._states[0]
        snapshot = {"SnapshotId": SnapshotIds[0], "State": state}
        if message:
            snapshot["StateMessage"] = message
        return {"Snapshots": [snapshot]}


class _RecordingProgress(ProgressSink):
    def __init__(self):
        self.events = []

    def start(self, total, desc):
        self.events.append(("start", total))

    def advance(self, amount=1):
        self.events.append(("advance", amount))

    def finish(self):
        self.events.append(("finish",))


def _write_image(path: Path) -> Path:
    # block 0 and 2 carry data, block 1 is sparse, block 3 is a partial tail
    data = bytearray(BLOCK_SIZE * 3 + 100)
    data[0:4] = b"boot"
    data[BLOCK_SIZE * 2 + 7] = 1
    data[BLOCK_SIZE * 3 + 5] = 9
    path.write_bytes(bytes(data))
    return path


def test_geometry_rounds_up(tmp_path: Path):
    path = _write_image(tmp_path / "disk.raw")
    assert snapshot_geometry(path) == (1, 4)


def test_upload_skips_sparse_blocks(tmp_path: Path):
    path = _write_image(tmp_path / "disk.raw")
    ebs = _FakeEbs()
    progress = _RecordingProgress()

    snapshot_id = upload_snapshot(ebs, path, "beta", workers=2, progress=progress)

    assert snapshot_id == "snap-upload"
    assert ebs.started == {"VolumeSize": 1, "Description": "beta"}
    assert sorted(ebs.blocks) == [0, 2, 3]
    assert ebs.blocks[3][5] == 9
    assert ebs.blocks[3][100:] == bytes(BLOCK_SIZE - 100)
    assert ebs.completed == {"SnapshotId": "snap-upload", "ChangedBlocksCount": 3}
    assert progress.events[0] == ("start", 4)
    assert progress.events.count(("advance", 1)) == 4
    assert progress.events[-1] == ("finish",)


def test_upload_without_description(tmp_path: Path):
    path = _write_image(tmp_path / "disk.raw")
    ebs = _FakeEbs()
    upload_snapshot(ebs, path, None, workers=1)
    assert "Description" not in ebs.started


def test_wait_returns_once_completed():
    ec2 = _FakeEc2([("pending", None), ("pending", None), ("completed", None)])
    wait_snapshot_completed(ec2, "snap-1", poll=0, timeout=5)
    assert ec2.polls == 3


def test_wait_raises_on_error_state():
    ec2 = _FakeEc2([("pending", None), ("error", "checksum mismatch")])
    with pytest.raises(SnapshotNotReady) as exc_info:
        wait_snapshot_completed(ec2, "snap-1", poll=0, timeout=5)
    assert exc_info.value.reason == "checksum mismatch"


def test_wait_times_out():
    ec2 = _FakeEc2([("pending", None)])
    with pytest.raises(SnapshotNotReady) as exc_info:
        wait_snapshot_completed(ec2, "snap-1", poll=0.01, timeout=0.05)
    assert "timed out" in str(exc_info.value)
