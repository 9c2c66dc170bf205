import json
import struct
import zlib
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
from botocore.exceptions import ClientError

from ami_publisher.provider_interface import IAmiClient


def client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def gpt_header(sector_size: int = 512, *, total_sectors: int = 2048) -> bytes:
    header = bytearray(sector_size)
    struct.pack_into("<8sIII", header, 0, b"EFI PART", 0x00010000, 92, 0)
    struct.pack_into("<QQQQ", header, 24, 1, total_sectors - 1, 34, total_sectors - 34)
    struct.pack_into("<QII", header, 72, 2, 128, 128)
    crc = zlib.crc32(bytes(header[:92])) & 0xFFFFFFFF
    struct.pack_into("<I", header, 16, crc)
    return bytes(header)


def write_gpt_image(path: Path, sector_size: int = 512) -> Path:
    with open(path, "wb") as f:
        f.write(bytes(sector_size))
        f.write(gpt_header(sector_size))
        f.write(bytes(sector_size * 32))
    return path


def write_image_dir(root: Path, *, system: str = "x86_64-linux", logical_bytes: str = "5368709120", label: str = "beta") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    write_gpt_image(root / "disk.raw")
    support = root / "nix-support"
    support.mkdir(parents=True, exist_ok=True)
    (support / "image-info.json").write_text(json.dumps({
        "label": label,
        "system": system,
        "logical_bytes": logical_bytes,
        "file": "../disk.raw",
    }))
    return root


class FakeAmiClient(IAmiClient):
    def __init__(
        self,
        *,
        known_regions: Optional[Set[str]] = None,
        ec2_regions: Optional[List[str]] = None,
        failing_copies: Optional[Dict[str, Exception]] = None,
        failing_tags: Optional[Dict[str, Exception]] = None,
        snapshot_error: Optional[Exception] = None,
        register_error: Optional[Exception] = None,
    ):
        self.known_regions = known_regions or {"us-east-1", "us-west-2", "eu-west-1", "ap-south-1"}
        self.ec2_regions = ec2_regions or []
        self.failing_copies = failing_copies or {}
        self.failing_tags = failing_tags or {}
        self.snapshot_error = snapshot_error
        self.register_error = register_error
        self.calls: List[Tuple] = []
        self.tags: Dict[Tuple[str, str], Dict[str, str]] = {}
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:08x}"

    def get_known_regions(self):
        return set(self.known_regions)

    def get_ec2_regions(self, region_id):
        self.calls.append(("get_ec2_regions", region_id))
        return list(self.ec2_regions)

    def upload_snapshot(self, region_id, path, description, *, workers=16, progress=None):
        self.calls.append(("upload_snapshot", region_id, str(path), description))
        return "snap-0001"

    def wait_snapshot_completed(self, region_id, snapshot_id, *, poll, timeout):
        self.calls.append(("wait_snapshot_completed", region_id, snapshot_id))
        if self.snapshot_error is not None:
            raise self.snapshot_error

    def register_image(self, region_id, *, name, description, architecture, snapshot_id, volume_gbs, volume_type="gp3"):
        self.calls.append(("register_image", region_id, name, architecture, snapshot_id, volume_gbs))
        if self.register_error is not None:
            raise self.register_error
        return "ami-home"

    def copy_image(self, region_id, *, name, source_image_id, source_region, description=None):
        self.calls.append(("copy_image", region_id, name, source_image_id, source_region))
        if region_id in self.failing_copies:
            raise self.failing_copies[region_id]
        return f"ami-{region_id}"

    def tag_resource(self, region_id, resource_id, key, value):
        self.calls.append(("tag_resource", region_id, resource_id, key, value))
        if region_id in self.failing_tags:
            raise self.failing_tags[region_id]
        self.tags.setdefault((region_id, resource_id), {})[key] = value

    def wait_image_available(self, region_id, image_id, *, poll, timeout, stop_event=None):
        self.calls.append(("wait_image_available", region_id, image_id))

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_client() -> FakeAmiClient:
    return FakeAmiClient()


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    return write_image_dir(tmp_path)
