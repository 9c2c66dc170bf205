from abc import ABC, abstractmethod
import threading
from pathlib import Path
from typing import List, Optional, Set

from .progress import ProgressSink


class IAmiClient(ABC):
    @abstractmethod
    def get_known_regions(self) -> Set[str]:
        ...

    @abstractmethod
    def get_ec2_regions(self, region_id: str) -> List[str]:
        ...

    @abstractmethod
    def upload_snapshot(self, region_id: str, path: Path, description: Optional[str], *, workers: int, progress: ProgressSink) -> str:
        ...

    @abstractmethod
    def wait_snapshot_completed(self, region_id: str, snapshot_id: str, *, poll: float, timeout: float):
        ...

    @abstractmethod
    def register_image(
        self,
        region_id: str,
        *,
        name: str,
        description: str,
        architecture: str,
        snapshot_id: str,
        volume_gbs: int,
        volume_type: str,
    ) -> str:
        ...

    @abstractmethod
    def copy_image(self, region_id: str, *, name: str, source_image_id: str, source_region: str, description: Optional[str] = None) -> str:
        ...

    @abstractmethod
    def tag_resource(self, region_id: str, resource_id: str, key: str, value: str):
        ...

    @abstractmethod
    def wait_image_available(self, region_id: str, image_id: str, *, poll: float, timeout: float, stop_event: Optional[threading.Event] = None):
        ...
