from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple, Union


@dataclass(frozen=True)
class ImageMetadata:
    label: str
    system: str
    logical_bytes: int
    file: Path


class AllRegions:
    """Selector sentinel: every region the compute service is offered in."""

    def __repr__(self):
        return "AllRegions"

    def __eq__(self, other):
        return isinstance(other, AllRegions)

    def __hash__(self):
        return hash(AllRegions)


ALL_REGIONS = AllRegions()


@dataclass(frozen=True)
class ExplicitRegions:
    regions: Tuple[str, ...]


RegionSelector = Union[AllRegions, ExplicitRegions]


@dataclass(frozen=True)
class ResolvedRegionSet:
    home_region: str
    replica_regions: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.home_region in self.replica_regions:
            object.__setattr__(self, "replica_regions", self.replica_regions - {self.home_region})

    def sorted_replicas(self) -> List[str]:
        return sorted(self.replica_regions)


@dataclass(frozen=True)
class ImageRecord:
    region: str
    image_id: str


@dataclass(frozen=True)
class PublishedImage:
    record: ImageRecord
    snapshot_id: str
    name: str
    tag_value: str


@dataclass(frozen=True)
class ReplicationOutcome:
    region: str
    record: Optional[ImageRecord] = None
    error: Optional[Exception] = None
    tagged: bool = False

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class ReplicationReport:
    amis: Dict[str, str] = field(default_factory=dict)
