from typing import Optional


class PublishError(Exception):
    """Base class for every error the publisher reports to the operator."""


class MetadataError(PublishError):
    pass


class UnsupportedSystem(PublishError):
    def __init__(self, system: str, supported):
        self.system = system
        super().__init__(f"unsupported system '{system}'; only {', '.join(sorted(supported))} is supported")


class InvalidDiskImage(PublishError):
    pass


class InvalidRegion(PublishError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"could not parse region '{token}'")


class NoRegionsSpecified(PublishError):
    pass


class RegionDiscoveryFailed(PublishError):
    pass


class SnapshotNotReady(PublishError):
    def __init__(self, snapshot_id: str, reason: Optional[str]):
        self.snapshot_id = snapshot_id
        self.reason = reason
        super().__init__(f"snapshot {snapshot_id} did not become available: {reason or 'unknown reason'}")


class ProviderCallError(PublishError):
    """A remote call failed; carries the operation, the region and the provider text."""

    def __init__(self, operation: str, region: str, cause: BaseException):
        self.operation = operation
        self.region = region
        self.cause = cause
        super().__init__(f"{operation} failed in {region}: {cause}")


class HomePublishFailed(ProviderCallError):
    pass


class ReplicationFailed(ProviderCallError):
    pass


class ConfigError(PublishError):
    pass


class InvalidRootSize(PublishError):
    pass


class OperationCancelled(PublishError):
    pass
