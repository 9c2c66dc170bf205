from typing import Collection, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .errors import InvalidRegion, NoRegionsSpecified, RegionDiscoveryFailed
from .provider_interface import IAmiClient
from .types import ALL_REGIONS, AllRegions, ExplicitRegions, RegionSelector, ResolvedRegionSet


ALL_REGIONS_TOKEN = "all"


def parse_region_selector(value: str) -> RegionSelector:
    """Turn ``--regions`` into a selector.

    A leading ``all`` selects every region and the remaining tokens are ignored.
    Anything else becomes an ordered, deduplicated list.
    """
    tokens = [token.strip() for token in value.split(",")]
    tokens = [token for token in tokens if token]
    if not tokens:
        raise NoRegionsSpecified("must specify one or more regions, or use the default of 'all'")
    if tokens[0] == ALL_REGIONS_TOKEN:
        if len(tokens) > 1:
            logger.warning(f"ignoring regions listed after 'all': {tokens[1:]}")
        return ALL_REGIONS

    regions: List[str] = []
    for token in tokens:
        if token not in regions:
            regions.append(token)
    return ExplicitRegions(tuple(regions))


def discover_all_regions(client: IAmiClient, region_id: str) -> List[str]:
    try:
        return client.get_ec2_regions(region_id)
    except (ClientError, BotoCoreError) as exc:
        raise RegionDiscoveryFailed(f"failed to list ec2 regions via ssm in {region_id}: {exc}") from exc


def resolve_regions(
    selector: RegionSelector,
    client: IAmiClient,
    *,
    default_region: Optional[str],
    known_regions: Optional[Collection[str]] = None,
) -> ResolvedRegionSet:
    if isinstance(selector, AllRegions):
        if not default_region:
            raise NoRegionsSpecified("no default region configured; set AWS_REGION or pass --regions explicitly")
        regions = discover_all_regions(client, default_region)
        logger.debug(f"discovered {len(regions)} ec2 regions")
        return ResolvedRegionSet(home_region=default_region, replica_regions=frozenset(regions) - {default_region})

    if not selector.regions:
        if not default_region:
            raise NoRegionsSpecified("must specify one or more regions, or use the default of 'all'")
        return ResolvedRegionSet(home_region=default_region)

    if known_regions is None:
        known_regions = client.get_known_regions()
    for region in selector.regions:
        if region not in known_regions:
            raise InvalidRegion(region)

    home_region = selector.regions[0]
    return ResolvedRegionSet(home_region=home_region, replica_regions=frozenset(selector.regions[1:]) - {home_region})
