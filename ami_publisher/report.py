import json
from typing import Iterable

from .types import ImageRecord, ReplicationOutcome, ReplicationReport


OUTPUT_FORMATS = ("json",)


def aggregate(home: ImageRecord, outcomes: Iterable[ReplicationOutcome]) -> ReplicationReport:
    report = ReplicationReport()
    report.amis[home.region] = home.image_id
    for outcome in outcomes:
        if outcome.record is not None:
            report.amis[outcome.record.region] = outcome.record.image_id
    return report


def render_report(report: ReplicationReport, output_format: str = "json") -> str:
    if output_format == "json":
        return json.dumps({"amis": report.amis}, sort_keys=True)
    raise ValueError(f"invalid format '{output_format}'; must be 'json'")
