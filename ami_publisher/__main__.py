import argparse
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from .aws_provider.client_factory import AwsClient
from .errors import PublishError
from .pipeline import PublishRequest, run_publish
from .progress import NO_PROGRESS, TqdmProgress
from .provider_interface import IAmiClient
from .publish_config import load_publish_config, resolve_default_region
from .region_resolver import parse_region_selector
from .report import OUTPUT_FORMATS, render_report


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return parsed


def make_parser():
    parser = argparse.ArgumentParser(
        prog="ami-publisher",
        description="Upload a raw NixOS disk image as an AMI and copy it to other regions",
    )
    parser.add_argument("--debug", action="store_true", help="print debug information to stderr")
    parser.add_argument("--progress", action="store_true", help="print progress bars to stderr")
    parser.add_argument("--name", type=str, default=None, help="AMI name, defaults to NixOS-<label>-<system>")
    parser.add_argument(
        "--regions",
        type=str,
        default="all",
        help="comma separated regions to publish to, the first one is used for the upload; or 'all'",
    )
    parser.add_argument(
        "--root-size",
        type=_positive_int,
        default=None,
        help="root EBS volume size in GB, defaults to the image's logical size rounded up",
    )
    parser.add_argument("--output-format", choices=OUTPUT_FORMATS, default="json", help="format of the region -> AMI map on stdout")
    parser.add_argument("-c", "--config", type=str, default=None, help="publish config toml, defaults to ./publish_config.toml if present")
    parser.add_argument("--wait-copies", action="store_true", help="wait until every copied AMI is available")
    parser.add_argument("image_dir", help="directory containing the nixos image and nix-support/image-info.json")
    return parser


def main(argv: Optional[List[str]] = None, client: Optional[IAmiClient] = None) -> int:
    args = make_parser().parse_args(argv)

    load_dotenv()

    from utils.logger import configure_logger
    configure_logger("DEBUG" if args.debug else "INFO")

    try:
        config = load_publish_config(args.config)
        if args.wait_copies:
            config = config.model_copy(update={"wait_for_copies": True})

        selector = parse_region_selector(args.regions)
        request = PublishRequest(
            image_dir=args.image_dir,
            selector=selector,
            default_region=resolve_default_region(),
            name=args.name,
            root_size=args.root_size,
        )
        report = run_publish(
            client or AwsClient.new(),
            request,
            config=config,
            progress=TqdmProgress() if args.progress else NO_PROGRESS,
        )
    except PublishError as exc:
        logger.error(str(exc))
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted; remote resources created so far are left in place")
        return 130

    print(render_report(report, args.output_format))
    return 0


if __name__ == "__main__":
    sys.exit(main())
