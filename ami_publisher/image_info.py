"""Loader for the ``nix-support/image-info.json`` sidecar written by the image build."""
import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ValidationError, field_validator

from .errors import MetadataError, UnsupportedSystem
from .types import ImageMetadata


IMAGE_INFO_SUBPATH = Path("nix-support") / "image-info.json"

# system -> EC2 architecture
SUPPORTED_SYSTEMS = {
    "x86_64-linux": "x86_64",
}

U64_MAX = 2**64 - 1


class ImageInfoFile(BaseModel):
    label: str
    system: str
    logical_bytes: int
    file: str

    @field_validator("logical_bytes", mode="before")
    @classmethod
    def _parse_logical_bytes(cls, value):
        # the build scripts write the size as a JSON string
        if not isinstance(value, str):
            raise ValueError("logical_bytes must be a string")
        parsed = int(value.strip())
        if parsed < 0 or parsed > U64_MAX:
            raise ValueError(f"logical_bytes out of range: {value}")
        return parsed


def load_image_info(image_dir: str) -> ImageMetadata:
    info_path = Path(image_dir) / IMAGE_INFO_SUBPATH
    try:
        with open(info_path, "r") as f:
            data = json.load(f)
    except OSError as exc:
        raise MetadataError(f"malformed image directory, could not open {info_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise MetadataError(f"error parsing {info_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise MetadataError(f"error parsing {info_path}: expected a JSON object")

    try:
        parsed = ImageInfoFile(**data)
    except ValidationError as exc:
        raise MetadataError(f"error parsing {info_path}: {exc}") from exc

    image_file = Path(parsed.file)
    if not image_file.is_absolute():
        image_file = info_path.parent / image_file

    info = ImageMetadata(
        label=parsed.label,
        system=parsed.system,
        logical_bytes=parsed.logical_bytes,
        file=image_file,
    )
    logger.debug(f"read image info: {info}")
    return info


def check_system(info: ImageMetadata) -> str:
    """Return the EC2 architecture for the image's system or raise UnsupportedSystem."""
    try:
        return SUPPORTED_SYSTEMS[info.system]
    except KeyError:
        raise UnsupportedSystem(info.system, SUPPORTED_SYSTEMS.keys()) from None
