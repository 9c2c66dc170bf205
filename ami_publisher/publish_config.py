import os
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError
import tomllib
from loguru import logger
from pydantic import BaseModel, ValidationError

from .errors import ConfigError


DEFAULT_CONFIG_PATH = "./publish_config.toml"
DEFAULT_TAG_KEY = "NixOSName"


class PublishConfig(BaseModel):
    # 快照/镜像状态轮询间隔(秒)
    poll_interval: float = 5
    snapshot_timeout: float = 3600
    copy_timeout: float = 3600
    # 并发上传 snapshot block 的线程数
    upload_workers: int = 16
    # 同时向多少个 region 发起 copy_image, 过大会被限流
    copy_workers: int = 8
    wait_for_copies: bool = False
    tag_key: str = DEFAULT_TAG_KEY
    volume_type: str = "gp3"


def load_publish_config(config_file: Optional[str]) -> PublishConfig:
    """Read the ``[publish]`` table of a TOML file.

    An explicitly named file must exist. Without one, ``./publish_config.toml``
    is used when present and the built-in defaults otherwise.
    """
    path = Path(config_file or DEFAULT_CONFIG_PATH)
    if not path.exists():
        if config_file:
            raise ConfigError(f"config file not found: {config_file}")
        return PublishConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        config = PublishConfig(**(data.get("publish") or {}))
    except (tomllib.TOMLDecodeError, ValidationError) as exc:
        raise ConfigError(f"invalid config file {path}: {exc}") from exc
    logger.debug(f"loaded publish config from {path}")
    return config


def resolve_default_region(override: Optional[str] = None) -> Optional[str]:
    """Region precedence: explicit override, AWS_REGION, AWS_DEFAULT_REGION, profile config."""
    if override:
        return override
    for var in ("AWS_REGION", "AWS_DEFAULT_REGION"):
        value = os.getenv(var, "").strip()
        if value:
            return value
    try:
        return boto3.session.Session().region_name
    except BotoCoreError as exc:
        # e.g. AWS_PROFILE names a profile missing from ~/.aws/config
        raise ConfigError(f"could not load aws profile configuration: {exc}") from exc
