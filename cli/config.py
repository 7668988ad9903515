"""CLI configuration, read from the environment."""

import os
import sys
from typing import Optional

from loguru import logger

from bundler.publish.controller import DEFAULT_KEY_PREFIX
from bundler.resolve.packlist import DEFAULT_MAX_CONCURRENCY


def get_key_prefix() -> str:
    """Prefix of derived S3 keys."""
    return os.environ.get("PACK_LAMBDA_KEY_PREFIX", DEFAULT_KEY_PREFIX)


def get_max_concurrency() -> int:
    """Upper bound on concurrent filesystem calls while resolving."""
    value = os.environ.get("PACK_LAMBDA_MAX_CONCURRENCY")
    if not value:
        return DEFAULT_MAX_CONCURRENCY
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"PACK_LAMBDA_MAX_CONCURRENCY must be an integer, got {value!r}")
    if parsed < 1:
        raise ValueError("PACK_LAMBDA_MAX_CONCURRENCY must be at least 1")
    return parsed


def get_s3_endpoint() -> Optional[str]:
    """Custom S3 endpoint (MinIO, LocalStack); None for AWS."""
    return os.environ.get("PACK_LAMBDA_S3_ENDPOINT") or None


def get_aws_region() -> Optional[str]:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or None


def configure_logging(verbose: int = 0) -> None:
    """Send bundler logs to stderr: warnings by default, -v for info, -vv for debug."""
    level = {0: "WARNING", 1: "INFO"}.get(verbose, "DEBUG")
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> {message}")
