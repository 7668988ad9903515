"""Publishing bundles to object storage."""

from .storage import ObjectStore, S3ObjectStore, parse_location

__all__ = ["ObjectStore", "S3ObjectStore", "parse_location"]
