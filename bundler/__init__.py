"""Packs a Node.js package and its bundled dependencies into a Lambda zip."""

from .errors import (
    ArchiveWriteError,
    BundleError,
    DependencyNotFound,
    LifecycleScriptError,
    ManifestReadError,
    PackError,
    UploadError,
)
from .pack import create_archive, prepare_bundle, write_zip
from .publish.controller import upload_to_s3

__all__ = [
    "create_archive",
    "prepare_bundle",
    "write_zip",
    "upload_to_s3",
    "PackError",
    "ManifestReadError",
    "DependencyNotFound",
    "BundleError",
    "ArchiveWriteError",
    "LifecycleScriptError",
    "UploadError",
]
