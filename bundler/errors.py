"""Errors raised while packing and publishing a Lambda bundle."""

from pathlib import Path
from typing import Optional, Union


class PackError(Exception):
    """Base class for every failure the CLI reports as a non-zero exit."""


class ManifestReadError(PackError):
    """package.json is missing, unreadable or malformed."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"failed to read manifest {self.path}: {reason}")


class DependencyNotFound(PackError):
    """A dependency could not be found in any ancestor node_modules directory."""

    def __init__(self, dependency: str, requested_from: Union[str, Path]):
        self.dependency = dependency
        self.requested_from = Path(requested_from)
        super().__init__(f"failed to resolve dependency {dependency} in {self.requested_from}")


class BundleError(PackError):
    """The file set of a bundled dependency cannot be represented in the archive."""


class ArchiveWriteError(PackError):
    """The archive could not be written, or was modified after it was finalized."""


class LifecycleScriptError(PackError):
    """A package lifecycle script (e.g. prepack) exited with a non-zero status."""

    def __init__(self, event: str, returncode: int):
        self.event = event
        self.returncode = returncode
        super().__init__(f"{event} script failed with exit code {returncode}")


class UploadError(PackError):
    """The object store rejected or failed the publish."""

    def __init__(self, bucket: str, key: str, cause: Optional[BaseException] = None):
        self.bucket = bucket
        self.key = key
        self.cause = cause
        message = f"failed to upload s3://{bucket}/{key}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
