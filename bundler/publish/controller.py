"""
Publish controller - builds a bundle and uploads it to S3.

With skip_existing the archive is named after a fingerprint of the package's
own files; if an object already exists under the resulting key nothing is
uploaded, so publishing the same content twice transfers it once.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from loguru import logger

from bundler.bundle.fingerprint import fingerprint, short_digest
from bundler.bundle.writer import Archive, archive_filename, build_archive
from bundler.models import PackageManifest
from bundler.pack import PreparedBundle, prepare_bundle
from bundler.publish.storage import ObjectStore, ProgressCallback, S3ObjectStore, parse_location

DEFAULT_KEY_PREFIX = "lambda/node"


def default_key(manifest: PackageManifest, filename: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """<prefix>/<module name>/<filename>"""
    prefix = prefix.strip("/")
    key = f"{manifest.name}/{filename}"
    return f"{prefix}/{key}" if prefix else key


@dataclass
class UploadPlan:
    """Where a prepared bundle will go, decided before any bytes move."""

    prepared: PreparedBundle
    bucket: str
    key: str
    filename: str
    digest: Optional[str] = None

    @property
    def manifest(self) -> PackageManifest:
        return self.prepared.manifest

    @property
    def files(self) -> List[str]:
        return self.prepared.files


@dataclass
class UploadResult:
    files: List[str]
    filename: str
    manifest: PackageManifest
    bucket: str
    key: str
    skipped: bool = False
    digest: Optional[str] = None
    local_path: Optional[Path] = None


def plan_upload(
    prepared: PreparedBundle,
    location: str,
    key: Optional[str] = None,
    *,
    skip_existing: bool = False,
    timestamp: bool = False,
    key_prefix: str = DEFAULT_KEY_PREFIX,
) -> UploadPlan:
    """Derive the archive name and destination key for a prepared bundle.

    Args:
        prepared: The resolved bundle
        location: "s3://bucket[/key]" or "bucket[/key]"
        key: Explicit key; wins over a key embedded in location
        skip_existing: Name the archive after its content fingerprint
        timestamp: Append a UTC timestamp to the archive name (ignored with skip_existing)
        key_prefix: Prefix of the derived key

    Returns:
        UploadPlan
    """
    bucket, location_key = parse_location(location)

    digest = None
    suffix = None
    if skip_existing:
        digest = fingerprint(prepared.packlist.files, prepared.package_dir)
        suffix = short_digest(digest)
    elif timestamp:
        suffix = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")

    filename = archive_filename(prepared.manifest, suffix)
    explicit_key = key or location_key
    if explicit_key and skip_existing:
        logger.warning(f"Explicit key {explicit_key} is not content addressed; an existing object there skips the upload")

    return UploadPlan(
        prepared=prepared,
        bucket=bucket,
        key=explicit_key or default_key(prepared.manifest, filename, key_prefix),
        filename=filename,
        digest=digest,
    )


async def _transfer(
    archive: Archive,
    store: ObjectStore,
    key: str,
    progress: Optional[ProgressCallback],
    local_path: Optional[Path],
) -> None:
    # upload and local save each read their own stream of the finalized archive
    def upload() -> None:
        with archive.open() as stream:
            store.upload_stream(key, stream, progress=progress)

    jobs = [asyncio.to_thread(upload)]
    if local_path is not None:
        jobs.append(asyncio.to_thread(archive.save, local_path))
    await asyncio.gather(*jobs)


def execute_upload(
    plan: UploadPlan,
    store: ObjectStore,
    *,
    skip_existing: bool = False,
    progress: Optional[ProgressCallback] = None,
    keep_file: Union[str, Path, None] = None,
) -> UploadResult:
    """Build the archive for plan and upload it, unless it is already published.

    Args:
        plan: Result of plan_upload
        store: Destination store; its bucket must match the plan
        skip_existing: Probe the store first and skip if the key exists
        progress: Transfer progress callback
        keep_file: Also save the archive at this local path

    Returns:
        UploadResult; skipped is True when the probe found the object

    Raises:
        UploadError: If the probe (other than "not found") or the upload fails
        ArchiveWriteError: If the archive or the local copy cannot be written
    """
    result = UploadResult(
        files=plan.files,
        filename=plan.filename,
        manifest=plan.manifest,
        bucket=plan.bucket,
        key=plan.key,
        digest=plan.digest,
    )

    if skip_existing and store.exists(plan.key):
        logger.info(f"s3://{plan.bucket}/{plan.key} already exists, skipping upload")
        result.skipped = True
        return result

    local_path = Path(keep_file) if keep_file is not None else None
    with build_archive(plan.prepared.packlist, plan.prepared.package_dir) as archive:
        asyncio.run(_transfer(archive, store, plan.key, progress, local_path))

    result.local_path = local_path
    return result


def upload_to_s3(
    location: str,
    key: Optional[str] = None,
    package_dir: Union[str, Path, None] = None,
    *,
    skip_existing: bool = False,
    timestamp: bool = False,
    key_prefix: str = DEFAULT_KEY_PREFIX,
    store_factory: Callable[[str], ObjectStore] = S3ObjectStore,
    progress: Optional[ProgressCallback] = None,
    keep_file: bool = False,
    **prepare_kwargs,
) -> UploadResult:
    """Pack package_dir and publish the archive to S3.

    Args:
        location: "s3://bucket[/key]" or "bucket[/key]"
        key: Explicit object key
        package_dir: Package root (defaults to the working directory)
        skip_existing: Content-addressed name plus existence probe
        timestamp: Timestamped archive name when not deduplicating
        key_prefix: Prefix of the derived key
        store_factory: Builds the ObjectStore for a bucket name
        progress: Transfer progress callback
        keep_file: Also save the archive in the package directory
        **prepare_kwargs: Passed to prepare_bundle

    Returns:
        UploadResult
    """
    prepared = prepare_bundle(package_dir if package_dir is not None else Path.cwd(), **prepare_kwargs)
    plan = plan_upload(
        prepared, location, key, skip_existing=skip_existing, timestamp=timestamp, key_prefix=key_prefix
    )
    store = store_factory(plan.bucket)
    return execute_upload(
        plan,
        store,
        skip_existing=skip_existing,
        progress=progress,
        keep_file=prepared.package_dir / plan.filename if keep_file else None,
    )
