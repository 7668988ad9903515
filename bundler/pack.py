"""Pack a package directory into a Lambda zip."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from loguru import logger

from bundler.bundle.writer import Archive, archive_filename, build_archive
from bundler.files.base_list import list_package_files
from bundler.manifest import read_manifest
from bundler.models import PackageManifest, Packlist
from bundler.resolve.packlist import DEFAULT_MAX_CONCURRENCY, resolve_packlist
from bundler.scripts import run_script


@dataclass
class PreparedBundle:
    """A resolved packlist, ready to be fingerprinted or archived."""

    package_dir: Path
    manifest: PackageManifest
    packlist: Packlist

    @property
    def files(self) -> List[str]:
        """Every archive entry name: regular files and preserved symlinks."""
        return sorted(self.packlist.files | set(self.packlist.symlinks))


@dataclass
class CreateArchiveResult:
    archive: Archive
    files: List[str]
    filename: str
    manifest: PackageManifest


@dataclass
class WriteZipResult:
    files: List[str]
    filename: Path
    manifest: PackageManifest
    packlist: Packlist


def _is_previous_archive(rel_path: str, manifest: PackageManifest) -> bool:
    stem = archive_filename(manifest)[: -len(".zip")]
    return "/" not in rel_path and rel_path.startswith(stem) and rel_path.endswith(".zip")


def prepare_bundle(
    package_dir: Union[str, Path],
    *,
    auto_bundled: Optional[bool] = None,
    exclude_dependencies: Optional[Iterable[str]] = None,
    run_prepack: bool = True,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> PreparedBundle:
    """Read the manifest, run prepack and resolve the packlist.

    Args:
        package_dir: Package root
        auto_bundled: Bundle all runtime dependencies (default from the manifest)
        exclude_dependencies: Dependency names dropped from the top-level seed list
        run_prepack: Run the package's prepack script first
        max_concurrency: Upper bound on concurrent filesystem calls while resolving

    Returns:
        PreparedBundle
    """
    package_dir = Path(package_dir).resolve()
    manifest = read_manifest(package_dir)

    if run_prepack:
        run_script(package_dir, manifest, "prepack")

    # archives from earlier runs sit in the package dir by default
    base_files = [f for f in list_package_files(package_dir, manifest) if not _is_previous_archive(f, manifest)]

    packlist = asyncio.run(
        resolve_packlist(
            package_dir,
            manifest,
            exclude_dependencies=exclude_dependencies,
            auto_bundled=auto_bundled,
            base_files=base_files,
            max_concurrency=max_concurrency,
        )
    )
    logger.info(f"Bundling {len(packlist.bundled)} top-level dependencies of {manifest.name}@{manifest.version}")
    return PreparedBundle(package_dir=package_dir, manifest=manifest, packlist=packlist)


def create_archive(package_dir: Union[str, Path], **kwargs) -> CreateArchiveResult:
    """Resolve and archive a package; the caller owns (and closes) the returned archive."""
    prepared = prepare_bundle(package_dir, **kwargs)
    archive = build_archive(prepared.packlist, prepared.package_dir)
    return CreateArchiveResult(
        archive=archive,
        files=prepared.files,
        filename=archive_filename(prepared.manifest),
        manifest=prepared.manifest,
    )


def write_zip(
    package_dir: Union[str, Path, None] = None,
    pack_destination: Union[str, Path, None] = None,
    dry_run: bool = False,
    prepared: Optional[PreparedBundle] = None,
    **kwargs,
) -> WriteZipResult:
    """Pack package_dir into <pack_destination>/<name>-<version>.zip.

    Args:
        package_dir: Package root (defaults to the working directory)
        pack_destination: Output directory (defaults to package_dir)
        dry_run: Resolve and report only; write nothing
        prepared: An already prepared bundle, to avoid resolving twice
        **kwargs: Passed to prepare_bundle

    Returns:
        WriteZipResult with the entry list and the absolute output path
    """
    if prepared is None:
        prepared = prepare_bundle(package_dir if package_dir is not None else Path.cwd(), **kwargs)

    destination = Path(pack_destination) if pack_destination is not None else prepared.package_dir
    filename = (destination / archive_filename(prepared.manifest)).resolve()

    if not dry_run:
        with build_archive(prepared.packlist, prepared.package_dir) as archive:
            archive.save(filename)

    return WriteZipResult(
        files=prepared.files,
        filename=filename,
        manifest=prepared.manifest,
        packlist=prepared.packlist,
    )
