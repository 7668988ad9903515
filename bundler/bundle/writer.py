import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from loguru import logger

from bundler.errors import ArchiveWriteError
from bundler.models import PackageManifest, Packlist

ZIP_UNIX_SYSTEM = 3
# fixed timestamp for link entries; zip cannot store pre-1980 dates
LINK_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def archive_filename(manifest: PackageManifest, suffix: Optional[str] = None) -> str:
    """<name>-<version>[-<suffix>].zip, with a scoped name flattened (@scope/pkg -> scope-pkg)."""
    name = manifest.name
    if name.startswith("@"):
        name = name[1:]
    name = name.replace("/", "-", 1)
    stem = f"{name}-{manifest.version}"
    if suffix:
        stem = f"{stem}-{suffix}"
    return f"{stem}.zip"


class Archive:
    """Append-only zip archive, spooled to a temporary file until it is saved or uploaded.

    Entries may only be added before finalize(); afterwards the archive can be
    read any number of times through independent streams from open().
    """

    def __init__(self):
        handle = tempfile.NamedTemporaryFile(prefix="pack-lambda-", suffix=".zip", delete=False)
        self.path = Path(handle.name)
        self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(
            handle, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
        )
        self._handle = handle
        self.entries: List[str] = []
        self.size = 0

    @property
    def finalized(self) -> bool:
        return self._zip is None

    def _writer(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveWriteError("archive is already finalized")
        return self._zip

    def add_file(self, source: Union[str, Path], name: str) -> None:
        """Append a regular file entry, keeping the source's permission bits."""
        writer = self._writer()
        try:
            writer.write(source, arcname=name)
        except OSError as e:
            raise ArchiveWriteError(f"cannot add {name} from {source}: {e.strerror or e}")
        self.entries.append(name)

    def add_symlink(self, name: str, target: str, mode: int) -> None:
        """Append a symlink entry: Unix mode bits in external_attr, target as content."""
        writer = self._writer()
        info = zipfile.ZipInfo(name, date_time=LINK_DATE_TIME)
        info.create_system = ZIP_UNIX_SYSTEM
        info.compress_type = zipfile.ZIP_STORED
        if not stat.S_ISLNK(mode):
            mode = stat.S_IFLNK | stat.S_IMODE(mode)
        info.external_attr = (mode & 0xFFFF) << 16
        writer.writestr(info, target.encode("utf-8"))
        self.entries.append(name)

    def finalize(self) -> None:
        """Write the central directory; no entry may be added afterwards."""
        writer = self._writer()
        try:
            writer.close()
            self._handle.close()
        except OSError as e:
            raise ArchiveWriteError(f"cannot finalize archive: {e.strerror or e}")
        self._zip = None
        self.size = self.path.stat().st_size
        logger.debug(f"Finalized archive with {len(self.entries)} entries ({self.size} bytes)")

    def open(self) -> BinaryIO:
        """A fresh readable stream over the finalized archive."""
        if not self.finalized:
            raise ArchiveWriteError("archive must be finalized before it is read")
        return open(self.path, "rb")

    def save(self, destination: Union[str, Path]) -> Path:
        """Write the archive to destination atomically.

        The bytes go to a temporary file in the destination directory which is
        then renamed over the final name, so a failed write never leaves a
        partial archive behind.
        """
        destination = Path(destination)
        tmp_path: Optional[str] = None
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as out, self.open() as src:
                shutil.copyfileobj(src, out)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, destination)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise ArchiveWriteError(f"cannot write {destination}: {e.strerror or e}")
        logger.info(f"Wrote {destination}")
        return destination

    def close(self) -> None:
        """Discard the temporary archive file."""
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._handle.close()
        if self.path.exists():
            self.path.unlink()

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def build_archive(packlist: Packlist, package_dir: Union[str, Path]) -> Archive:
    """Build and finalize the zip for a resolved packlist.

    Args:
        packlist: Resolved files and symlinks
        package_dir: Root the packlist paths are relative to

    Returns:
        The finalized Archive; the caller closes it

    Raises:
        ArchiveWriteError: If a file cannot be read or the archive cannot be written
    """
    package_dir = Path(package_dir)
    archive = Archive()
    try:
        for name in packlist.sorted_files():
            archive.add_file(package_dir / name, name)
        for name in sorted(packlist.symlinks):
            link = packlist.symlinks[name]
            archive.add_symlink(name, link.target, link.mode)
        archive.finalize()
    except BaseException:
        archive.close()
        raise
    return archive
