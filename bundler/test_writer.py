"""Tests for archive assembly."""

import os
import stat
import zipfile

import pytest

from bundler.bundle.writer import Archive, archive_filename, build_archive
from bundler.errors import ArchiveWriteError
from bundler.manifest import read_manifest
from bundler.models import PackageManifest, Packlist, Symlink
from bundler.resolve.packlist import packlist
from bundler.testing import symlink, write_package


def _entries(archive: Archive) -> dict:
    with archive.open() as stream, zipfile.ZipFile(stream) as zf:
        return {info.filename: (info, zf.read(info)) for info in zf.infolist()}


def test_archive_contains_module_and_dependency_files(project):
    result = packlist(project)

    with build_archive(result, project) as archive:
        entries = _entries(archive)

    assert set(entries) == {"index.js", "package.json", "node_modules/D/lib.txt", "node_modules/D/package.json"}
    assert entries["node_modules/D/lib.txt"][1] == b"d\n"


def test_symlink_entries_keep_target_and_mode(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    dep = write_package(root / "node_modules" / "D", "D", files={"bin/cli.js": "#!/usr/bin/env node\n"})
    symlink(dep / "cli.js", "bin/cli.js")
    link_mode = os.lstat(dep / "cli.js").st_mode

    with build_archive(packlist(root), root) as archive:
        entries = _entries(archive)

    info, content = entries["node_modules/D/cli.js"]
    assert content == b"bin/cli.js"
    assert info.create_system == 3
    assert (info.external_attr >> 16) == link_mode & 0xFFFF
    assert stat.S_ISLNK(info.external_attr >> 16)
    assert entries["node_modules/D/bin/cli.js"][1] == b"#!/usr/bin/env node\n"


def test_regular_file_permissions_preserved(tmp_path):
    root = write_package(tmp_path / "m", "M", files={"run.sh": "echo\n"})
    os.chmod(root / "run.sh", 0o755)

    with build_archive(Packlist(files={"run.sh"}), root) as archive:
        info, _ = _entries(archive)["run.sh"]

    assert stat.S_IMODE(info.external_attr >> 16) == 0o755


def test_extraction_restores_working_symlink(tmp_path):
    root = write_package(tmp_path / "m", "M", files={"real.txt": "hello"})
    link_mode = stat.S_IFLNK | 0o777
    lst = Packlist(files={"real.txt"}, symlinks={"alias.txt": Symlink(target="real.txt", mode=link_mode)})

    with build_archive(lst, root) as archive:
        out = tmp_path / "out"
        out.mkdir()
        with archive.open() as stream, zipfile.ZipFile(stream) as zf:
            for info in zf.infolist():
                data = zf.read(info)
                if stat.S_ISLNK(info.external_attr >> 16):
                    os.symlink(data.decode(), out / info.filename)
                else:
                    (out / info.filename).write_bytes(data)

    assert (out / "alias.txt").is_symlink()
    assert (out / "alias.txt").read_text() == "hello"


def test_adding_after_finalize_fails(tmp_path):
    (tmp_path / "a.txt").write_text("a")

    with Archive() as archive:
        archive.add_file(tmp_path / "a.txt", "a.txt")
        archive.finalize()

        with pytest.raises(ArchiveWriteError):
            archive.add_file(tmp_path / "a.txt", "b.txt")
        with pytest.raises(ArchiveWriteError):
            archive.add_symlink("c.txt", "a.txt", stat.S_IFLNK | 0o777)
        with pytest.raises(ArchiveWriteError):
            archive.finalize()


def test_open_requires_finalized_archive():
    with Archive() as archive:
        with pytest.raises(ArchiveWriteError):
            archive.open()


def test_missing_source_file_raises_and_cleans_up(tmp_path):
    with pytest.raises(ArchiveWriteError):
        build_archive(Packlist(files={"missing.js"}), tmp_path)


def test_save_is_atomic_and_leaves_no_temp_files(project, tmp_path):
    destination = tmp_path / "dist" / "m.zip"

    with build_archive(packlist(project), project) as archive:
        archive.save(destination)

    assert zipfile.is_zipfile(destination)
    assert os.listdir(destination.parent) == ["m.zip"]


def test_save_into_unwritable_location_fails(project, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    with build_archive(packlist(project), project) as archive:
        with pytest.raises(ArchiveWriteError):
            archive.save(blocker / "m.zip")

    assert blocker.read_text() == ""


def test_close_removes_temporary_file(project):
    archive = build_archive(packlist(project), project)
    path = archive.path
    assert path.exists()

    archive.close()

    assert not path.exists()


def test_archive_filename(project):
    manifest = read_manifest(project)

    assert archive_filename(manifest) == "M-1.0.0.zip"
    assert archive_filename(manifest, "abc123") == "M-1.0.0-abc123.zip"
    assert archive_filename(PackageManifest(name="@scope/pkg", version="0.1.0")) == "scope-pkg-0.1.0.zip"
