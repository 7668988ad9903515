"""Tests for bundle resolution."""

import os
import stat

import pytest

from bundler.bundle.fingerprint import fingerprint
from bundler.errors import BundleError, DependencyNotFound
from bundler.manifest import read_manifest
from bundler.resolve.packlist import packlist, select_bundled
from bundler.testing import symlink, write_package


def test_single_dependency(project):
    result = packlist(project)

    assert result.files == {
        "index.js",
        "package.json",
        "node_modules/D/package.json",
        "node_modules/D/lib.txt",
    }
    assert result.bundled == ["D"]
    assert result.symlinks == {}


def test_root_node_modules_is_never_taken_from_base_files(project):
    result = packlist(project, base_files=["index.js", "node_modules/stale/x.js"], exclude_dependencies={"D"})

    assert result.files == {"index.js"}
    assert result.bundled == []


def test_exclusion_only_filters_seed_list(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1", "E": "1"})
    write_package(root / "node_modules" / "D", "D", files={"d.js": ""})
    write_package(root / "node_modules" / "E", "E", dependencies={"D": "1"}, files={"e.js": ""})

    result = packlist(root, exclude_dependencies={"D"})

    assert result.bundled == ["E"]
    assert "node_modules/D/d.js" in result.files
    assert "node_modules/E/e.js" in result.files


def test_excluded_dependency_subtree_not_visited(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    write_package(root / "node_modules" / "D", "D", dependencies={"F": "1"}, files={"d.js": ""})
    write_package(root / "node_modules" / "F", "F", files={"f.js": ""})

    result = packlist(root, exclude_dependencies={"D"})

    assert not any(f.startswith("node_modules/") for f in result.files)


def test_manifest_exclude_list_is_applied(tmp_path):
    root = write_package(
        tmp_path / "m",
        "M",
        dependencies={"D": "1", "E": "1"},
        **{"pack-lambda": {"excludeDependencies": ["D"]}},
    )
    write_package(root / "node_modules" / "D", "D")
    write_package(root / "node_modules" / "E", "E")

    assert packlist(root).bundled == ["E"]


def test_bundled_dependencies_when_auto_bundling_disabled(tmp_path):
    root = write_package(
        tmp_path / "m", "M", dependencies={"D": "1", "E": "1"}, bundledDependencies=["E"]
    )
    write_package(root / "node_modules" / "D", "D")
    write_package(root / "node_modules" / "E", "E")

    result = packlist(root, auto_bundled=False)

    assert result.bundled == ["E"]
    assert "node_modules/D/package.json" not in result.files


def test_diamond_dependency_resolved_once(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"B": "1", "C": "1"})
    write_package(root / "node_modules" / "B", "B", dependencies={"D": "1"})
    write_package(root / "node_modules" / "C", "C", dependencies={"D": "1"})
    write_package(root / "node_modules" / "D", "D", files={"d.js": "d"})

    result = packlist(root)

    assert sorted(f for f in result.files if f.startswith("node_modules/D/")) == [
        "node_modules/D/d.js",
        "node_modules/D/package.json",
    ]


def test_cycle_terminates_and_keeps_reachable_files(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1"})
    write_package(root / "node_modules" / "A", "A", dependencies={"B": "1"}, files={"a.js": ""})
    write_package(root / "node_modules" / "B", "B", dependencies={"A": "1", "C": "1"}, files={"b.js": ""})
    write_package(root / "node_modules" / "C", "C", files={"c.js": ""})

    result = packlist(root)

    assert {"node_modules/A/a.js", "node_modules/B/b.js", "node_modules/C/c.js"} <= result.files


def test_nested_copy_shadows_hoisted_copy(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1"})
    write_package(root / "node_modules" / "A", "A", dependencies={"D": "2"})
    write_package(root / "node_modules" / "A" / "node_modules" / "D", "D", "2.0.0", files={"v2.js": ""})
    write_package(root / "node_modules" / "D", "D", "1.0.0", files={"v1.js": ""})

    result = packlist(root)

    assert "node_modules/A/node_modules/D/v2.js" in result.files
    # the hoisted copy is nobody's dependency here
    assert "node_modules/D/v1.js" not in result.files


def test_missing_dependency_fails_whole_resolution(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1", "B": "1"})
    write_package(root / "node_modules" / "A", "A", dependencies={"ghost": "1"})
    write_package(root / "node_modules" / "B", "B")

    with pytest.raises(DependencyNotFound) as excinfo:
        packlist(root)

    assert excinfo.value.dependency == "ghost"
    assert excinfo.value.requested_from == root / "node_modules" / "A"


def test_symlinked_file_recorded_as_link(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    dep = write_package(root / "node_modules" / "D", "D", files={"real.js": "x"})
    symlink(dep / "alias.js", "real.js")

    result = packlist(root)

    assert "node_modules/D/alias.js" not in result.files
    assert "node_modules/D/real.js" in result.files
    link = result.symlinks["node_modules/D/alias.js"]
    assert link.target == "real.js"
    assert stat.S_ISLNK(link.mode)


def test_symlinked_dependency_records_each_hop(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    write_package(root / "packages" / "d", "D", files={"lib.js": ""})
    symlink(root / "links" / "d", "../packages/d")
    symlink(root / "node_modules" / "D", "../links/d")

    result = packlist(root, base_files=["package.json"])

    assert result.symlinks["node_modules/D"].target == "../links/d"
    assert result.symlinks["links/d"].target == "../packages/d"
    assert "packages/d/lib.js" in result.files


def test_self_referential_symlink_terminates(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    dep = write_package(root / "node_modules" / "D", "D", files={"lib.js": ""})
    symlink(dep / "self", ".")

    result = packlist(root)

    assert result.symlinks["node_modules/D/self"].target == "."
    assert "node_modules/D/lib.js" in result.files


def test_link_chain_cycle_terminates(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    symlink(root / "node_modules" / "D", "E")
    symlink(root / "node_modules" / "E", "D")

    result = packlist(root)

    assert set(result.symlinks) == {"node_modules/D", "node_modules/E"}


def test_link_cycle_reached_from_walk_and_resolution_terminates(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1"})
    dep = write_package(root / "node_modules" / "A", "A", dependencies={"B": "1"})
    symlink(dep / "node_modules" / "B", "C")
    symlink(dep / "node_modules" / "C", "B")

    result = packlist(root)

    assert {"node_modules/A/node_modules/B", "node_modules/A/node_modules/C"} <= set(result.symlinks)


def test_nested_linked_dependency_resolves_its_own_dependencies(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1"})
    dep = write_package(root / "node_modules" / "A", "A", dependencies={"B": "1"}, files={"a.js": ""})
    write_package(root / "packages" / "b", "B", dependencies={"C": "1"}, files={"b.js": ""})
    symlink(dep / "node_modules" / "B", "../../../packages/b")
    write_package(root / "node_modules" / "C", "C", files={"c.js": ""})

    result = packlist(root, base_files=["package.json"])

    assert result.symlinks["node_modules/A/node_modules/B"].target == "../../../packages/b"
    assert "packages/b/b.js" in result.files
    assert "node_modules/C/c.js" in result.files


def test_link_outside_package_is_rejected(tmp_path):
    outside = write_package(tmp_path / "elsewhere", "D")
    root = write_package(tmp_path / "m", "M", dependencies={"D": "1"})
    symlink(root / "node_modules" / "D", str(outside))

    with pytest.raises(BundleError):
        packlist(root)


def test_closure_completeness(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1"})
    dep = write_package(
        root / "node_modules" / "A",
        "A",
        dependencies={"B": "1"},
        files={"lib/deep/x.js": "", "lib/y.json": "{}"},
    )
    symlink(dep / "lib" / "z.js", "deep/x.js")
    write_package(root / "node_modules" / "B", "B", files={"b.js": ""})

    result = packlist(root)

    for base in (root / "node_modules" / "A", root / "node_modules" / "B"):
        for cur, _dirs, names in os.walk(base):
            for name in names:
                rel = os.path.relpath(os.path.join(cur, name), root).replace(os.sep, "/")
                assert rel in result.files or rel in result.symlinks


def test_resolution_is_deterministic_across_concurrency(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"A": "1", "B": "1"}, files={"index.js": "m"})
    write_package(root / "node_modules" / "A", "A", dependencies={"B": "1"}, files={"a/1.js": "1", "a/2.js": "2"})
    write_package(root / "node_modules" / "B", "B", dependencies={"A": "1"}, files={"b.js": "b"})

    serial = packlist(root, max_concurrency=1)
    parallel = packlist(root, max_concurrency=64)

    assert serial.files == parallel.files
    assert fingerprint(serial.files, root) == fingerprint(parallel.files, root)


def test_select_bundled_preserves_manifest_order(tmp_path):
    root = write_package(tmp_path / "m", "M", dependencies={"z": "1", "a": "1", "m": "1"})

    assert select_bundled(read_manifest(root), {"a"}) == ["z", "m"]
