"""Pytest fixtures: small on-disk Node.js package trees."""

import pytest

from bundler.testing import write_package


@pytest.fixture
def project(tmp_path):
    """Module M@1.0.0 depending on D@2.0.0, which contains lib.txt."""
    root = write_package(
        tmp_path / "m",
        "M",
        "1.0.0",
        dependencies={"D": "2.0.0"},
        files={"index.js": "exports.handler = () => 1\n"},
    )
    write_package(root / "node_modules" / "D", "D", "2.0.0", files={"lib.txt": "d\n"})
    return root
