"""Helpers for building small on-disk Node.js package trees in tests."""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional


def write_package(
    directory: Path,
    name: str,
    version: str = "1.0.0",
    dependencies: Optional[Dict[str, str]] = None,
    files: Optional[Dict[str, str]] = None,
    npm_files: Optional[List[str]] = None,
    **extra,
) -> Path:
    """Create directory with a package.json and the given files.

    npm_files becomes the manifest's "files" allow-list; extra keys go into package.json as-is.
    """
    directory.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": version, **extra}
    if dependencies is not None:
        manifest["dependencies"] = dependencies
    if npm_files is not None:
        manifest["files"] = npm_files
    (directory / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    for rel, content in (files or {}).items():
        path = directory / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return directory


def symlink(link: Path, target: str) -> Path:
    link.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target, link)
    return link
