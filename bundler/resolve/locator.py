"""Locate the installed directory of a dependency, node_modules style."""

import os
from pathlib import Path

from bundler.errors import DependencyNotFound

NODE_MODULES = "node_modules"


def find_dep_dir(dep: str, basedir: Path, package_dir: Path) -> Path:
    """Find the directory that provides dep for code living in basedir.

    Looks for basedir/node_modules/<dep>, then walks up towards package_dir,
    skipping over node_modules segments, so a copy nested under a dependency's
    own node_modules shadows one hoisted to the root.

    Args:
        dep: Dependency name, possibly scoped (@scope/name)
        basedir: Directory of the package that requires dep
        package_dir: Root of the package being bundled; the search stops here

    Returns:
        Absolute path of the dependency directory (it may itself be a symlink)

    Raises:
        DependencyNotFound: If no ancestor up to package_dir provides dep
    """
    package_dir = Path(os.path.abspath(package_dir))
    current = Path(os.path.abspath(basedir))
    origin = current

    while True:
        candidate = current / NODE_MODULES / dep
        # lexists: a dangling link is still "the" dependency; reading it fails later
        if os.path.lexists(candidate):
            return candidate
        if current == package_dir or current == current.parent:
            raise DependencyNotFound(dep, origin)
        parent = current.parent
        if parent.name == NODE_MODULES:
            parent = parent.parent
        # scoped packages live one level deeper: node_modules/@scope/name
        elif parent.name.startswith("@") and parent.parent.name == NODE_MODULES:
            parent = parent.parent.parent
        current = parent
