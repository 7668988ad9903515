"""Dependency location and bundle resolution."""

from .locator import find_dep_dir
from .packlist import BundleResolver, packlist, resolve_packlist, select_bundled

__all__ = [
    "find_dep_dir",
    "BundleResolver",
    "packlist",
    "resolve_packlist",
    "select_bundled",
]
