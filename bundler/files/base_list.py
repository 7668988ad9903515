"""
Lists a package's own shippable files following npm's publish conventions.

- the "files" allow-list in package.json, when present, selects what ships
- otherwise .npmignore (or .gitignore when there is no .npmignore) at the
  package root excludes paths, gitignore style
- package.json, README*, LICENSE*/LICENCE* and the "main" file always ship
- VCS directories, the root node_modules and npm droppings never ship
"""

import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from loguru import logger

from bundler.models import PackageManifest

ALWAYS_INCLUDED_PREFIXES = ("readme", "license", "licence")

ALWAYS_EXCLUDED = (
    ".git",
    ".svn",
    ".hg",
    "CVS",
    ".npmrc",
    ".npmignore",
    ".gitignore",
    ".DS_Store",
    "._*",
    ".*.swp",
    "*.orig",
    "npm-debug.log",
    ".lock-wscript",
    ".wafpickle-*",
    "config.gypi",
    "package-lock.json",
)


def glob_match(rel_path: str, pattern: str) -> bool:
    """fnmatch with gitignore's "**" segments: "**/x" matches x at any depth."""
    if pattern.startswith("**/"):
        parts = rel_path.split("/")
        return any(glob_match("/".join(parts[i:]), pattern[3:]) for i in range(len(parts)))
    head, sep, tail = pattern.partition("/**/")
    if sep:
        parts = rel_path.split("/")
        return any(
            fnmatch.fnmatchcase("/".join(parts[:i]), head) and glob_match("/".join(parts[i:]), "**/" + tail)
            for i in range(1, len(parts))
        )
    return fnmatch.fnmatchcase(rel_path, pattern)


@dataclass(frozen=True)
class IgnoreRule:
    """One line of a gitignore-style file."""

    pattern: str
    negated: bool = False
    anchored: bool = False
    dir_only: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        line = line.rstrip("\n").rstrip()
        if not line or line.startswith("#"):
            return None
        negated = line.startswith("!")
        if negated:
            line = line[1:]
        dir_only = line.endswith("/")
        line = line.rstrip("/")
        anchored = "/" in line
        line = line.lstrip("/")
        if not line:
            return None
        return cls(pattern=line, negated=negated, anchored=anchored, dir_only=dir_only)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        if self.anchored:
            return glob_match(rel_path, self.pattern)
        return fnmatch.fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


def load_ignore_rules(package_dir: Path) -> Tuple[IgnoreRule, ...]:
    """Rules from .npmignore, falling back to .gitignore."""
    for name in (".npmignore", ".gitignore"):
        ignore_file = package_dir / name
        if ignore_file.is_file():
            logger.debug(f"Using ignore rules from {ignore_file}")
            lines = ignore_file.read_text(encoding="utf-8").splitlines()
            return tuple(rule for rule in map(IgnoreRule.parse, lines) if rule is not None)
    return ()


def is_ignored(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    """Last matching rule wins, as in gitignore."""
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negated
    return ignored


def _always_excluded(rel_path: str) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    if rel_path == "node_modules":
        return True
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in ALWAYS_EXCLUDED)


def _main_file(manifest: PackageManifest) -> Optional[str]:
    if not manifest.main:
        return None
    return _normalize_allow_pattern(manifest.main)


def _always_included(rel_path: str, manifest: PackageManifest) -> bool:
    if rel_path == _main_file(manifest):
        return True
    if "/" in rel_path:
        return False
    name = rel_path.lower()
    return name == "package.json" or name.startswith(ALWAYS_INCLUDED_PREFIXES)


def _normalize_allow_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.strip("/")


def _allowed(rel_path: str, allow: Sequence[str]) -> bool:
    """Whether rel_path or one of its parent directories matches the allow-list."""
    parts = rel_path.split("/")
    for i in range(1, len(parts) + 1):
        prefix = "/".join(parts[:i])
        if any(glob_match(prefix, pattern) for pattern in allow):
            return True
    return False


def list_package_files(package_dir: Union[str, Path], manifest: PackageManifest) -> List[str]:
    """List the package's own files that would be published.

    Args:
        package_dir: Package root
        manifest: The package's manifest (for "files" and "main")

    Returns:
        Sorted POSIX paths relative to package_dir
    """
    root = Path(package_dir)
    allow = [p for p in map(_normalize_allow_pattern, manifest.files or []) if p]
    rules = () if manifest.files is not None else load_ignore_rules(root)

    out: List[str] = []
    for cur, dirs, files in os.walk(root):
        dirs.sort()
        files.sort()
        rel_dir = Path(cur).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir + "/"

        pruned = []
        for d in dirs:
            rel = rel_dir + d
            if _always_excluded(rel) or is_ignored(rel, True, rules):
                continue
            if os.path.islink(os.path.join(cur, d)):
                logger.debug(f"Skipping symlinked directory {rel}")
                continue
            pruned.append(d)
        dirs[:] = pruned

        for fn in files:
            rel = rel_dir + fn
            if _always_included(rel, manifest):
                out.append(rel)
                continue
            if _always_excluded(rel) or is_ignored(rel, False, rules):
                continue
            if manifest.files is not None and not _allowed(rel, allow):
                continue
            out.append(rel)

    # main ships even when an ignore rule pruned its directory (e.g. dist/ in .gitignore)
    main = _main_file(manifest)
    if main and main not in out and not main.startswith("node_modules/") and (root / main).is_file():
        logger.debug(f"Including main file {main} from an ignored directory")
        out.append(main)

    out.sort()
    logger.debug(f"Listed {len(out)} own files in {root}")
    return out
