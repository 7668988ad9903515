"""
Bundle resolver - computes the complete file set of a Lambda bundle.

Starting from the package's own shippable files, every bundled dependency is
located (node_modules shadowing rules), walked, and then its own runtime
dependencies are resolved the same way, giving the transitive closure.

Symbolic links are never flattened: each link is recorded with its single-hop
target and the target is walked separately, so the archive reproduces the
original tree including working links.

Traversal fans out with asyncio; blocking filesystem calls run in worker
threads, bounded by one semaphore so large trees cannot exhaust file
descriptors. Claiming a directory or link happens on the event loop thread
with no await between the membership check and the insert, which makes the
check-and-mark step atomic.
"""

import asyncio
import os
import stat
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Set, TypeVar, Union

from loguru import logger

from bundler.errors import BundleError, PackError
from bundler.files.base_list import list_package_files
from bundler.manifest import read_dependency_names, read_manifest
from bundler.models import PackageManifest, Packlist, Symlink
from bundler.resolve.locator import NODE_MODULES, find_dep_dir

DEFAULT_MAX_CONCURRENCY = 32

T = TypeVar("T")


class BundleResolver:
    """Resolves the files, symlinks and bundled dependency names of one package."""

    def __init__(self, package_dir: Union[str, Path], max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        """
        Initialize the resolver.

        Args:
            package_dir: Root of the package being bundled
            max_concurrency: Upper bound on filesystem calls in flight at once
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.package_dir = Path(os.path.abspath(package_dir))
        self.packlist = Packlist()
        self._dirs: Set[str] = set()
        self._limit = asyncio.Semaphore(max_concurrency)

    async def resolve(self, own_files: Iterable[str], bundled: List[str]) -> Packlist:
        """Resolve the full packlist.

        Args:
            own_files: The package's own shippable files, relative to the root
            bundled: Top-level dependency names to bundle, already filtered

        Returns:
            The populated Packlist
        """
        root_modules = NODE_MODULES + "/"
        self.packlist.files.update(
            f for f in (Path(p).as_posix() for p in own_files) if not f.startswith(root_modules)
        )
        self.packlist.bundled = list(bundled)

        await self._fan_out(self._add_dep(dep, self.package_dir) for dep in bundled)

        logger.info(
            f"Resolved {len(self.packlist.files)} files and {len(self.packlist.symlinks)} symlinks "
            f"from {len(self._dirs)} dependency directories"
        )
        return self.packlist

    async def _io(self, func: Callable[..., T], *args) -> T:
        async with self._limit:
            return await asyncio.to_thread(func, *args)

    async def _fan_out(self, coros: Iterable[Awaitable[None]]) -> None:
        async with asyncio.TaskGroup() as tg:
            for coro in coros:
                tg.create_task(coro)

    def _relative(self, path: Union[str, Path]) -> str:
        rel = os.path.relpath(path, self.package_dir)
        if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
            raise BundleError(f"{path} is outside of the package directory {self.package_dir}")
        return Path(rel).as_posix()

    async def _lstat(self, path: str) -> os.stat_result:
        try:
            return await self._io(os.lstat, path)
        except OSError as e:
            raise BundleError(f"cannot stat {path}: {e.strerror or e}")

    async def _readlink(self, path: str) -> str:
        try:
            return await self._io(os.readlink, path)
        except OSError as e:
            raise BundleError(f"cannot read link {path}: {e.strerror or e}")

    def _hop(self, link_path: str, link_target: str) -> str:
        return os.path.normpath(os.path.join(os.path.dirname(link_path), link_target))

    def _claim_link(self, link_path: str, real_target: str, mode: int) -> bool:
        """Record a link hop; False if it was already recorded."""
        rel = self._relative(link_path)
        if rel in self.packlist.symlinks:
            return False
        self.packlist.symlinks[rel] = Symlink(
            target=Path(os.path.relpath(real_target, os.path.dirname(link_path))).as_posix(),
            mode=mode,
        )
        return True

    async def _add_files(self, path: str) -> None:
        """Add every file under path, recording symlinks and walking their targets."""
        st = await self._lstat(path)

        if stat.S_ISREG(st.st_mode):
            self.packlist.files.add(self._relative(path))
        elif stat.S_ISDIR(st.st_mode):
            try:
                entries = await self._io(os.listdir, path)
            except OSError as e:
                raise BundleError(f"cannot list {path}: {e.strerror or e}")
            await self._fan_out(self._add_files(os.path.join(path, e)) for e in entries)
        elif stat.S_ISLNK(st.st_mode):
            real_target = self._hop(path, await self._readlink(path))
            if self._claim_link(path, real_target, st.st_mode):
                await self._add_files(real_target)
        else:
            logger.debug(f"Skipping special file {path}")

    async def _add_dep(self, dep: str, basedir: Path) -> None:
        dep_path = str(await self._io(find_dep_dir, dep, basedir, self.package_dir))
        st = await self._lstat(dep_path)

        # follow every hop, even ones a directory walk already recorded;
        # the visited-directory check below decides whether to descend
        hops: Set[str] = set()
        while stat.S_ISLNK(st.st_mode):
            if dep_path in hops:
                logger.debug(f"Symlink cycle at {dep_path} while resolving {dep}")
                return
            hops.add(dep_path)
            next_path = self._hop(dep_path, await self._readlink(dep_path))
            self._claim_link(dep_path, next_path, st.st_mode)
            dep_path = next_path
            st = await self._lstat(dep_path)

        if not stat.S_ISDIR(st.st_mode):
            raise BundleError(f"dependency {dep} at {dep_path} is not a directory")

        rel = self._relative(dep_path)
        if rel in self._dirs:
            return
        self._dirs.add(rel)
        logger.debug(f"Bundling {dep} from {rel}")

        await self._add_files(dep_path)

        children = await self._io(read_dependency_names, dep_path)
        await self._fan_out(self._add_dep(child, Path(dep_path)) for child in children)


def _first_error(error: BaseException) -> BaseException:
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return error


def select_bundled(
    manifest: PackageManifest,
    exclude_dependencies: Optional[Iterable[str]] = None,
    auto_bundled: Optional[bool] = None,
) -> List[str]:
    """Top-level dependency names to bundle, in manifest order.

    Exclusion only filters this seed list: an excluded dependency that another
    bundled dependency requires is still reached through that dependency.
    """
    exclude = set(manifest.bundle_config.exclude_dependencies)
    if exclude_dependencies:
        exclude.update(exclude_dependencies)
    return [d for d in manifest.seed_dependencies(auto_bundled) if d not in exclude]


async def resolve_packlist(
    package_dir: Union[str, Path],
    manifest: Optional[PackageManifest] = None,
    *,
    exclude_dependencies: Optional[Iterable[str]] = None,
    auto_bundled: Optional[bool] = None,
    base_files: Optional[Iterable[str]] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> Packlist:
    """Resolve the files, symlinks and bundled dependencies of a package.

    Args:
        package_dir: Root of the package (contains package.json)
        manifest: Already-read manifest; read from package_dir when omitted
        exclude_dependencies: Extra names removed from the top-level seed list,
            on top of the manifest's own excludeDependencies
        auto_bundled: Bundle every runtime dependency (True) or only
            bundledDependencies (False); defaults to the manifest setting
        base_files: The package's own shippable files; computed with the
            npm ignore conventions when omitted
        max_concurrency: Upper bound on filesystem calls in flight

    Returns:
        Packlist with files, symlinks and the bundled dependency names

    Raises:
        DependencyNotFound, BundleError, ManifestReadError: The first failure of
            any branch; sibling branches are cancelled
    """
    package_dir = Path(package_dir)
    if manifest is None:
        manifest = read_manifest(package_dir)
    if base_files is None:
        base_files = list_package_files(package_dir, manifest)

    bundled = select_bundled(manifest, exclude_dependencies, auto_bundled)
    resolver = BundleResolver(package_dir, max_concurrency=max_concurrency)

    try:
        return await resolver.resolve(base_files, bundled)
    except BaseExceptionGroup as group:
        error = _first_error(group)
        if isinstance(error, (PackError, OSError)):
            raise error from None
        raise


def packlist(package_dir: Union[str, Path], **kwargs) -> Packlist:
    """Blocking wrapper around resolve_packlist."""
    return asyncio.run(resolve_packlist(package_dir, **kwargs))
