"""Content fingerprint used to name archives and to skip redundant uploads."""

import hashlib
from pathlib import Path
from typing import Iterable, Union

from bundler.errors import BundleError
from bundler.resolve.locator import NODE_MODULES

CHUNK_SIZE = 1024 * 1024
SHORT_DIGEST_LENGTH = 12


def fingerprint(files: Iterable[str], package_dir: Union[str, Path]) -> str:
    """SHA-256 over the package's own file contents.

    Paths are sorted so the digest is independent of traversal order, and
    everything under node_modules/ is left out.

    Args:
        files: Paths relative to package_dir (a Packlist's files)
        package_dir: Package root

    Returns:
        Hex digest
    """
    package_dir = Path(package_dir)
    prefix = NODE_MODULES + "/"
    digest = hashlib.sha256()

    for rel in sorted(Path(p).as_posix() for p in files):
        if rel == NODE_MODULES or rel.startswith(prefix):
            continue
        try:
            with open(package_dir / rel, "rb") as f:
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    digest.update(chunk)
        except OSError as e:
            raise BundleError(f"cannot read {rel} for fingerprint: {e.strerror or e}")

    return digest.hexdigest()


def short_digest(digest: str) -> str:
    return digest[:SHORT_DIGEST_LENGTH]
