"""package.json reader."""

import json
from pathlib import Path
from typing import Union

from loguru import logger
from pydantic import ValidationError

from bundler.errors import ManifestReadError
from bundler.models import PackageManifest

MANIFEST_FILENAME = "package.json"


def read_manifest(package_dir: Union[str, Path]) -> PackageManifest:
    """Load and validate the package.json in package_dir.

    Args:
        package_dir: Directory containing package.json

    Returns:
        The validated, immutable manifest

    Raises:
        ManifestReadError: If the file is missing, is not valid JSON, or lacks
            a name/version
    """
    manifest_path = Path(package_dir) / MANIFEST_FILENAME

    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ManifestReadError(manifest_path, "file not found")
    except json.JSONDecodeError as e:
        raise ManifestReadError(manifest_path, f"invalid JSON ({e})")
    except OSError as e:
        raise ManifestReadError(manifest_path, str(e))

    if not isinstance(data, dict):
        raise ManifestReadError(manifest_path, "top-level value must be an object")

    try:
        manifest = PackageManifest.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ManifestReadError(manifest_path, f"invalid fields: {fields}")

    logger.debug(f"Read manifest {manifest.name}@{manifest.version} from {manifest_path}")
    return manifest


def read_dependency_names(dep_dir: Union[str, Path]) -> list[str]:
    """Runtime dependency names declared by an installed dependency.

    Installed packages are trusted: only the dependencies mapping is read, and a
    package without a package.json simply declares nothing.
    """
    manifest_path = Path(dep_dir) / MANIFEST_FILENAME
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No {MANIFEST_FILENAME} in {dep_dir}, treating as leaf dependency")
        return []
    except json.JSONDecodeError as e:
        raise ManifestReadError(manifest_path, f"invalid JSON ({e})")
    except OSError as e:
        raise ManifestReadError(manifest_path, str(e))

    dependencies = data.get("dependencies") if isinstance(data, dict) else None
    if not dependencies:
        return []
    if not isinstance(dependencies, dict):
        raise ManifestReadError(manifest_path, "dependencies must be an object")
    return list(dependencies)
