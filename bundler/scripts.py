"""Runs package.json lifecycle scripts (prepack) the way npm does."""

import os
import subprocess
from pathlib import Path
from typing import Union

from loguru import logger

from bundler.errors import LifecycleScriptError
from bundler.models import PackageManifest
from bundler.resolve.locator import NODE_MODULES


def lifecycle_env(package_dir: Path, manifest: PackageManifest, event: str) -> dict:
    """Environment for a lifecycle script: local bins first on PATH, npm_* variables set."""
    env = dict(os.environ)
    bin_dir = package_dir / NODE_MODULES / ".bin"
    env["PATH"] = os.pathsep.join([str(bin_dir), env.get("PATH", "")])
    env["npm_lifecycle_event"] = event
    env["npm_lifecycle_script"] = manifest.scripts[event]
    env["npm_package_name"] = manifest.name
    env["npm_package_version"] = manifest.version
    return env


def run_script(package_dir: Union[str, Path], manifest: PackageManifest, event: str) -> bool:
    """Run scripts[event] in package_dir, if the package defines it.

    Output is inherited so the user sees the script as it runs.

    Returns:
        True if a script ran, False if the package has none for this event

    Raises:
        LifecycleScriptError: If the script exits non-zero or cannot be started
    """
    command = manifest.scripts.get(event)
    if not command:
        return False

    package_dir = Path(package_dir)
    logger.info(f"Running {event} script: {command}")
    try:
        completed = subprocess.run(
            command,
            shell=True,
            cwd=package_dir,
            env=lifecycle_env(package_dir, manifest, event),
        )
    except OSError as e:
        logger.error(f"Could not start {event} script: {e}")
        raise LifecycleScriptError(event, 127)

    if completed.returncode != 0:
        raise LifecycleScriptError(event, completed.returncode)
    return True
