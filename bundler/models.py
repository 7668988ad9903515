"""
Core models for the bundler.

Manifest models are pydantic (validated once, then frozen); traversal results
are plain dataclasses that the resolver fills in as it walks.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Manifest Models (package.json)
# ============================================================================


class BundleConfig(BaseModel):
    """The "pack-lambda" block of package.json.

    Only the fields below are recognized; anything else in the block is ignored
    and missing fields fall back to their defaults.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    exclude_dependencies: Set[str] = Field(default_factory=set, alias="excludeDependencies")
    auto_bundled_dependencies: bool = Field(default=True, alias="autoBundledDependencies")

    @field_validator("exclude_dependencies", mode="before")
    @classmethod
    def _coerce_exclude(cls, value):
        if value is None:
            return set()
        if isinstance(value, str):
            return {value}
        return value


class PackageManifest(BaseModel):
    """The subset of package.json the bundler relies on."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str
    version: str
    main: Optional[str] = None
    files: Optional[List[str]] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    bundled_dependencies: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bundledDependencies", "bundleDependencies", "bundled_dependencies"),
    )
    scripts: Dict[str, str] = Field(default_factory=dict)
    bundle_config: BundleConfig = Field(default_factory=BundleConfig, alias="pack-lambda")

    @field_validator("dependencies", "scripts", mode="before")
    @classmethod
    def _none_is_empty_mapping(cls, value):
        return {} if value is None else value

    @field_validator("bundled_dependencies", mode="before")
    @classmethod
    def _coerce_bundled(cls, value):
        # npm accepts `true` to mean "every dependency"; the caller expands that
        if value is None or value is False:
            return []
        if value is True:
            return ["*"]
        return value

    @field_validator("bundle_config", mode="before")
    @classmethod
    def _none_is_default_config(cls, value):
        return {} if value is None else value

    def seed_dependencies(self, auto_bundled: Optional[bool] = None) -> List[str]:
        """Dependency names to start bundling from, in manifest order.

        With automatic bundling every declared runtime dependency is a seed,
        otherwise only the ones listed in bundledDependencies.
        """
        if auto_bundled is None:
            auto_bundled = self.bundle_config.auto_bundled_dependencies
        if auto_bundled or self.bundled_dependencies == ["*"]:
            return list(self.dependencies)
        return list(self.bundled_dependencies)


# ============================================================================
# Traversal Results
# ============================================================================


@dataclass(frozen=True)
class Symlink:
    """A symbolic link preserved in the archive.

    target is the link's own (single-hop) target, relative to the link's directory.
    """

    target: str
    mode: int


@dataclass
class Packlist:
    """Everything that goes into the archive."""

    files: Set[str] = field(default_factory=set)  # paths relative to the package root
    symlinks: Dict[str, Symlink] = field(default_factory=dict)  # link path -> Symlink
    bundled: List[str] = field(default_factory=list)  # top-level bundled dependency names

    def sorted_files(self) -> List[str]:
        return sorted(self.files)
