"""Dependency coordinates, resolved targets and source unit descriptions."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidSourceUnitError

__all__ = [
    "DEFAULT_UNIT_TYPE",
    "RawDependency",
    "ResolvedTarget",
    "DepResolution",
    "DependencySpec",
    "SourcePathEntry",
    "SourceUnit",
    "load_source_unit",
    "read_source_unit",
]

DEFAULT_UNIT_TYPE = "JavaArtifact"

OPENJDK_REPO_ROOT = "hg.openjdk.java.net/jdk8/jdk8/"
JDK_REPO = OPENJDK_REPO_ROOT + "jdk"
LANGTOOLS_REPO = OPENJDK_REPO_ROOT + "langtools"
NASHORN_REPO = OPENJDK_REPO_ROOT + "nashorn"
PLATFORM_CORE_REPO = "android.googlesource.com/platform/libcore"
PLATFORM_SDK_REPO = "android.googlesource.com/platform/frameworks/base"


@dataclass(frozen=True, slots=True)
class RawDependency:
    """Unresolved dependency coordinate as declared by the build."""

    group: str
    artifact: str
    version: str | None = None
    scope: str | None = None
    classifier: str | None = None
    type: str | None = None

    @property
    def coordinate(self) -> str:
        """``group/artifact`` string used for override lookups."""

        return f"{self.group}/{self.artifact}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group,
            "artifact": self.artifact,
            "version": self.version,
            "scope": self.scope,
            "classifier": self.classifier,
            "type": self.type,
        }


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Where the source of a dependency or origin actually lives."""

    repo_clone_url: str | None
    unit_name: str
    unit_type: str = DEFAULT_UNIT_TYPE
    version: str | None = None

    @classmethod
    def for_dependency(
        cls,
        raw: RawDependency,
        repo_clone_url: str | None,
        *,
        version: str | None = None,
    ) -> "ResolvedTarget":
        return cls(
            repo_clone_url=repo_clone_url,
            unit_name=raw.coordinate,
            version=version if version is not None else raw.version,
        )

    @classmethod
    def jdk(cls) -> "ResolvedTarget":
        return cls(repo_clone_url=JDK_REPO, unit_name=".", unit_type="Java")

    @classmethod
    def langtools(cls) -> "ResolvedTarget":
        return cls(
            repo_clone_url=LANGTOOLS_REPO, unit_name=".", unit_type="Java"
        )

    @classmethod
    def nashorn(cls) -> "ResolvedTarget":
        return cls(
            repo_clone_url=NASHORN_REPO, unit_name=".", unit_type="Java"
        )

    @classmethod
    def platform_core(cls) -> "ResolvedTarget":
        return cls(repo_clone_url=PLATFORM_CORE_REPO, unit_name="AndroidCore")

    @classmethod
    def platform_sdk(cls) -> "ResolvedTarget":
        return cls(repo_clone_url=PLATFORM_SDK_REPO, unit_name="AndroidSDK")

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo_clone_url": self.repo_clone_url,
            "unit": self.unit_name,
            "unit_type": self.unit_type,
            "version": self.version,
        }


@dataclass(frozen=True, slots=True)
class DepResolution:
    """Outcome of resolving one dependency: a target or an error string."""

    raw: RawDependency | None
    target: ResolvedTarget | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.target is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw": self.raw.to_dict() if self.raw is not None else None,
            "target": (
                self.target.to_dict() if self.target is not None else None
            ),
            "error": self.error,
        }


class DependencySpec(BaseModel):
    """Dependency entry of a source unit, optionally tied to its archive."""

    group: str = Field(min_length=1)
    artifact: str = Field(min_length=1)
    version: str | None = None
    scope: str | None = None
    classifier: str | None = None
    type: str | None = None
    file: str | None = Field(
        default=None,
        description="Archive on disk that provides this dependency.",
    )

    model_config = {"extra": "ignore", "str_strip_whitespace": True}

    def to_raw(self) -> RawDependency:
        return RawDependency(
            group=self.group,
            artifact=self.artifact,
            version=self.version,
            scope=self.scope,
            classifier=self.classifier,
            type=self.type,
        )


class SourcePathEntry(BaseModel):
    """Source directory belonging to a sibling unit of the same build."""

    unit: str
    version: str = ""
    directory: str

    model_config = {"extra": "ignore"}


class SourceUnit(BaseModel):
    """Build-system description of the project under analysis."""

    name: str = Field(min_length=1)
    type: str = DEFAULT_UNIT_TYPE
    repo: str | None = None
    version: str | None = None
    directory: str = "."
    files: list[str] = Field(default_factory=list)
    dependencies: list[DependencySpec] = Field(default_factory=list)
    source_path: list[SourcePathEntry] = Field(default_factory=list)
    platform: bool = Field(
        default=False,
        description="Unit is built against the split platform SDK.",
    )

    model_config = {"extra": "ignore", "frozen": True}

    @property
    def project_group(self) -> str:
        """Group part of ``group/artifact`` unit names."""

        return self.name.split("/", 1)[0]

    @property
    def raw_dependencies(self) -> list[RawDependency]:
        return [spec.to_raw() for spec in self.dependencies]

    def _resolve(self, path: str, base: Path | None) -> str:
        root = base if base is not None else Path.cwd()
        return os.path.normpath(os.path.join(root, self.directory, path))

    def dependency_for_archive(
        self,
        archive: str,
        *,
        base: Path | None = None,
    ) -> RawDependency | None:
        """Return the dependency whose archive file is ``archive``."""

        wanted = os.path.normpath(archive)
        for spec in self.dependencies:
            if spec.file is None:
                continue
            if self._resolve(spec.file, base) == wanted:
                return spec.to_raw()
        return None

    def source_entry_for(
        self,
        file: str,
        *,
        base: Path | None = None,
    ) -> SourcePathEntry | None:
        """Return the source-path entry whose directory contains ``file``."""

        target = os.path.normpath(file)
        for entry in self.source_path:
            root = self._resolve(entry.directory, base)
            inside = target.startswith(root.rstrip(os.sep) + os.sep)
            if target == root or inside:
                return entry
        return None


def load_source_unit(payload: Mapping[str, Any]) -> SourceUnit:
    """Validate a source unit payload.

    Raises:
        InvalidSourceUnitError: If the payload does not describe a unit.
    """

    try:
        return SourceUnit.model_validate(payload)
    except ValidationError as exc:
        raise InvalidSourceUnitError(f"Invalid source unit: {exc}") from exc


def read_source_unit(path: Path) -> SourceUnit:
    """Read and validate the source unit JSON document at ``path``."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise InvalidSourceUnitError(
            f"Unable to read source unit {path}: {exc}"
        ) from exc
    if not isinstance(payload, dict):
        raise InvalidSourceUnitError(
            f"Invalid source unit {path}: expected an object"
        )
    return load_source_unit(payload)
