"""Configuration models and loaders for :mod:`symgraph`."""

from __future__ import annotations

import codecs
import os
from collections.abc import Mapping as MappingABC
from pathlib import Path
from typing import Any, Mapping

import tomllib
import tomlkit
from pydantic import BaseModel, Field, field_validator, model_validator

from symgraph.resources import get_resource, load_toml_resource

DEFAULTS_RESOURCE_NAME = "symgraph.defaults.toml"
OVERRIDES_RESOURCE_NAME = "resolver-overrides.toml"
ENV_PREFIX = "SYMGRAPH_"


class GraphSettings(BaseModel):
    """Settings steering the tree emitter and graph sink."""

    error_budget: int | None = Field(
        default=None,
        ge=0,
        description=(
            "Skipped nodes tolerated per compilation unit before the unit is "
            "aborted; ``null`` means unlimited."
        ),
    )
    byte_encoding: str | None = Field(
        default="utf-8",
        description=(
            "Encoding used to convert character spans to byte spans on "
            "output; ``null`` keeps character offsets."
        ),
    )
    workers: int = Field(
        default=1,
        ge=1,
        description="Compilation units walked concurrently.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @field_validator("byte_encoding")
    @classmethod
    def _validate_encoding(cls, value: str | None) -> str | None:
        if value is None or not value:
            return None
        try:
            codecs.lookup(value)
        except LookupError as exc:
            raise ValueError(f"Unknown encoding: {value!r}") from exc
        return value


class ResolverSettings(BaseModel):
    """Settings for the dependency origin resolver."""

    registry_base_url: str = Field(
        default="https://repo1.maven.org/maven2/",
        description="Base URL of the package registry serving descriptors.",
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout in seconds for registry lookups.",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per descriptor before giving up.",
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Upper bound on concurrent registry lookups.",
    )
    overrides: dict[str, str] = Field(
        default_factory=dict,
        description="``group/artifact`` prefixes mapped to clone URLs.",
    )
    membership_file: Path | None = Field(
        default=None,
        description="Sorted class list identifying platform core classes.",
    )
    platform_archives: tuple[str, ...] = Field(
        default=("android.jar",),
        description="Archive file names treated as the split platform SDK.",
    )
    stdlib_markers: tuple[str, ...] = Field(
        default=("jre/lib/",),
        description="Path fragments identifying standard-library archives.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @model_validator(mode="after")
    def _normalize(self) -> "ResolverSettings":
        base = self.registry_base_url
        if not base.endswith("/"):
            object.__setattr__(self, "registry_base_url", f"{base}/")
        if self.membership_file is not None:
            object.__setattr__(
                self, "membership_file", self.membership_file.expanduser()
            )
        return self


class AppConfig(BaseModel):
    """Root configuration for the :mod:`symgraph` application."""

    log_level: str = Field(
        default="INFO",
        description="Default logging level for the application runtime.",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Optional directory receiving rotating JSON log files.",
    )
    graph: GraphSettings = Field(default_factory=GraphSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @model_validator(mode="after")
    def _post_process(self) -> "AppConfig":
        object.__setattr__(self, "log_level", self.log_level.upper())
        return self


def read_packaged_defaults_text() -> str:
    """Return the raw packaged defaults TOML content."""

    return get_resource(DEFAULTS_RESOURCE_NAME).read_text(encoding="utf-8")


def load_packaged_defaults() -> dict[str, Any]:
    """Load the packaged defaults as a plain dictionary.

    Example:
        >>> load_packaged_defaults()["log_level"]
        'INFO'
    """

    return tomllib.loads(read_packaged_defaults_text())


def load_packaged_overrides() -> dict[str, str]:
    """Return the curated ``group/artifact`` override table."""

    data = load_toml_resource(OVERRIDES_RESOURCE_NAME)
    table = data.get("overrides", {})
    return {str(key): str(value) for key, value in table.items()}


def load_user_config(path: Path) -> dict[str, Any]:
    """Parse a user TOML config file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not valid TOML.
    """

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid config file {path}: {exc}") from exc


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Translate ``SYMGRAPH_*`` environment variables into a config layer."""

    env = os.environ if environ is None else environ
    layer: dict[str, Any] = {}
    if level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
        layer["log_level"] = level
    if log_dir := env.get(f"{ENV_PREFIX}LOG_DIR"):
        layer["log_dir"] = log_dir
    if registry := env.get(f"{ENV_PREFIX}REGISTRY_URL"):
        layer.setdefault("resolver", {})["registry_base_url"] = registry
    if membership := env.get(f"{ENV_PREFIX}MEMBERSHIP_FILE"):
        layer.setdefault("resolver", {})["membership_file"] = membership
    return layer


def _deep_merge(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
) -> dict[str, Any]:
    """Recursively merge ``overlay`` into ``base`` returning a new dict."""

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MappingABC)
            and isinstance(value, MappingABC)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    *,
    defaults: Mapping[str, Any] | None = None,
    user_config: Mapping[str, Any] | None = None,
    env_config: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
    include_curated_overrides: bool = True,
) -> AppConfig:
    """Load configuration according to the precedence stack.

    Args:
        defaults: Packaged defaults; loaded from the package when omitted.
        user_config: Parsed user TOML content.
        env_config: Settings derived from environment variables.
        cli_overrides: Settings supplied via CLI flags.
        include_curated_overrides: Seed ``resolver.overrides`` with the
            packaged override table before user layers are applied.

    Returns:
        A validated :class:`AppConfig` instance.
    """

    stack = dict(defaults if defaults is not None else load_packaged_defaults())
    if include_curated_overrides:
        stack = _deep_merge(
            stack, {"resolver": {"overrides": load_packaged_overrides()}}
        )
    for layer in (user_config, env_config, cli_overrides):
        if layer:
            stack = _deep_merge(stack, layer)
    return AppConfig(**stack)


def render_config(config: AppConfig) -> str:
    """Render ``config`` as a TOML document users can save and edit."""

    document = tomlkit.document()
    document.add(tomlkit.comment("Effective symgraph configuration"))
    document.add(
        tomlkit.comment(
            "Precedence: CLI flags > SYMGRAPH_* env vars > file > defaults"
        )
    )
    document.add(tomlkit.nl())
    document["log_level"] = config.log_level
    if config.log_dir is not None:
        document["log_dir"] = str(config.log_dir)

    graph = tomlkit.table()
    if config.graph.error_budget is not None:
        graph["error_budget"] = config.graph.error_budget
    if config.graph.byte_encoding is not None:
        graph["byte_encoding"] = config.graph.byte_encoding
    graph["workers"] = config.graph.workers
    document["graph"] = graph

    resolver = tomlkit.table()
    resolver["registry_base_url"] = config.resolver.registry_base_url
    resolver["timeout"] = config.resolver.timeout
    resolver["max_attempts"] = config.resolver.max_attempts
    resolver["max_concurrency"] = config.resolver.max_concurrency
    resolver["platform_archives"] = list(config.resolver.platform_archives)
    resolver["stdlib_markers"] = list(config.resolver.stdlib_markers)
    if config.resolver.membership_file is not None:
        resolver["membership_file"] = str(config.resolver.membership_file)
    overrides = tomlkit.table()
    for prefix in sorted(config.resolver.overrides):
        overrides[prefix] = config.resolver.overrides[prefix]
    resolver.add("overrides", overrides)
    document["resolver"] = resolver

    return tomlkit.dumps(document)


__all__ = [
    "AppConfig",
    "GraphSettings",
    "ResolverSettings",
    "DEFAULTS_RESOURCE_NAME",
    "OVERRIDES_RESOURCE_NAME",
    "ENV_PREFIX",
    "env_overrides",
    "load_config",
    "load_packaged_defaults",
    "load_packaged_overrides",
    "load_user_config",
    "read_packaged_defaults_text",
    "render_config",
]
