"""Map physical origins and raw dependencies to upstream repositories.

An :class:`OriginResolver` answers two questions for one source unit:

* ``resolve_origin(locator)``: which upstream unit provides the archive or
  file a symbol was loaded from;
* ``resolve_dependency(raw)``: which repository a declared dependency lives
  in.

Both are memoized for the lifetime of the resolver. Every piece of run state
(settings, classifier, override table, registry client, logger) travels in a
:class:`ResolverContext` built once per run.
"""

from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Hashable, Iterable, Sequence, TypeVar

import httpx

from symgraph.core.config import AppConfig, ResolverSettings
from symgraph.core.logging import Logger, get_logger, propagate
from symgraph.graph.models import Locator

from .classifier import (
    STANDARD_ARCHIVES,
    OriginCategory,
    OriginClassifier,
    load_membership,
)
from .errors import MissingScmError, RegistryLookupError, ResolutionFailure
from .models import (
    DepResolution,
    RawDependency,
    ResolvedTarget,
    SourceUnit,
)
from .overrides import OverrideTable
from .registry import MetadataClient

__all__ = ["OriginResolver", "ResolverContext", "implicit_dependencies"]

_EXPLODED_AAR = "/exploded-aar/"

_K = TypeVar("_K", bound=Hashable)
_V = TypeVar("_V")


@dataclass(slots=True)
class ResolverContext:
    """Collaborators shared by every lookup of one resolution run."""

    settings: ResolverSettings
    classifier: OriginClassifier
    overrides: OverrideTable
    client: MetadataClient
    logger: Logger
    unit: SourceUnit | None = None
    base_dir: Path | None = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        unit: SourceUnit | None = None,
        base_dir: Path | None = None,
        transport: httpx.BaseTransport | None = None,
        logger: Logger | None = None,
    ) -> "ResolverContext":
        settings = config.resolver
        log = logger or get_logger(__name__, component="resolver")
        membership = load_membership(settings.membership_file)
        if membership is None and settings.membership_file is not None:
            log.warning(
                "resolver-membership-missing",
                path=str(settings.membership_file),
            )
        classifier = OriginClassifier(
            membership=membership,
            platform_archives=settings.platform_archives,
            stdlib_markers=settings.stdlib_markers,
        )
        client = MetadataClient(
            base_url=settings.registry_base_url,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
            transport=transport,
            logger=log,
        )
        return cls(
            settings=settings,
            classifier=classifier,
            overrides=OverrideTable(settings.overrides),
            client=client,
            logger=log,
            unit=unit,
            base_dir=base_dir,
        )

    def close(self) -> None:
        self.client.close()


def implicit_dependencies(unit: SourceUnit) -> list[DepResolution]:
    """Targets every unit depends on without declaring them.

    Example:
        >>> unit = SourceUnit(name="com.acme/app")
        >>> [d.target.unit_type for d in implicit_dependencies(unit)]
        ['Java']
    """

    if unit.platform:
        return [
            DepResolution(raw=None, target=ResolvedTarget.platform_core()),
            DepResolution(raw=None, target=ResolvedTarget.platform_sdk()),
        ]
    return [DepResolution(raw=None, target=ResolvedTarget.jdk())]


class _KeyedLocks:
    """One lock per cache key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def get(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class OriginResolver:
    """Memoizing resolver over the ordered origin strategies."""

    def __init__(self, context: ResolverContext) -> None:
        self.context = context
        self.logger = context.logger
        self._lock = threading.Lock()
        self._origins: dict[str, ResolvedTarget | None] = {}
        self._deps: dict[RawDependency, DepResolution] = {}
        self._origin_locks = _KeyedLocks()
        self._dep_locks = _KeyedLocks()

    @property
    def unit(self) -> SourceUnit | None:
        return self.context.unit

    @property
    def platform_unit(self) -> bool:
        return self.unit is not None and self.unit.platform

    # -- origins ----------------------------------------------------------

    def resolve_origin(
        self,
        locator: Locator | str | None,
    ) -> ResolvedTarget | None:
        """Return the target providing ``locator`` or ``None``.

        Results, including misses, are cached for the life of the resolver.
        """

        if locator is None:
            return None
        if isinstance(locator, str):
            locator = Locator(locator)
        key = locator.uri
        with self._lock:
            if key in self._origins:
                self.logger.debug("resolver-cache-hit", origin=key)
                return self._origins[key]

        with self._origin_locks.get(key):
            with self._lock:
                if key in self._origins:
                    self.logger.debug("resolver-cache-hit", origin=key)
                    return self._origins[key]
            target = self._resolve_origin_uncached(locator)
            with self._lock:
                self._origins[key] = target

        self.logger.debug(
            "resolver-origin-resolved",
            origin=key,
            repo=target.repo_clone_url if target else None,
            unit=target.unit_name if target else None,
        )
        return target

    def resolve_origins(
        self,
        locators: Iterable[Locator],
    ) -> dict[Locator, ResolvedTarget | None]:
        """Resolve many locators on a bounded thread pool."""

        unique = list(dict.fromkeys(locators))
        workers = self.context.settings.max_concurrency
        if workers <= 1 or len(unique) <= 1:
            return {loc: self.resolve_origin(loc) for loc in unique}
        return self._fan_out(unique, self.resolve_origin, prefix="origins")

    def _resolve_origin_uncached(
        self,
        locator: Locator,
    ) -> ResolvedTarget | None:
        if locator.scheme == "file":
            return self._resolve_file_origin(locator)
        if not locator.is_archive or locator.archive_path is None:
            self.logger.debug(
                "resolver-origin-unsupported", origin=locator.uri
            )
            return None

        target = self._platform_target(locator)
        if target is not None:
            return target

        raw = None
        if self.unit is not None:
            raw = self.unit.dependency_for_archive(
                locator.archive_path, base=self.context.base_dir
            )
        if raw is None:
            if self.platform_unit:
                return self._resolve_exploded_aar(locator)
            self.logger.debug(
                "resolver-archive-unknown", archive=locator.archive_path
            )
            return None
        return self.resolve_dependency(raw).target

    def _platform_target(self, locator: Locator) -> ResolvedTarget | None:
        category = self.context.classifier.classify(
            locator, platform_unit=self.platform_unit
        )
        match category:
            case OriginCategory.STANDARD_LIBRARY:
                name = locator.archive_name
                if name == STANDARD_ARCHIVES[0]:
                    return ResolvedTarget.langtools()
                if name == STANDARD_ARCHIVES[1]:
                    return ResolvedTarget.nashorn()
                return ResolvedTarget.jdk()
            case OriginCategory.PLATFORM_CORE:
                return ResolvedTarget.platform_core()
            case OriginCategory.PLATFORM_SDK:
                return ResolvedTarget.platform_sdk()
            case OriginCategory.EXTERNAL:
                return None

    def _resolve_file_origin(self, locator: Locator) -> ResolvedTarget | None:
        path = locator.file_path
        if self.unit is None or path is None:
            return None
        entry = self.unit.source_entry_for(path, base=self.context.base_dir)
        if entry is None:
            return None
        return ResolvedTarget(
            repo_clone_url=None,
            unit_name=entry.unit,
            version=entry.version or None,
        )

    def _resolve_exploded_aar(
        self,
        locator: Locator,
    ) -> ResolvedTarget | None:
        """Match ``.../exploded-aar/<group>/<artifact>/<version>/...``."""

        uri = locator.archive_uri
        pos = uri.find(_EXPLODED_AAR)
        if pos < 0 or self.unit is None:
            return None
        parts = uri[pos + len(_EXPLODED_AAR) :].split("/", 3)
        if len(parts) < 4:
            return None
        group, artifact, version = parts[:3]
        for raw in self.unit.raw_dependencies:
            if (raw.group, raw.artifact, raw.version) != (
                group,
                artifact,
                version,
            ):
                continue
            resolution = self.resolve_dependency(raw)
            if resolution.target is not None:
                return resolution.target
        return None

    # -- dependencies -----------------------------------------------------

    def resolve_dependency(self, raw: RawDependency) -> DepResolution:
        """Resolve ``raw`` to a target; never raises."""

        with self._lock:
            cached = self._deps.get(raw)
        if cached is not None:
            self.logger.debug(
                "resolver-cache-hit", coordinate=raw.coordinate
            )
            return cached

        with self._dep_locks.get(raw):
            with self._lock:
                cached = self._deps.get(raw)
            if cached is not None:
                return cached
            resolution = self._resolve_dependency_uncached(raw)
            with self._lock:
                self._deps[raw] = resolution

        if resolution.error is not None:
            self.logger.info(
                "resolver-dependency-unresolved",
                coordinate=raw.coordinate,
                version=raw.version,
                error=resolution.error,
            )
        return resolution

    def resolve_dependencies(
        self,
        raws: Sequence[RawDependency],
    ) -> list[DepResolution]:
        """Resolve ``raws`` concurrently, preserving their order."""

        workers = self.context.settings.max_concurrency
        if workers <= 1 or len(raws) <= 1:
            return [self.resolve_dependency(raw) for raw in raws]
        unique = list(dict.fromkeys(raws))
        results = self._fan_out(
            unique, self.resolve_dependency, prefix="deps"
        )
        return [
            results[raw]
            or DepResolution(raw=raw, error="Unhandled resolver error")
            for raw in raws
        ]

    def _resolve_dependency_uncached(
        self,
        raw: RawDependency,
    ) -> DepResolution:
        unit = self.unit
        if unit is not None and unit.project_group == raw.group:
            version = unit.version if unit.version is not None else raw.version
            target = ResolvedTarget.for_dependency(
                raw, unit.repo, version=version
            )
            self.logger.debug(
                "resolver-identity", coordinate=raw.coordinate
            )
            return DepResolution(raw=raw, target=target)

        override = self.context.overrides.lookup(raw.coordinate)
        if override is not None:
            self.logger.debug(
                "resolver-override",
                coordinate=raw.coordinate,
                repo=override,
            )
            return DepResolution(
                raw=raw, target=ResolvedTarget.for_dependency(raw, override)
            )

        try:
            url = self.context.client.scm_url(raw)
        except MissingScmError as exc:
            return DepResolution(raw=raw, error=str(exc))
        except RegistryLookupError as exc:
            return DepResolution(
                raw=raw, error=f"Could not download file {exc}"
            )
        except ResolutionFailure as exc:
            return DepResolution(raw=raw, error=str(exc))
        return DepResolution(
            raw=raw, target=ResolvedTarget.for_dependency(raw, url)
        )

    # -- helpers ----------------------------------------------------------

    def _fan_out(
        self,
        keys: Sequence[_K],
        resolve: Callable[[_K], _V],
        *,
        prefix: str,
    ) -> dict[_K, _V | None]:
        results: dict[_K, _V | None] = {}
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.context.settings.max_concurrency,
            thread_name_prefix=f"resolver-{prefix}",
        ) as executor:
            task = propagate(resolve)
            future_map = {executor.submit(task, key): key for key in keys}
            for future in concurrent.futures.as_completed(future_map):
                key = future_map[future]
                try:
                    results[key] = future.result()
                except Exception as exc:  # pragma: no cover - executor path
                    self.logger.exception(
                        "resolver-thread-error", key=str(key), error=str(exc)
                    )
                    results[key] = None
        return results
