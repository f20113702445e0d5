"""HTTP client for package-registry descriptors (``.pom`` files)."""

from __future__ import annotations

import random
import time
import xml.etree.ElementTree as ET
from typing import Callable

import httpx

from symgraph.core.logging import Logger, get_logger

from .errors import (
    DescriptorNotFoundError,
    MissingScmError,
    RegistryLookupError,
)
from .models import RawDependency

__all__ = ["Descriptor", "MetadataClient", "descriptor_path"]

_BACKOFF_BASE = 0.5
_BACKOFF_MULTIPLIER = 2.0
_BACKOFF_CAP = 8.0
_JITTER_RATIO = 0.2
_RETRY_STATUSES = frozenset({429})
_BOM = b"\xef\xbb\xbf"
_MAX_PARENT_DEPTH = 16


def descriptor_path(group: str, artifact: str, version: str) -> str:
    """Return the registry-relative path of a descriptor.

    Example:
        >>> descriptor_path("org.hamcrest", "hamcrest-core", "1.3")
        'org/hamcrest/hamcrest-core/1.3/hamcrest-core-1.3.pom'
    """

    return (
        f"{group.replace('.', '/')}/{artifact}/{version}/"
        f"{artifact}-{version}.pom"
    )


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element | None, name: str) -> ET.Element | None:
    if element is None:
        return None
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _text(element: ET.Element | None, name: str) -> str | None:
    node = _child(element, name)
    if node is None or node.text is None:
        return None
    value = node.text.strip()
    return value or None


def _strip_scm_prefix(connection: str) -> str:
    """Drop the ``scm:<vcs>:`` prefix from a connection string."""

    if not connection.startswith("scm:"):
        return connection
    _, _, rest = connection[len("scm:") :].partition(":")
    return rest or connection


class Descriptor:
    """The parts of a registry descriptor the resolver reads."""

    __slots__ = ("scm_url", "parent")

    def __init__(
        self,
        *,
        scm_url: str | None,
        parent: RawDependency | None,
    ) -> None:
        self.scm_url = scm_url
        self.parent = parent

    @classmethod
    def parse(cls, content: bytes, *, url: str) -> "Descriptor":
        if content.startswith(_BOM):
            content = content[len(_BOM) :]
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise RegistryLookupError(
                f"{url}: malformed descriptor ({exc})", url=url
            ) from exc

        scm = _child(root, "scm")
        scm_url = _text(scm, "url")
        if scm_url is None:
            connection = _text(scm, "connection")
            if connection is not None:
                scm_url = _strip_scm_prefix(connection)

        parent = None
        parent_node = _child(root, "parent")
        group = _text(parent_node, "groupId")
        artifact = _text(parent_node, "artifactId")
        if group is not None and artifact is not None:
            parent = RawDependency(
                group=group,
                artifact=artifact,
                version=_text(parent_node, "version"),
            )
        return cls(scm_url=scm_url, parent=parent)


class MetadataClient:
    """Fetch descriptors and read their source-control URL.

    Transient failures (timeouts, connection errors, 429 and 5xx answers)
    are retried with capped exponential backoff. A 404 raises
    :class:`DescriptorNotFoundError` without retrying. Other request errors,
    such as a redirect loop, fail at once as :class:`RegistryLookupError`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
        logger: Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.max_attempts = max_attempts
        self.logger = logger or get_logger(__name__, component="registry")
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )
        self._stats = {"requests": 0, "retries": 0, "failures": 0}

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "MetadataClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def descriptor_url(self, raw: RawDependency) -> str:
        if not raw.version:
            raise RegistryLookupError(
                f"{raw.coordinate}: no version to look up",
                url=self.base_url,
            )
        return self.base_url + descriptor_path(
            raw.group, raw.artifact, raw.version
        )

    def fetch_descriptor(self, raw: RawDependency) -> Descriptor:
        url = self.descriptor_url(raw)
        return Descriptor.parse(self._get_with_retries(url), url=url)

    def scm_url(self, raw: RawDependency) -> str:
        """Return the SCM URL declared by ``raw`` or a same-group parent.

        Raises:
            RegistryLookupError: If a descriptor cannot be fetched or parsed.
            MissingScmError: If no descriptor in the chain declares one.
        """

        current = raw
        for _ in range(_MAX_PARENT_DEPTH):
            descriptor = self.fetch_descriptor(current)
            if descriptor.scm_url is not None:
                return descriptor.scm_url
            parent = descriptor.parent
            if parent is None or parent.group != raw.group:
                break
            self.logger.debug(
                "registry-follow-parent",
                coordinate=current.coordinate,
                parent=parent.coordinate,
            )
            current = parent
        raise MissingScmError(
            f"{raw.artifact} does not have an associated SCM repository."
        )

    def _get_with_retries(self, url: str) -> bytes:
        attempts = 0
        while True:
            attempts += 1
            try:
                response = self._client.get(url)
            except httpx.TransportError as exc:
                if attempts >= self.max_attempts:
                    self._stats["failures"] += 1
                    raise RegistryLookupError(
                        f"{url}: {exc.__class__.__name__}",
                        url=url,
                        attempts=attempts,
                    ) from exc
                self._retry(url, attempts, error_type=exc.__class__.__name__)
                continue
            except httpx.HTTPError as exc:
                # Redirect loops and undecodable bodies are not transient.
                self._stats["failures"] += 1
                raise RegistryLookupError(
                    f"{url}: {exc.__class__.__name__}",
                    url=url,
                    attempts=attempts,
                ) from exc

            self._stats["requests"] += 1
            status = response.status_code
            if status == 404:
                raise DescriptorNotFoundError(
                    f"{url}: not found",
                    url=url,
                    status_code=status,
                    attempts=attempts,
                )
            if status in _RETRY_STATUSES or status >= 500:
                if attempts >= self.max_attempts:
                    self._stats["failures"] += 1
                    raise RegistryLookupError(
                        f"{url}: HTTP {status}",
                        url=url,
                        status_code=status,
                        attempts=attempts,
                    )
                self._retry(url, attempts, status_code=status)
                continue
            if status >= 400:
                self._stats["failures"] += 1
                raise RegistryLookupError(
                    f"{url}: HTTP {status}",
                    url=url,
                    status_code=status,
                    attempts=attempts,
                )
            self.logger.debug(
                "registry-fetch",
                url=url,
                attempts=attempts,
                recovered=attempts > 1,
            )
            return response.content

    def _retry(
        self,
        url: str,
        attempts: int,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        delay = self._compute_backoff(attempt=attempts + 1)
        self.logger.warning(
            "registry-fetch-retry",
            url=url,
            attempt=attempts,
            max_attempts=self.max_attempts,
            retry_delay=delay,
            status_code=status_code,
            error_type=error_type,
        )
        self._stats["retries"] += 1
        self._sleep(delay)

    def _compute_backoff(self, *, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        base = _BACKOFF_BASE * (_BACKOFF_MULTIPLIER ** (attempt - 2))
        base = min(base, _BACKOFF_CAP)
        jitter = 1.0 + self._rng.uniform(-_JITTER_RATIO, _JITTER_RATIO)
        return round(base * jitter, 2)
