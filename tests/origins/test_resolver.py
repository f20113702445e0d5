"""Tests for :mod:`symgraph.origins.resolver`."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from symgraph.core.config import load_config
from symgraph.graph.models import Locator
from symgraph.origins.models import (
    RawDependency,
    ResolvedTarget,
    load_source_unit,
)
from symgraph.origins.resolver import (
    OriginResolver,
    ResolverContext,
    implicit_dependencies,
)

REGISTRY = "https://registry.test/maven2/"
HAMCREST = RawDependency("org.hamcrest", "hamcrest-core", "1.3")


def _descriptor_url(raw: RawDependency) -> str:
    group = raw.group.replace(".", "/")
    return (
        f"{REGISTRY}{group}/{raw.artifact}/{raw.version}/"
        f"{raw.artifact}-{raw.version}.pom"
    )


def _unit(**fields):
    payload = {
        "name": "com.acme/app",
        "repo": "https://github.com/acme/app",
        "version": "2.0.0",
    }
    payload.update(fields)
    return load_source_unit(payload)


@pytest.fixture
def build_resolver(recording_transport, tmp_path: Path):
    contexts: list[ResolverContext] = []

    def _build(routes=None, *, unit=None, resolver=None):
        recorder = recording_transport(routes)
        settings = {
            "registry_base_url": REGISTRY,
            "max_concurrency": 1,
            "max_attempts": 1,
        }
        settings.update(resolver or {})
        config = load_config(cli_overrides={"resolver": settings})
        context = ResolverContext.from_config(
            config,
            unit=unit if unit is not None else _unit(),
            base_dir=tmp_path,
            transport=recorder.transport(),
        )
        contexts.append(context)
        return OriginResolver(context), recorder

    yield _build
    for context in contexts:
        context.close()


def test_curated_override_needs_no_network(build_resolver) -> None:
    resolver, recorder = build_resolver()

    resolution = resolver.resolve_dependency(HAMCREST)

    assert resolution.ok
    assert resolution.target == ResolvedTarget(
        repo_clone_url="https://github.com/hamcrest/JavaHamcrest",
        unit_name="org.hamcrest/hamcrest-core",
        version="1.3",
    )
    assert recorder.requests == []


def test_identity_takes_precedence_over_overrides(build_resolver) -> None:
    resolver, recorder = build_resolver(
        resolver={"overrides": {"com.acme/": "https://mirror.test/acme"}}
    )

    resolution = resolver.resolve_dependency(
        RawDependency("com.acme", "util", "1.9")
    )

    assert resolution.target == ResolvedTarget(
        repo_clone_url="https://github.com/acme/app",
        unit_name="com.acme/util",
        version="2.0.0",
    )
    assert recorder.requests == []


def test_registry_lookup_is_memoized(build_resolver, pom, tmp_path) -> None:
    raw = RawDependency("io.widgets", "widget", "0.4")
    unit = _unit(
        dependencies=[
            {
                "group": "io.widgets",
                "artifact": "widget",
                "version": "0.4",
                "file": "lib/widget-0.4.jar",
            }
        ]
    )
    resolver, recorder = build_resolver(
        {
            _descriptor_url(raw): httpx.Response(
                200, content=pom(scm_url="https://github.com/io/widget")
            )
        },
        unit=unit,
    )
    locator = Locator(
        f"jar:file:{tmp_path / 'lib' / 'widget-0.4.jar'}!/io/widgets/W.class"
    )

    first = resolver.resolve_dependency(raw)
    second = resolver.resolve_dependency(raw)
    via_origin = resolver.resolve_origin(locator)
    again = resolver.resolve_origin(locator.uri)

    assert first is second
    assert first.target.repo_clone_url == "https://github.com/io/widget"
    assert via_origin == first.target
    assert again == first.target
    assert len(recorder.requests) == 1


def test_failures_are_cached_with_messages(build_resolver, pom) -> None:
    missing = RawDependency("io.gone", "gone", "1.0")
    bare = RawDependency("io.bare", "bare", "1.0")
    resolver, recorder = build_resolver(
        {_descriptor_url(bare): httpx.Response(200, content=pom())}
    )

    gone = resolver.resolve_dependency(missing)
    resolver.resolve_dependency(missing)
    no_scm = resolver.resolve_dependency(bare)

    assert gone.target is None
    assert gone.error == (
        f"Could not download file {_descriptor_url(missing)}: not found"
    )
    assert no_scm.error == "bare does not have an associated SCM repository."
    assert len(recorder.requests) == 2


def test_unusable_registry_responses_resolve_to_errors(build_resolver) -> None:
    looping = RawDependency("org.x", "y", "1")
    garbled = RawDependency("org.x", "z", "1")

    def redirect(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"location": str(request.url)})

    def bad_encoding(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-encoding": "gzip"},
            stream=httpx.ByteStream(b"plain text"),
        )

    resolver, recorder = build_resolver(
        {
            _descriptor_url(looping): redirect,
            _descriptor_url(garbled): bad_encoding,
        }
    )

    first = resolver.resolve_dependencies([looping, garbled])
    seen = len(recorder.requests)
    again = resolver.resolve_dependency(looping)

    assert [r.target for r in first] == [None, None]
    assert first[0].error == (
        f"Could not download file {_descriptor_url(looping)}: TooManyRedirects"
    )
    assert first[1].error.endswith("DecodingError")
    assert again == first[0]
    assert len(recorder.requests) == seen


@pytest.mark.parametrize(
    ("uri", "expected"),
    [
        (
            "jar:file:/opt/jdk/jre/lib/rt.jar!/java/util/List.class",
            ResolvedTarget.jdk(),
        ),
        (
            "jar:file:/opt/jdk/lib/tools.jar!/com/sun/tools/javac/Main.class",
            ResolvedTarget.langtools(),
        ),
        (
            "jar:file:/opt/jdk/lib/nashorn.jar!/jdk/nashorn/Api.class",
            ResolvedTarget.nashorn(),
        ),
    ],
)
def test_standard_library_targets(build_resolver, uri, expected) -> None:
    resolver, recorder = build_resolver()

    assert resolver.resolve_origin(uri) == expected
    assert recorder.requests == []


def test_platform_unit_targets(build_resolver, tmp_path) -> None:
    members = tmp_path / "core-classes.txt"
    members.write_text("java/lang/Object\njava/util/List\n", encoding="utf-8")
    resolver, _ = build_resolver(
        unit=_unit(platform=True),
        resolver={"membership_file": str(members)},
    )

    core = resolver.resolve_origin(
        "jar:file:/sdk/android.jar!/java/util/List.class"
    )
    sdk = resolver.resolve_origin(
        "jar:file:/sdk/android.jar!/android/app/Activity.class"
    )
    stdlib = resolver.resolve_origin(
        "jar:file:/opt/jdk/jre/lib/rt.jar!/java/lang/Object.class"
    )

    assert core == ResolvedTarget.platform_core()
    assert sdk == ResolvedTarget.platform_sdk()
    assert stdlib == ResolvedTarget.platform_core()


def test_missing_membership_file_leaves_platform_external(
    build_resolver, tmp_path
) -> None:
    resolver, _ = build_resolver(
        resolver={"membership_file": str(tmp_path / "nope.txt")},
    )

    assert not resolver.context.classifier.has_membership
    assert (
        resolver.resolve_origin("jar:file:/sdk/android.jar!/a/B.class")
        is None
    )


def test_file_origin_uses_source_path(build_resolver, tmp_path) -> None:
    unit = _unit(
        source_path=[
            {"unit": "com.acme/util", "version": "2.0.0", "directory": "util"}
        ]
    )
    resolver, _ = build_resolver(unit=unit)
    source = tmp_path / "util" / "com" / "acme" / "Util.java"

    target = resolver.resolve_origin(Locator(f"file:{source}"))

    assert target == ResolvedTarget(
        repo_clone_url=None, unit_name="com.acme/util", version="2.0.0"
    )
    assert resolver.resolve_origin(Locator("file:/elsewhere/X.java")) is None


def test_exploded_aar_on_platform_unit(build_resolver) -> None:
    unit = _unit(
        platform=True,
        dependencies=[
            {"group": "com.lib", "artifact": "widget", "version": "1.2"}
        ],
    )
    resolver, recorder = build_resolver(
        unit=unit,
        resolver={"overrides": {"com.lib/": "https://github.com/lib/widget"}},
    )
    uri = (
        "jar:file:/build/intermediates/exploded-aar/com.lib/widget/1.2/"
        "jars/classes.jar!/com/lib/Widget.class"
    )

    target = resolver.resolve_origin(uri)

    assert target is not None
    assert target.repo_clone_url == "https://github.com/lib/widget"
    assert target.unit_name == "com.lib/widget"
    assert recorder.requests == []


def test_unknown_or_unsupported_origins(build_resolver) -> None:
    resolver, recorder = build_resolver()

    assert resolver.resolve_origin(None) is None
    assert resolver.resolve_origin("jar:file:/libs/mystery.jar!/X.class") is None
    assert resolver.resolve_origin("jrt:/java.base/java/lang/Object.class") is None
    assert recorder.requests == []


def test_concurrent_dependencies_hit_registry_once(build_resolver, pom) -> None:
    raws = [RawDependency("io.multi", f"lib{i}", "1.0") for i in range(5)]
    routes = {
        _descriptor_url(raw): httpx.Response(
            200, content=pom(scm_url=f"https://github.com/multi/{raw.artifact}")
        )
        for raw in raws
    }
    resolver, recorder = build_resolver(
        routes, resolver={"max_concurrency": 4}
    )
    requested = raws + raws[::-1]

    results = resolver.resolve_dependencies(requested)

    assert [r.raw for r in results] == requested
    assert all(r.ok for r in results)
    assert results[0].target.repo_clone_url == "https://github.com/multi/lib0"
    assert sorted(recorder.requests) == sorted(routes)


def test_resolve_origins_returns_mapping(build_resolver) -> None:
    resolver, _ = build_resolver(resolver={"max_concurrency": 3})
    locators = [
        Locator("jar:file:/opt/jdk/jre/lib/rt.jar!/java/util/List.class"),
        Locator("jar:file:/opt/jdk/lib/tools.jar!/com/sun/X.class"),
        Locator("jar:file:/libs/mystery.jar!/X.class"),
    ]

    resolved = resolver.resolve_origins(locators + locators[:1])

    assert set(resolved) == set(locators)
    assert resolved[locators[0]] == ResolvedTarget.jdk()
    assert resolved[locators[1]] == ResolvedTarget.langtools()
    assert resolved[locators[2]] is None


def test_implicit_dependencies() -> None:
    plain = implicit_dependencies(_unit())
    platform = implicit_dependencies(_unit(platform=True))

    assert [d.target for d in plain] == [ResolvedTarget.jdk()]
    assert [d.target for d in platform] == [
        ResolvedTarget.platform_core(),
        ResolvedTarget.platform_sdk(),
    ]
    assert all(d.raw is None for d in plain + platform)
