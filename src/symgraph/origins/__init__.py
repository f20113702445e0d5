"""Dependency origin resolution for :mod:`symgraph`."""

from __future__ import annotations

from .classifier import OriginCategory, OriginClassifier, load_membership
from .errors import (
    DescriptorNotFoundError,
    InvalidSourceUnitError,
    MissingScmError,
    RegistryLookupError,
    ResolutionFailure,
)
from .models import (
    DEFAULT_UNIT_TYPE,
    DepResolution,
    RawDependency,
    ResolvedTarget,
    SourceUnit,
    load_source_unit,
    read_source_unit,
)
from .overrides import OverrideTable
from .registry import MetadataClient
from .resolver import OriginResolver, ResolverContext, implicit_dependencies

__all__ = [
    "DEFAULT_UNIT_TYPE",
    "DepResolution",
    "DescriptorNotFoundError",
    "InvalidSourceUnitError",
    "MetadataClient",
    "MissingScmError",
    "OriginCategory",
    "OriginClassifier",
    "OriginResolver",
    "OverrideTable",
    "RawDependency",
    "RegistryLookupError",
    "ResolutionFailure",
    "ResolvedTarget",
    "ResolverContext",
    "SourceUnit",
    "implicit_dependencies",
    "load_membership",
    "load_source_unit",
    "read_source_unit",
]
