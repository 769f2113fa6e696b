"""Core data models for license_gate.

This module defines the value types passed between the mirror client, the
license policy and the serving layer: package identities, license info,
translated feed metadata and block decisions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Optional

from license_expression import get_spdx_licensing

from license_gate.versioning import NuGetVersion

logger = logging.getLogger(__name__)

SPDX = get_spdx_licensing()


@lru_cache(maxsize=1024)
def _expression_keys(expression: str) -> tuple[str, ...]:
    try:
        parsed = SPDX.parse(expression)
    except Exception as e:
        logger.debug("Could not parse license expression '%s': %s", expression, e)
        return ()
    if parsed is None:
        return ()
    return tuple(SPDX.license_keys(parsed))


@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Immutable identity of one package release.

    Package ids are case-insensitive: "Newtonsoft.Json" and "newtonsoft.json"
    name the same package, so equality and hashing ignore case.

    Attributes:
        id: Package id (non-empty).
        version: Package version.
    """

    id: str
    version: NuGetVersion

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("Package id must be a non-empty string")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.id.lower() == other.id.lower() and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.id.lower(), self.version))

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass
class PackageLicenseInfo:
    """License provenance for one package version.

    Attributes:
        license_url: License URL from the package metadata, if any.
        license_expression: SPDX license expression from the catalog leaf, if any.
    """

    license_url: Optional[str] = None
    license_expression: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.license_url and not self.license_expression

    @property
    def license_keys(self) -> list[str]:
        """Return the license keys referenced by the license expression.

        Returns:
            Keys such as ["MIT", "Apache-2.0"], or an empty list when there is
            no expression or it cannot be parsed.
        """
        if not self.license_expression:
            return []
        return list(_expression_keys(self.license_expression))


@dataclass(frozen=True)
class PackageDependency:
    """A single dependency entry of a package.

    A dependency group without dependencies is stored as one entry whose id
    and version_range are both None. Such an entry means "no dependencies for
    this framework", not an unknown dependency.
    """

    id: Optional[str]
    version_range: Optional[str]
    target_framework: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.id is None and self.version_range is None


@dataclass
class DependencyGroup:
    """Dependencies declared for one target framework."""

    target_framework: Optional[str]
    dependencies: list[PackageDependency] = field(default_factory=list)


@dataclass
class PackageMetadataRecord:
    """Normalized view of one package version's metadata on the remote feed.

    Attributes:
        id: Package id as published.
        version: Parsed package version.
        authors: Author names, split from the feed's delimited string.
        description: Package description.
        language: Package language (locale), if declared.
        listed: Whether the version is listed on the feed.
        published: Publish timestamp (UTC), if known.
        license_url: License URL, if declared and absolute.
        project_url: Project URL, if declared and absolute.
        icon_url: Icon URL, if declared and absolute.
        tags: Tags, split on spaces.
        dependency_groups: Dependency groups in feed order.
        catalog_leaf_url: URL of the catalog leaf for this version, if known.
        summary: Short summary, if any.
        title: Display title, if any.
        min_client_version: Minimum client version, if declared.
        require_license_acceptance: Whether clients must accept the license.
        downloads: Not knowable from upstream metadata, always 0.
        has_readme: Not knowable from upstream metadata, always False.
    """

    id: str
    version: NuGetVersion
    authors: list[str] = field(default_factory=list)
    description: Optional[str] = None
    language: Optional[str] = None
    listed: bool = True
    published: Optional[datetime] = None
    license_url: Optional[str] = None
    project_url: Optional[str] = None
    icon_url: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    dependency_groups: list[DependencyGroup] = field(default_factory=list)
    catalog_leaf_url: Optional[str] = None
    summary: Optional[str] = None
    title: Optional[str] = None
    min_client_version: Optional[str] = None
    require_license_acceptance: bool = False
    downloads: int = 0
    has_readme: bool = False

    @property
    def identity(self) -> PackageIdentity:
        return PackageIdentity(self.id, self.version)

    @property
    def is_prerelease(self) -> bool:
        return self.version.is_prerelease

    @property
    def semver_level(self) -> Optional[str]:
        """Return "2.0.0" for SemVer 2 versions, None otherwise."""
        return "2.0.0" if self.version.is_semver2 else None

    @property
    def dependencies(self) -> list[PackageDependency]:
        """Return all dependency entries across groups, in feed order."""
        return [dep for group in self.dependency_groups for dep in group.dependencies]


@dataclass(frozen=True)
class BlockDecision:
    """Outcome of a license policy evaluation.

    Attributes:
        blocked: True if the package must not be served.
        reason: Human-readable reason, always present when blocked.
    """

    blocked: bool
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.blocked and not self.reason:
            raise ValueError("A blocking decision requires a reason")

    @classmethod
    def allow(cls) -> "BlockDecision":
        return cls(blocked=False)

    @classmethod
    def block(cls, reason: str) -> "BlockDecision":
        return cls(blocked=True, reason=reason)
