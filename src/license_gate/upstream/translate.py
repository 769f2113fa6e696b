"""Translation of registration catalog entries into metadata records.

The remote feed describes each package version with a JSON "catalogEntry"
object. These helpers normalize it into a PackageMetadataRecord: delimited
author and tag strings are split, URLs are validated, and dependency groups
without dependencies get their placeholder entry.
"""

import re
from datetime import UTC, datetime
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlsplit

from license_gate.models import DependencyGroup, PackageDependency, PackageMetadataRecord
from license_gate.versioning import NuGetVersion

AUTHOR_SEPARATORS = ",;\t\n\r"
TAG_SEPARATORS = " "

# Unlisted packages on legacy feeds carry this sentinel publish year.
UNLISTED_PUBLISH_YEAR = 1900


def _split(value: Union[str, Iterable[str], None], separators: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]

    pattern = "[" + re.escape(separators) + "]"
    tokens: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        tokens.extend(t.strip() for t in re.split(pattern, item))
    return [t for t in tokens if t]


def parse_authors(value: Union[str, Iterable[str], None]) -> list[str]:
    """Split an authors field into names.

    Args:
        value: Delimited author string, or a list of such strings.

    Returns:
        Trimmed, non-empty author names in order.
    """
    return _split(value, AUTHOR_SEPARATORS)


def parse_tags(value: Union[str, Iterable[str], None]) -> list[str]:
    """Split a tags field into individual tags.

    Args:
        value: List of tag strings (each may hold several space-separated
            tags), or a single space-separated string.

    Returns:
        Trimmed, non-empty tags in order.
    """
    return _split(value, TAG_SEPARATORS)


def parse_uri(value: Optional[str]) -> Optional[str]:
    """Return value if it is an absolute URL, None otherwise."""
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return value


def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 publish timestamp into an aware UTC datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        published = datetime.fromisoformat(value)
    except ValueError:
        return None
    if published.tzinfo is None:
        return published.replace(tzinfo=UTC)
    return published.astimezone(UTC)


def is_listed(entry: dict[str, Any]) -> bool:
    """Return whether a catalog entry is listed.

    An explicit "listed" flag wins; otherwise a publish year of 1900 marks
    the version as unlisted.
    """
    listed = entry.get("listed")
    if isinstance(listed, bool):
        return listed

    published = parse_published(entry.get("published"))
    return published is None or published.year != UNLISTED_PUBLISH_YEAR


def to_dependency_groups(entry: dict[str, Any]) -> list[DependencyGroup]:
    """Translate the dependency groups of a catalog entry.

    A group with no dependencies is represented by a single placeholder
    dependency with a None id and version range.
    """
    groups: list[DependencyGroup] = []
    for group in entry.get("dependencyGroups") or []:
        framework = group.get("targetFramework")
        dependencies = group.get("dependencies") or []

        if not dependencies:
            groups.append(
                DependencyGroup(
                    target_framework=framework,
                    dependencies=[PackageDependency(None, None, framework)],
                )
            )
            continue

        groups.append(
            DependencyGroup(
                target_framework=framework,
                dependencies=[
                    PackageDependency(d.get("id"), d.get("range"), framework)
                    for d in dependencies
                ],
            )
        )
    return groups


def to_metadata_record(entry: dict[str, Any]) -> PackageMetadataRecord:
    """Translate a registration catalog entry into a metadata record.

    Args:
        entry: The "catalogEntry" object of a registration leaf.

    Returns:
        The normalized PackageMetadataRecord.

    Raises:
        ValueError: If the entry has no id or an invalid version.
    """
    package_id = entry.get("id")
    if not isinstance(package_id, str) or not package_id:
        raise ValueError("Catalog entry is missing its package id")

    version = NuGetVersion.parse(entry.get("version"))

    return PackageMetadataRecord(
        id=package_id,
        version=version,
        authors=parse_authors(entry.get("authors")),
        description=entry.get("description"),
        language=entry.get("language") or None,
        listed=is_listed(entry),
        published=parse_published(entry.get("published")),
        license_url=parse_uri(entry.get("licenseUrl")),
        project_url=parse_uri(entry.get("projectUrl")),
        icon_url=parse_uri(entry.get("iconUrl")),
        tags=parse_tags(entry.get("tags")),
        dependency_groups=to_dependency_groups(entry),
        catalog_leaf_url=entry.get("@id"),
        summary=entry.get("summary") or None,
        title=entry.get("title") or None,
        min_client_version=entry.get("minClientVersion") or None,
        require_license_acceptance=entry.get("requireLicenseAcceptance") is True,
    )
