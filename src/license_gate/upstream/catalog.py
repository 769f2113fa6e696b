"""Catalog leaf resolver.

Registration entries on a V3 feed link to an immutable catalog leaf that
carries the full package details, including the SPDX license expression that
the registration itself does not expose. A leaf lives under the catalog root,
for example::

    https://api.nuget.org/v3/catalog0/data/2015.02.01.12.30.45/package.id.1.0.0.json
    https://api.nuget.org/v3/catalog0/index.json   (catalog index)

License-expression enrichment is best effort: every failure here is reported
as "no expression available" and logged at debug level.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from license_gate.outcome import NotFound, Ok, Outcome, TransientFailure
from license_gate.upstream.http import DEFAULT_TIMEOUT, HttpClient

logger = logging.getLogger(__name__)

CATALOG_SEGMENT_PREFIX = "catalog"
PACKAGE_DETAILS_TYPE = "PackageDetails"


def catalog_index_url(leaf_url: Optional[str]) -> Optional[str]:
    """Derive the catalog index URL from a catalog leaf URL.

    The catalog root is the last directory segment of the leaf's path whose
    name starts with "catalog" (case-insensitive). The leaf document's own
    file name is not considered, so a package id starting with "catalog"
    cannot be mistaken for the root.

    Args:
        leaf_url: Absolute URL of a catalog leaf document.

    Returns:
        The catalog index URL, or None if the URL is not absolute or has no
        catalog segment. A URL is never guessed.
    """
    if not leaf_url:
        return None

    try:
        parts = urlsplit(leaf_url)
    except ValueError:
        return None

    if not parts.scheme or not parts.netloc:
        return None

    segments = parts.path.split("/")
    directories = segments[:-1]
    for index in range(len(directories) - 1, -1, -1):
        if directories[index].lower().startswith(CATALOG_SEGMENT_PREFIX):
            path = "/".join(directories[: index + 1]) + "/index.json"
            return urlunsplit((parts.scheme, parts.netloc, path, "", ""))

    return None


def _is_package_details(leaf: dict[str, Any]) -> bool:
    leaf_type = leaf.get("@type")
    if leaf_type is None:
        return True
    if isinstance(leaf_type, str):
        leaf_type = [leaf_type]
    return any(
        str(t).split(":")[-1] == PACKAGE_DETAILS_TYPE for t in leaf_type
    )


class CatalogClient(HttpClient):
    """Client for the catalog resource of a V3 feed."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        super().__init__(timeout=timeout)

    async def get_leaf(self, leaf_url: str) -> Outcome[dict[str, Any]]:
        """Fetch a catalog leaf document."""
        outcome = await self._get_json(leaf_url)
        if isinstance(outcome, Ok) and not isinstance(outcome.value, dict):
            return TransientFailure(f"Catalog leaf {leaf_url} is not a JSON object")
        return outcome

    async def get_license_expression(self, leaf_url: Optional[str]) -> Optional[str]:
        """Return the license expression recorded in a catalog leaf.

        Args:
            leaf_url: Catalog leaf URL taken from the registration entry.

        Returns:
            The license expression, or None if the leaf is unresolvable,
            missing, not a package-details leaf, has no expression, or could
            not be fetched.
        """
        index_url = catalog_index_url(leaf_url)
        if index_url is None:
            logger.debug("Cannot derive a catalog index from leaf URL %s", leaf_url)
            return None

        try:
            outcome = await self.get_leaf(leaf_url)
        except Exception as e:
            logger.debug("Could not fetch catalog leaf %s: %s", leaf_url, e)
            return None

        if isinstance(outcome, NotFound):
            logger.debug("Catalog leaf %s not found (catalog %s)", leaf_url, index_url)
            return None
        if isinstance(outcome, TransientFailure):
            logger.debug("Could not fetch catalog leaf %s: %s", leaf_url, outcome.detail)
            return None

        leaf = outcome.value
        if not _is_package_details(leaf):
            logger.debug("Catalog leaf %s is not a package details leaf", leaf_url)
            return None

        expression = leaf.get("licenseExpression")
        if not isinstance(expression, str) or not expression.strip():
            return None
        return expression.strip()
