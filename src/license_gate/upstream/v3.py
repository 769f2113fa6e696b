"""Mirror client for feeds that speak the NuGet V3 protocol.

The client discovers its resources from the feed's service index:

* ``PackageBaseAddress`` (flat container) for version lists, package
  archives and manifests.
* ``RegistrationsBaseUrl`` for package metadata, including the catalog leaf
  URL of each version.

License provenance is assembled in two hops: the license URL comes straight
from the registration entry, and the license expression is enriched from the
catalog leaf when one is linked.
"""

import logging
from typing import Any, BinaryIO, Optional

from license_gate.models import PackageLicenseInfo, PackageMetadataRecord
from license_gate.outcome import NOT_FOUND, NotFound, Ok, Outcome, TransientFailure
from license_gate.upstream.base import BaseUpstreamClient
from license_gate.upstream.catalog import CatalogClient
from license_gate.upstream.http import DEFAULT_TIMEOUT, HttpClient
from license_gate.upstream.translate import to_metadata_record
from license_gate.versioning import NuGetVersion

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_INDEX = "https://api.nuget.org/v3/index.json"

PACKAGE_BASE_ADDRESS_TYPES = ("PackageBaseAddress/3.0.0",)

# SemVer 2 registrations first, so SemVer 2 versions are visible.
REGISTRATIONS_BASE_URL_TYPES = (
    "RegistrationsBaseUrl/3.6.0",
    "RegistrationsBaseUrl/3.4.0",
    "RegistrationsBaseUrl/3.0.0-rc",
    "RegistrationsBaseUrl/3.0.0-beta",
    "RegistrationsBaseUrl",
)

# Errors raised while reading a structurally unexpected document.
MALFORMED_DOCUMENT_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


def _raw_string(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


class V3UpstreamClient(BaseUpstreamClient, HttpClient):
    """Mirror client for a NuGet V3 feed.

    This client manages an aiohttp session for efficient connection reuse
    across calls. Use as an async context manager or call close() when done.

    Attributes:
        service_index_url: URL of the feed's service index (index.json).
        catalog: Client used to enrich license info from catalog leaves.
    """

    def __init__(
        self,
        service_index_url: str = DEFAULT_SERVICE_INDEX,
        timeout: float = DEFAULT_TIMEOUT,
        catalog: Optional[CatalogClient] = None,
    ) -> None:
        """Initialize the V3 upstream client.

        Args:
            service_index_url: URL of the remote feed's service index.
            timeout: Total timeout in seconds for each request.
            catalog: Optional custom CatalogClient. If not provided, creates
                one with the same timeout.
        """
        HttpClient.__init__(self, timeout=timeout)
        self.service_index_url = service_index_url
        self.catalog = catalog or CatalogClient(timeout=timeout)
        self._resources: Optional[dict[str, str]] = None

    @property
    def name(self) -> str:
        return "V3"

    async def close(self) -> None:
        """Close the HTTP sessions of this client and its catalog client."""
        await HttpClient.close(self)
        await self.catalog.close()

    async def __aenter__(self) -> "V3UpstreamClient":
        """Async context manager entry."""
        return self

    async def _service_index(self) -> Outcome[dict[str, str]]:
        """Fetch the service index once and map resource types to URLs.

        Only a successful fetch is remembered; failures are retried on the
        next call.
        """
        if self._resources is not None:
            return Ok(self._resources)

        outcome = await self._get_json(self.service_index_url)
        if not isinstance(outcome, Ok):
            return outcome

        resources: dict[str, str] = {}
        try:
            for resource in outcome.value["resources"]:
                types = resource["@type"]
                if isinstance(types, str):
                    types = [types]
                for resource_type in types:
                    resources.setdefault(resource_type, resource["@id"])
        except MALFORMED_DOCUMENT_ERRORS as e:
            return TransientFailure(
                f"Malformed service index {self.service_index_url}: {e!r}"
            )

        self._resources = resources
        return Ok(resources)

    async def _resource_url(self, types: tuple[str, ...]) -> Outcome[str]:
        outcome = await self._service_index()
        if isinstance(outcome, NotFound):
            return TransientFailure(
                f"Service index {self.service_index_url} not found"
            )
        if not isinstance(outcome, Ok):
            return outcome

        for resource_type in types:
            url = outcome.value.get(resource_type)
            if url:
                return Ok(url.rstrip("/"))
        return TransientFailure(
            f"Service index {self.service_index_url} has no {types[0]} resource"
        )

    async def _package_base_url(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[str]:
        base = await self._resource_url(PACKAGE_BASE_ADDRESS_TYPES)
        if not isinstance(base, Ok):
            return base
        lower_id = package_id.lower()
        lower_version = version.to_normalized_string().lower()
        return Ok(f"{base.value}/{lower_id}/{lower_version}")

    async def _registration_index(self, package_id: str) -> Outcome[dict[str, Any]]:
        base = await self._resource_url(REGISTRATIONS_BASE_URL_TYPES)
        if not isinstance(base, Ok):
            return base
        return await self._get_json(f"{base.value}/{package_id.lower()}/index.json")

    async def _page_items(self, page: dict[str, Any]) -> Outcome[list[dict[str, Any]]]:
        """Return the leaves of a registration page, fetching it if needed."""
        items = page.get("items")
        if items is not None:
            return Ok(items)

        outcome = await self._get_json(page["@id"])
        if isinstance(outcome, NotFound):
            return TransientFailure(f"Registration page {page['@id']} not found")
        if not isinstance(outcome, Ok):
            return outcome
        return Ok(outcome.value.get("items") or [])

    async def fetch_versions(self, package_id: str) -> Outcome[list[NuGetVersion]]:
        """Fetch all versions from the flat container, unlisted included."""
        base = await self._resource_url(PACKAGE_BASE_ADDRESS_TYPES)
        if not isinstance(base, Ok):
            return base

        outcome = await self._get_json(f"{base.value}/{package_id.lower()}/index.json")
        if not isinstance(outcome, Ok):
            return outcome

        versions: list[NuGetVersion] = []
        try:
            raw_versions = outcome.value["versions"]
        except MALFORMED_DOCUMENT_ERRORS as e:
            return TransientFailure(f"Malformed version list for {package_id}: {e!r}")

        for raw in raw_versions:
            version = NuGetVersion.try_parse(raw)
            if version is None:
                logger.debug("Skipping invalid version %r of %s", raw, package_id)
                continue
            versions.append(version)

        return Ok(sorted(versions))

    async def fetch_metadata(
        self, package_id: str
    ) -> Outcome[list[PackageMetadataRecord]]:
        """Fetch and translate every registration leaf of a package."""
        index = await self._registration_index(package_id)
        if not isinstance(index, Ok):
            return index

        records: list[PackageMetadataRecord] = []
        try:
            for page in index.value.get("items") or []:
                items = await self._page_items(page)
                if not isinstance(items, Ok):
                    return items
                for leaf in items.value:
                    records.append(to_metadata_record(leaf["catalogEntry"]))
        except MALFORMED_DOCUMENT_ERRORS as e:
            return TransientFailure(f"Malformed registration for {package_id}: {e!r}")

        return Ok(records)

    async def _catalog_entry(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[dict[str, Any]]:
        """Find the raw registration catalog entry of one version.

        Pages whose version bounds exclude the version are not fetched.
        """
        index = await self._registration_index(package_id)
        if not isinstance(index, Ok):
            return index

        try:
            for page in index.value.get("items") or []:
                lower = NuGetVersion.try_parse(page.get("lower"))
                upper = NuGetVersion.try_parse(page.get("upper"))
                if lower is not None and version < lower:
                    continue
                if upper is not None and version > upper:
                    continue

                items = await self._page_items(page)
                if not isinstance(items, Ok):
                    return items
                for leaf in items.value:
                    entry = leaf["catalogEntry"]
                    if NuGetVersion.try_parse(entry.get("version")) == version:
                        return Ok(entry)
        except MALFORMED_DOCUMENT_ERRORS as e:
            return TransientFailure(f"Malformed registration for {package_id}: {e!r}")

        return NOT_FOUND

    async def fetch_version_metadata(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[PackageMetadataRecord]:
        """Find and translate the registration leaf of one version."""
        entry = await self._catalog_entry(package_id, version)
        if not isinstance(entry, Ok):
            return entry

        try:
            return Ok(to_metadata_record(entry.value))
        except MALFORMED_DOCUMENT_ERRORS as e:
            return TransientFailure(f"Malformed registration for {package_id}: {e!r}")

    async def lookup_license_info(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[PackageLicenseInfo]:
        """Build license info from the registration and its catalog leaf.

        The license URL is taken verbatim from the registration entry, so a
        relative or scheme-less URL is still visible to the policy. The
        license expression is read from the catalog leaf when one is linked;
        if that enrichment fails the already-known license URL is still
        returned.
        """
        outcome = await self._catalog_entry(package_id, version)
        if not isinstance(outcome, Ok):
            return outcome

        entry = outcome.value
        info = PackageLicenseInfo(license_url=_raw_string(entry.get("licenseUrl")))

        leaf_url = _raw_string(entry.get("@id"))
        if leaf_url:
            info.license_expression = await self.catalog.get_license_expression(leaf_url)
            if info.license_expression is None:
                logger.debug(
                    "No license expression for %s %s from catalog leaf %s",
                    package_id,
                    version,
                    leaf_url,
                )

        return Ok(info)

    async def fetch_content(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[BinaryIO]:
        """Download the .nupkg archive from the flat container."""
        base = await self._package_base_url(package_id, version)
        if not isinstance(base, Ok):
            return base
        lower_id = package_id.lower()
        lower_version = version.to_normalized_string().lower()
        return await self._download(f"{base.value}/{lower_id}.{lower_version}.nupkg")

    async def fetch_manifest(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[BinaryIO]:
        """Download the .nuspec manifest from the flat container."""
        base = await self._package_base_url(package_id, version)
        if not isinstance(base, Ok):
            return base
        return await self._download(f"{base.value}/{package_id.lower()}.nuspec")
