"""Base interface for upstream mirror clients.

An upstream client resolves versions, metadata, license provenance and
content for packages hosted on a remote feed. Concrete clients implement the
outcome-returning primitives; this base turns them into the fail-soft
operations the rest of the system consumes.
"""

import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, TypeVar

from license_gate.models import PackageLicenseInfo, PackageMetadataRecord
from license_gate.outcome import NotFound, Outcome, TransientFailure
from license_gate.versioning import NuGetVersion

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseUpstreamClient(ABC):
    """Abstract base class for upstream mirror clients.

    The public operations never raise for upstream problems. A missing
    package yields an empty or absent result; any other failure is logged at
    error level and yields the same result, because mirroring must not break
    local availability. Cancellation is the one thing that propagates.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the client name for logging/debugging."""
        ...

    async def close(self) -> None:
        """Release any resources held by the client."""

    @abstractmethod
    async def fetch_versions(self, package_id: str) -> Outcome[list[NuGetVersion]]:
        """Fetch all versions of a package, unlisted ones included."""
        ...

    @abstractmethod
    async def fetch_metadata(
        self, package_id: str
    ) -> Outcome[list[PackageMetadataRecord]]:
        """Fetch metadata records for every version of a package."""
        ...

    @abstractmethod
    async def fetch_version_metadata(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[PackageMetadataRecord]:
        """Fetch the metadata record of one package version."""
        ...

    @abstractmethod
    async def lookup_license_info(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[PackageLicenseInfo]:
        """Fetch the license provenance of one package version."""
        ...

    @abstractmethod
    async def fetch_content(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[BinaryIO]:
        """Download the package archive into a temporary file."""
        ...

    @abstractmethod
    async def fetch_manifest(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[BinaryIO]:
        """Download the package manifest into a temporary file."""
        ...

    async def list_versions(self, package_id: str) -> list[NuGetVersion]:
        """List all versions of a package, ordered ascending.

        Args:
            package_id: Package id (case-insensitive).

        Returns:
            Versions including unlisted ones, or an empty list if the package
            is unknown upstream or the lookup failed.
        """
        outcome = await self._guard(
            self.fetch_versions(package_id),
            "Failed to mirror %s's upstream versions",
            package_id,
        )
        return outcome.value_or([])

    async def list_metadata(self, package_id: str) -> list[PackageMetadataRecord]:
        """List translated metadata records for every version of a package.

        Args:
            package_id: Package id (case-insensitive).

        Returns:
            Metadata records, or an empty list if the package is unknown
            upstream or the lookup failed.
        """
        outcome = await self._guard(
            self.fetch_metadata(package_id),
            "Failed to mirror %s's upstream metadata",
            package_id,
        )
        return outcome.value_or([])

    async def get_metadata(
        self, package_id: str, version: NuGetVersion
    ) -> Optional[PackageMetadataRecord]:
        """Return the metadata record of one version, or None."""
        outcome = await self._guard(
            self.fetch_version_metadata(package_id, version),
            "Failed to mirror %s %s's upstream metadata",
            package_id,
            version,
        )
        return outcome.value_or(None)

    async def get_license_info(
        self, package_id: str, version: NuGetVersion
    ) -> Optional[PackageLicenseInfo]:
        """Return license provenance for one package version.

        Args:
            package_id: Package id (case-insensitive).
            version: Package version.

        Returns:
            PackageLicenseInfo, or None if the version does not exist upstream
            or the lookup failed.
        """
        outcome = await self.resolve_license_info(package_id, version)
        return outcome.value_or(None)

    async def resolve_license_info(
        self, package_id: str, version: NuGetVersion
    ) -> Outcome[PackageLicenseInfo]:
        """Return the license lookup outcome with failures logged.

        Unlike get_license_info, this keeps "not found" and "lookup failed"
        apart for callers that need to tell them apart. It never raises for
        upstream problems.
        """
        return await self._guard(
            self.lookup_license_info(package_id, version),
            "Failed to get license info for package %s %s",
            package_id,
            version,
        )

    async def download_content(
        self, package_id: str, version: NuGetVersion
    ) -> Optional[BinaryIO]:
        """Download a package archive.

        Returns:
            A rewound temporary file owned by the caller (close it when done),
            or None if the package is missing or the download failed.
        """
        outcome = await self._guard(
            self.fetch_content(package_id, version),
            "Failed to download %s %s from upstream",
            package_id,
            version,
        )
        return outcome.value_or(None)

    async def download_manifest(
        self, package_id: str, version: NuGetVersion
    ) -> Optional[BinaryIO]:
        """Download a package manifest (.nuspec).

        Returns:
            A rewound temporary file owned by the caller (close it when done),
            or None if the package is missing or the download failed.
        """
        outcome = await self._guard(
            self.fetch_manifest(package_id, version),
            "Failed to download the manifest of %s %s from upstream",
            package_id,
            version,
        )
        return outcome.value_or(None)

    async def _guard(self, call, message: str, *args) -> Outcome[T]:
        """Await an outcome-returning call, logging any failure.

        Unexpected exceptions are converted to TransientFailure so that no
        upstream problem escapes the public operations.
        """
        try:
            outcome = await call
        except Exception as e:
            outcome = TransientFailure(f"Unexpected error: {e!r}")

        if isinstance(outcome, TransientFailure):
            logger.error(message + " (%s): %s", *args, self.name, outcome.detail)
        elif isinstance(outcome, NotFound):
            logger.debug(
                "%s: %s not found upstream", self.name, " ".join(map(str, args))
            )
        return outcome
