"""Block signal and the serving contract.

Entry points that hand out package bytes, manifests or registration leaves
run their lookup through a PackageGate. The gate consults the license policy
first and returns a tagged result: ``Served(payload)`` or
``Denied(blocked)``. Every entry point turns a denial into the same HTTP 403
response via ``denial_response``.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

from fastapi import status
from fastapi.responses import JSONResponse

from license_gate.policy import LicensePolicy
from license_gate.versioning import NuGetVersion

T = TypeVar("T")

BLOCK_ERROR = "Package blocked by organization due to license issue"
BLOCK_REASON_HEADER = "X-Package-Block-Reason"
BLOCK_MESSAGE_HEADER = "X-Package-Block-Message"


@dataclass(frozen=True)
class BlockedPackage:
    """A policy denial for one package version.

    Attributes:
        package_id: Id of the blocked package.
        package_version: Version of the blocked package.
        reason: Why the policy blocked it.
    """

    package_id: str
    package_version: NuGetVersion
    reason: str

    @property
    def message(self) -> str:
        return (
            f"Package {self.package_id} {self.package_version} is blocked by "
            f"organization due to license issue: {self.reason}"
        )

    def to_dict(self) -> dict[str, str]:
        """Return the JSON body of the 403 response."""
        return {
            "error": BLOCK_ERROR,
            "message": self.message,
            "packageId": self.package_id,
            "packageVersion": str(self.package_version),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Served(Generic[T]):
    """The policy allowed the package; payload is None when it was not found."""

    payload: Optional[T]


@dataclass(frozen=True)
class Denied:
    """The policy blocked the package."""

    blocked: BlockedPackage


GateResult = Union[Served[T], Denied]


class PackageGate:
    """Runs package lookups behind the license policy."""

    def __init__(self, policy: LicensePolicy) -> None:
        self.policy = policy

    async def serve(
        self,
        package_id: str,
        version: NuGetVersion,
        fetch: Callable[[], Awaitable[Optional[T]]],
    ) -> GateResult[T]:
        """Evaluate the policy, then fetch the payload if allowed.

        Args:
            package_id: Package id requested by the client.
            version: Package version requested by the client.
            fetch: Coroutine factory producing the payload. It is not called
                when the package is blocked.

        Returns:
            Denied when the policy blocks the package, Served otherwise.
        """
        decision = await self.policy.evaluate(package_id, version)
        if decision.blocked:
            return Denied(BlockedPackage(package_id, version, decision.reason))
        return Served(await fetch())


def _header_value(text: str) -> str:
    # Header values must be single-line latin-1.
    text = " ".join(text.splitlines())
    return text.encode("latin-1", "replace").decode("latin-1")


def denial_response(blocked: BlockedPackage) -> JSONResponse:
    """Build the 403 response for a blocked package."""
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=blocked.to_dict(),
        headers={
            BLOCK_REASON_HEADER: _header_value(blocked.reason),
            BLOCK_MESSAGE_HEADER: _header_value(blocked.message),
        },
    )
