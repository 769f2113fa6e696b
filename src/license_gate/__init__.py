"""License Gate - license-aware mirroring of NuGet V3 package feeds.

This package provides a fail-soft mirror client for remote package feeds and
a license policy that blocks packages with disallowed licenses before their
content, manifest or registration metadata is served.
"""

__version__ = "0.1.0"
__author__ = "License Gate Contributors"

from license_gate.models import (
    BlockDecision,
    DependencyGroup,
    PackageDependency,
    PackageIdentity,
    PackageLicenseInfo,
    PackageMetadataRecord,
)
from license_gate.policy import LicensePolicy, MirrorPolicyConfig
from license_gate.serving import BlockedPackage, Denied, PackageGate, Served
from license_gate.upstream import V3UpstreamClient
from license_gate.versioning import NuGetVersion

__all__ = [
    "__version__",
    "BlockDecision",
    "BlockedPackage",
    "Denied",
    "DependencyGroup",
    "LicensePolicy",
    "MirrorPolicyConfig",
    "NuGetVersion",
    "PackageDependency",
    "PackageGate",
    "PackageIdentity",
    "PackageLicenseInfo",
    "PackageMetadataRecord",
    "Served",
    "V3UpstreamClient",
]
