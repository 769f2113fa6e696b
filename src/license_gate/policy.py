"""License block policy.

Decides, per package version, whether the mirror may serve it. Two
independent rule families are checked in a fixed order, first match wins:

1. Blocked license expressions: case-insensitive substring test against the
   package's SPDX license expression, so "AGPL-3.0" also catches
   "AGPL-3.0-only" and "AGPL-3.0-or-later".
2. Blocked license URL patterns: wildcard test against the license URL.

The policy fails open. When license information cannot be determined, or the
evaluation itself breaks, the package is allowed.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from license_gate.models import BlockDecision, PackageLicenseInfo
from license_gate.outcome import NotFound, TransientFailure
from license_gate.upstream.base import BaseUpstreamClient
from license_gate.versioning import NuGetVersion

logger = logging.getLogger(__name__)


def _normalize_rules(rules: Optional[Iterable[str]]) -> tuple[str, ...]:
    if rules is None:
        return ()
    if isinstance(rules, str):
        rules = [rules]
    cleaned = (rule.strip() for rule in rules if isinstance(rule, str))
    return tuple(dict.fromkeys(rule for rule in cleaned if rule))


@dataclass(frozen=True)
class MirrorPolicyConfig:
    """License block lists.

    Both lists keep their configured order (it decides which rule is
    reported when several match), drop duplicates and blank entries. With
    both lists empty the policy is disabled.

    Attributes:
        blocked_license_expressions: License expression fragments to block.
        blocked_license_url_patterns: License URL wildcard patterns to block.
    """

    blocked_license_expressions: tuple[str, ...] = ()
    blocked_license_url_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "blocked_license_expressions",
            _normalize_rules(self.blocked_license_expressions),
        )
        object.__setattr__(
            self,
            "blocked_license_url_patterns",
            _normalize_rules(self.blocked_license_url_patterns),
        )

    @property
    def is_enabled(self) -> bool:
        return bool(self.blocked_license_expressions or self.blocked_license_url_patterns)


def matches_pattern(text: str, pattern: str) -> bool:
    """Match text against a license URL pattern, ignoring case.

    A pattern without "*" is a plain substring test. A pattern with "*" must
    match the whole text, "*" standing for any run of characters. The two
    behave differently: "a*b" does not match "xaxbx", while "axb" as a
    substring does.

    Args:
        text: License URL to test.
        pattern: Pattern from the block list.

    Returns:
        True if the text matches. An empty pattern never matches.
    """
    if not pattern:
        return False

    pattern_lower = pattern.lower()
    text_lower = text.lower()

    if pattern_lower == "*":
        return True

    if "*" not in pattern_lower:
        return pattern_lower in text_lower

    regex = re.escape(pattern_lower).replace(r"\*", ".*")
    return re.fullmatch(regex, text_lower) is not None


class LicensePolicy:
    """Evaluates the license block lists against upstream license info.

    Attributes:
        upstream: Mirror client used to look up license information.
        config: Block lists to enforce.
    """

    def __init__(self, upstream: BaseUpstreamClient, config: MirrorPolicyConfig) -> None:
        self.upstream = upstream
        self.config = config

    async def evaluate(self, package_id: str, version: NuGetVersion) -> BlockDecision:
        """Decide whether a package version must be blocked.

        Args:
            package_id: Package id (case-insensitive).
            version: Package version.

        Returns:
            A blocking BlockDecision with a reason, or an allowing one. Never
            raises for upstream or internal problems.
        """
        if not self.config.is_enabled:
            return BlockDecision.allow()

        try:
            outcome = await self.upstream.resolve_license_info(package_id, version)

            # Unknown license info never blocks.
            if isinstance(outcome, (NotFound, TransientFailure)):
                logger.warning(
                    "Could not retrieve license information for package %s %s "
                    "to check license. Allowing download.",
                    package_id,
                    version,
                )
                return BlockDecision.allow()

            return self._check(package_id, version, outcome.value)

        except Exception as e:
            logger.error(
                "Error checking license for package %s %s. Allowing download: %s",
                package_id,
                version,
                e,
            )
            return BlockDecision.allow()

    async def is_blocked(self, package_id: str, version: NuGetVersion) -> bool:
        """Return True if the package version must not be served."""
        return (await self.evaluate(package_id, version)).blocked

    async def get_blocked_reason(
        self, package_id: str, version: NuGetVersion
    ) -> Optional[str]:
        """Return why the package version is blocked, or None if it is not."""
        return (await self.evaluate(package_id, version)).reason

    def _check(
        self, package_id: str, version: NuGetVersion, info: PackageLicenseInfo
    ) -> BlockDecision:
        expression = info.license_expression
        if expression:
            expression_lower = expression.lower()
            for blocked in self.config.blocked_license_expressions:
                if blocked.lower() in expression_lower:
                    logger.warning(
                        "Package %s %s has blocked license expression: %s (blocked: %s)",
                        package_id,
                        version,
                        expression,
                        blocked,
                    )
                    return BlockDecision.block(
                        f"Package {package_id} {version} has blocked license "
                        f"expression '{expression}' (blocked: '{blocked}')"
                    )

        url = info.license_url
        if url:
            for pattern in self.config.blocked_license_url_patterns:
                if matches_pattern(url, pattern):
                    logger.warning(
                        "Package %s %s has blocked license URL pattern: %s (matched pattern: %s)",
                        package_id,
                        version,
                        url,
                        pattern,
                    )
                    return BlockDecision.block(
                        f"Package {package_id} {version} has license URL "
                        f"'{url}' matching blocked pattern '{pattern}'"
                    )

        return BlockDecision.allow()
