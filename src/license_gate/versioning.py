"""NuGet package versions.

NuGet versions are SemVer 2.0.0 with two relaxations: the minor and patch
parts may be omitted, and a fourth "revision" part is allowed. This module
parses them into an immutable, comparable value that follows SemVer
precedence and ignores build metadata for equality.
"""

import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Optional

_LABELS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"

VERSION_PATTERN = re.compile(
    r"^(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:\.(?P<revision>\d+))?"
    rf"(?:-(?P<release>{_LABELS}))?"
    rf"(?:\+(?P<metadata>{_LABELS}))?$"
)


def _label_key(label: str) -> tuple[int, int, str]:
    # Numeric labels sort before alphanumeric ones.
    if label.isdigit():
        return (0, int(label), "")
    return (1, 0, label.lower())


@total_ordering
@dataclass(frozen=True, eq=False)
class NuGetVersion:
    """An immutable NuGet package version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        revision: Legacy fourth version part (0 when absent).
        release_labels: Prerelease labels (e.g. ("beta", "1")).
        metadata: Build metadata after "+", if any.
        original: The string this version was parsed from.
    """

    major: int
    minor: int = 0
    patch: int = 0
    revision: int = 0
    release_labels: tuple[str, ...] = ()
    metadata: Optional[str] = None
    original: Optional[str] = field(default=None, compare=False)

    @classmethod
    def parse(cls, text: str) -> "NuGetVersion":
        """Parse a version string.

        Args:
            text: Version string such as "1.0", "2.1.0-beta.1" or "1.0.0.4+sha".

        Returns:
            The parsed NuGetVersion.

        Raises:
            ValueError: If the text is not a valid NuGet version.
        """
        if not isinstance(text, str):
            raise ValueError(f"Invalid version: {text!r}")

        match = VERSION_PATTERN.match(text.strip())
        if match is None:
            raise ValueError(f"Invalid version: {text!r}")

        release = match.group("release")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            patch=int(match.group("patch") or 0),
            revision=int(match.group("revision") or 0),
            release_labels=tuple(release.split(".")) if release else (),
            metadata=match.group("metadata"),
            original=text.strip(),
        )

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["NuGetVersion"]:
        """Parse a version string, returning None instead of raising."""
        if text is None:
            return None
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release_labels)

    @property
    def is_semver2(self) -> bool:
        """True if the version needs SemVer 2.0.0 to be represented.

        That is the case for dotted prerelease labels and for build metadata.
        """
        return len(self.release_labels) > 1 or self.metadata is not None

    def to_normalized_string(self) -> str:
        """Return the normalized form used in feed URLs (no build metadata)."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.release_labels:
            text += "-" + ".".join(self.release_labels)
        return text

    def to_full_string(self) -> str:
        """Return the normalized form including build metadata."""
        if self.metadata:
            return f"{self.to_normalized_string()}+{self.metadata}"
        return self.to_normalized_string()

    def _sort_key(self) -> tuple:
        return (
            self.major,
            self.minor,
            self.patch,
            self.revision,
            # A release sorts above any of its prereleases.
            0 if self.release_labels else 1,
            tuple(_label_key(label) for label in self.release_labels),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __lt__(self, other: "NuGetVersion") -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __hash__(self) -> int:
        return hash(self._sort_key())

    def __str__(self) -> str:
        return self.to_normalized_string()
