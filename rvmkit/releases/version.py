"""
Semantic version parsing and ordering.

Versions follow Semantic Versioning 2.0: ``major.minor.patch`` with an
optional ``-prerelease`` and ``+build`` suffix. Ordering follows SemVer
precedence; build metadata is kept for display but ignored when comparing.
"""

import re
from typing import Tuple

from rvmkit.core.exceptions import InvalidVersionError

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$",
    re.ASCII,
)


class Version:
    """
    Semantic version parser and comparator.

    Examples: "0.1.0", "1.2.0-rc.1", "0.1.0-dev.13+commit.ad33153"

    Example:
        >>> Version("1.2.0-rc.1") < Version("1.2.0")
        True
        >>> Version("1.2.0").is_prerelease
        False
    """

    __slots__ = ("major", "minor", "patch", "prerelease", "build")

    def __init__(self, version_string: str):
        """
        Parse version string.

        Args:
            version_string: Version such as "1.2.3", "v1.2.3-rc.1" or "1.2.3+build.5"

        Raises:
            InvalidVersionError: If the string is not a semantic version
        """
        match = _SEMVER_RE.match(version_string.strip()) if version_string else None
        if not match:
            raise InvalidVersionError(
                f"Invalid version format: {version_string!r}. "
                f"Expected format: major.minor.patch[-prerelease][+build]"
            )

        pre = match.group("pre")
        if pre:
            for part in pre.split("."):
                if part.isdigit() and len(part) > 1 and part.startswith("0"):
                    raise InvalidVersionError(
                        f"Invalid version format: {version_string!r}. "
                        f"Numeric pre-release identifiers must not have leading zeros"
                    )

        object.__setattr__(self, "major", int(match.group("major")))
        object.__setattr__(self, "minor", int(match.group("minor")))
        object.__setattr__(self, "patch", int(match.group("patch")))
        object.__setattr__(self, "prerelease", tuple(pre.split(".")) if pre else ())
        object.__setattr__(self, "build", match.group("build") or "")

    def __setattr__(self, name, value):
        raise AttributeError("Version is immutable")

    def __reduce__(self):
        return (Version, (str(self),))

    @property
    def is_prerelease(self) -> bool:
        """Whether this version carries a pre-release tag."""
        return bool(self.prerelease)

    @property
    def core(self) -> Tuple[int, int, int]:
        """The ``(major, minor, patch)`` triple."""
        return (self.major, self.minor, self.patch)

    def without_build(self) -> "Version":
        """This version with build metadata dropped."""
        if not self.build:
            return self
        return Version(str(self).split("+", 1)[0])

    def _key(self):
        # A release sorts after all of its pre-releases
        if not self.prerelease:
            return (self.core, 1, ())
        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease
        )
        return (self.core, 0, identifiers)

    def __eq__(self, other: object) -> bool:
        """Equality ignores build metadata."""
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __le__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() <= other._key()

    def __gt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() > other._key()

    def __ge__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() >= other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        """String representation."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def __repr__(self) -> str:
        """Developer representation."""
        return f"Version('{self}')"

