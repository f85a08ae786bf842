"""
Release manifest model and version resolution.

This module provides the release manifest (versions mapped to per-platform
artifact descriptors), the parser for published manifest documents, and the
resolver that turns an install target ("latest" or an exact version) into a
concrete version and artifact for the current platform.

Manifests are fetched from the distribution host in online mode and cached on
disk after every successful fetch; offline mode reads only that cache.

Supported documents:

Release list (one document per platform, ``<base>/<platform>/list.json``)::

    {
        "builds": [
            {
                "name": "resolc-x86_64-unknown-linux-musl",
                "version": "0.1.0-dev.13",
                "longVersion": "0.1.0-dev.13+commit.ad331534",
                "url": "https://github.com/.../resolc-x86_64-unknown-linux-musl",
                "sha256": "14d7c165...",
                "firstSolcVersion": "0.8.0",
                "lastSolcVersion": "0.8.29"
            }
        ],
        "releases": {"0.1.0-dev.13": "resolc-x86_64-unknown-linux-musl+..."},
        "latestRelease": "0.1.0-dev.13"
    }

Generic mapping::

    {"versions": {"1.2.0": {"linux": {"url": "...", "sha256": "...", "size": 1024}}}}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from rvmkit.core.config import RvmConfig
from rvmkit.core.directory import CACHE_DIR
from rvmkit.core.download import SUPPORTED_ALGORITHMS, fetch_bytes
from rvmkit.core.exceptions import (
    InvalidVersionError,
    ManifestUnavailable,
    SolcVersionNotSupported,
    TransferError,
    VersionNotFound,
)
from rvmkit.core.filesystem import atomic_write
from rvmkit.core.platform import current_platform_key
from rvmkit.releases.version import Version

logger = logging.getLogger(__name__)

MIN_SOLC_VERSION = Version("0.8.0")

LATEST = "latest"


# ============================================================================
# Digest and Artifact Descriptor
# ============================================================================


@dataclass(frozen=True)
class Digest:
    """Expected content digest of an artifact."""

    algorithm: str
    value: str

    def __post_init__(self):
        """Validate and normalize the digest."""
        algorithm = self.algorithm.lower()
        value = self.value.strip().lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {self.algorithm}")
        if len(value) != SUPPORTED_ALGORITHMS[algorithm] or not all(
            c in "0123456789abcdef" for c in value
        ):
            raise ValueError(f"Invalid {algorithm} digest: {self.value!r}")
        object.__setattr__(self, "algorithm", algorithm)
        object.__setattr__(self, "value", value)

    @classmethod
    def parse(cls, text: str) -> "Digest":
        """
        Parse ``"<algorithm>:<hex>"`` or bare hex (sha256).

        Example:
            >>> Digest.parse("sha256:" + "ab" * 32).algorithm
            'sha256'
        """
        if ":" in text:
            algorithm, value = text.split(":", 1)
        else:
            algorithm, value = "sha256", text
        return cls(algorithm, value)

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.value}"


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Download information for one version on one platform."""

    name: str
    """File name of the binary inside its version directory"""

    url: str
    """Download URL"""

    digest: Digest
    """Expected digest of the downloaded bytes"""

    size: Optional[int] = None
    """Expected size in bytes, if published"""

    long_version: str = ""
    """Full version string including build metadata"""

    first_solc_version: Optional[Version] = None
    """First supported solc version"""

    last_solc_version: Optional[Version] = None
    """Last supported solc version"""

    def __post_init__(self):
        """Validate descriptor after initialization."""
        if not self.url:
            raise ValueError("URL cannot be empty")
        if not self.name or "/" in self.name or "\\" in self.name or self.name in (".", ".."):
            raise ValueError(f"Invalid artifact name: {self.name!r}")
        if self.size is not None and self.size < 0:
            raise ValueError("Size must not be negative")

    @property
    def solc_range(self) -> str:
        """Supported solc versions as a requirement string."""
        parts = []
        if self.first_solc_version:
            parts.append(f">={self.first_solc_version}")
        if self.last_solc_version:
            parts.append(f"<={self.last_solc_version}")
        return ", ".join(parts) if parts else f">={MIN_SOLC_VERSION}"

    def supports_solc(self, solc_version: Version) -> bool:
        """Whether this build supports compiling with ``solc_version``."""
        if solc_version < MIN_SOLC_VERSION:
            return False
        if self.first_solc_version and solc_version < self.first_solc_version:
            return False
        if self.last_solc_version and solc_version > self.last_solc_version:
            return False
        return True

    def check_solc_compat(self, solc_version: Version, resolc_version: Version):
        """
        Check compatibility between this build and a solc version.

        Raises:
            SolcVersionNotSupported: If ``solc_version`` is outside the supported range
        """
        if not self.supports_solc(solc_version):
            raise SolcVersionNotSupported(solc_version, resolc_version, self.solc_range)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "url": self.url,
            "digest": str(self.digest),
            "size": self.size,
            "long_version": self.long_version,
            "first_solc_version": (
                str(self.first_solc_version) if self.first_solc_version else None
            ),
            "last_solc_version": (
                str(self.last_solc_version) if self.last_solc_version else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArtifactDescriptor":
        """
        Create descriptor from a dictionary.

        Accepts both the ``to_dict`` form and manifest entries
        (``sha256``/``digest``, ``longVersion``, ``firstSolcVersion``...).

        Raises:
            KeyError, ValueError, InvalidVersionError: On malformed data
        """
        if "digest" in data:
            digest = Digest.parse(data["digest"])
        else:
            digest = Digest("sha256", data["sha256"])

        url = data["url"]
        name = data.get("name") or url.rstrip("/").rsplit("/", 1)[-1]
        first = data.get("first_solc_version") or data.get("firstSolcVersion")
        last = data.get("last_solc_version") or data.get("lastSolcVersion")
        size = data.get("size")

        return cls(
            name=name,
            url=url,
            digest=digest,
            size=int(size) if size is not None else None,
            long_version=data.get("long_version") or data.get("longVersion") or "",
            first_solc_version=Version(first) if first else None,
            last_solc_version=Version(last) if last else None,
        )


# ============================================================================
# Manifest
# ============================================================================


class Manifest:
    """
    Immutable mapping of versions to per-platform artifact descriptors.

    Example:
        >>> manifest = parse_manifest(data, "linux")
        >>> manifest.latest("linux")
        Version('0.1.0')
    """

    def __init__(self, entries: Dict[Version, Dict[str, ArtifactDescriptor]]):
        self._entries = {v: dict(platforms) for v, platforms in entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Version]:
        return iter(sorted(self._entries))

    def __contains__(self, version: object) -> bool:
        return version in self._entries

    def platforms(self) -> List[str]:
        """All platform keys that have at least one artifact."""
        return sorted({p for platforms in self._entries.values() for p in platforms})

    def versions(self, platform: str, include_prereleases: bool = True) -> List[Version]:
        """
        Versions available for ``platform`` in ascending order.

        Args:
            platform: Platform key
            include_prereleases: Whether to include pre-release versions
        """
        return sorted(
            version
            for version, platforms in self._entries.items()
            if platform in platforms
            and (include_prereleases or not version.is_prerelease)
        )

    def get(self, version: Version, platform: str) -> ArtifactDescriptor:
        """
        Look up the artifact for a version and platform.

        Raises:
            VersionNotFound: If the manifest has no such entry
        """
        descriptor = self._entries.get(version, {}).get(platform)
        if descriptor is None:
            raise VersionNotFound(str(version), platform)
        return descriptor

    def latest(self, platform: str, include_prereleases: bool = False) -> Version:
        """
        Highest version available for ``platform``.

        Pre-releases are excluded unless ``include_prereleases`` is set.

        Raises:
            VersionNotFound: If no eligible version exists
        """
        versions = self.versions(platform, include_prereleases=include_prereleases)
        if not versions:
            raise VersionNotFound(LATEST, platform)
        return versions[-1]


def _parse_release_list(data: Dict[str, Any], platform: str) -> Manifest:
    released = None
    if isinstance(data.get("releases"), dict):
        released = set()
        for key in data["releases"]:
            try:
                released.add(Version(key))
            except InvalidVersionError:
                logger.warning(f"Skipping invalid release key in manifest: {key!r}")

    entries: Dict[Version, Dict[str, ArtifactDescriptor]] = {}
    for build in data.get("builds") or []:
        try:
            version = Version(build["version"])
            descriptor = ArtifactDescriptor.from_dict(build)
        except (KeyError, TypeError, ValueError, InvalidVersionError) as e:
            logger.warning(f"Skipping malformed build entry in manifest: {e}")
            continue
        if released is not None and version not in released:
            logger.debug(f"Skipping unreleased build {version}")
            continue
        entries.setdefault(version, {})[platform] = descriptor

    return Manifest(entries)


def _parse_version_mapping(data: Dict[str, Any]) -> Manifest:
    entries: Dict[Version, Dict[str, ArtifactDescriptor]] = {}
    versions = data.get("versions")
    if not isinstance(versions, dict):
        raise ManifestUnavailable("Invalid manifest: 'versions' must be a mapping")

    for version_str, platforms in versions.items():
        try:
            version = Version(version_str)
        except InvalidVersionError:
            logger.warning(f"Skipping invalid version in manifest: {version_str!r}")
            continue
        if not isinstance(platforms, dict):
            logger.warning(f"Skipping malformed entry for {version_str} in manifest")
            continue
        for platform, entry in platforms.items():
            try:
                descriptor = ArtifactDescriptor.from_dict(entry)
            except (KeyError, TypeError, ValueError, InvalidVersionError) as e:
                logger.warning(
                    f"Skipping malformed artifact {version_str}/{platform}: {e}"
                )
                continue
            entries.setdefault(version, {})[platform] = descriptor

    return Manifest(entries)


def parse_manifest(
    document: Union[bytes, str, Dict[str, Any]], platform: str, source: str = ""
) -> Manifest:
    """
    Parse a manifest document.

    Args:
        document: Raw JSON bytes/text or an already decoded dictionary
        platform: Platform key the document was published for (release lists)
        source: URL or path, used in error messages

    Returns:
        Parsed Manifest

    Raises:
        ManifestUnavailable: If the document is not valid JSON or has an
            unknown structure
    """
    if isinstance(document, (bytes, str)):
        try:
            data = json.loads(document)
        except ValueError as e:
            raise ManifestUnavailable(
                f"Invalid JSON in manifest {source}: {e}", source=source
            ) from e
    else:
        data = document

    if not isinstance(data, dict):
        raise ManifestUnavailable(f"Invalid manifest structure in {source}", source=source)

    if "builds" in data:
        return _parse_release_list(data, platform)
    if "versions" in data:
        return _parse_version_mapping(data)

    raise ManifestUnavailable(
        f"Invalid manifest structure in {source}: expected 'builds' or 'versions'",
        source=source,
    )


# ============================================================================
# Install Targets
# ============================================================================


@dataclass(frozen=True)
class InstallTarget:
    """An install request: an exact version or the latest stable release."""

    version: Optional[Version] = None

    @property
    def is_latest(self) -> bool:
        return self.version is None

    def __str__(self) -> str:
        return LATEST if self.version is None else str(self.version)


def parse_install_target(text: Union[str, Version]) -> InstallTarget:
    """
    Parse ``"latest"`` or an exact version string.

    Raises:
        InvalidVersionError: If the text is neither
    """
    if isinstance(text, Version):
        return InstallTarget(text)
    if text.strip().lower() == LATEST:
        return InstallTarget()
    return InstallTarget(Version(text))


# ============================================================================
# Resolver
# ============================================================================


class ManifestResolver:
    """
    Resolves install targets against the release manifest.

    Each resolver keeps the manifests it has loaded for the lifetime of the
    process; :meth:`refresh` replaces a cached manifest wholesale.

    Example:
        >>> resolver = ManifestResolver(config, data_dir)
        >>> version, descriptor = resolver.resolve(parse_install_target("latest"))
    """

    def __init__(
        self,
        config: RvmConfig,
        data_dir: Path,
        offline: Optional[bool] = None,
        platform: Optional[str] = None,
    ):
        """
        Initialize resolver.

        Args:
            config: Runtime configuration (manifest URL, timeouts)
            data_dir: Data directory holding the manifest cache
            offline: Force offline mode (default: ``config.offline``)
            platform: Platform key (default: detected platform)
        """
        self.config = config
        self.cache_dir = Path(data_dir) / CACHE_DIR
        self.offline = config.offline if offline is None else offline
        self._platform = platform
        self._manifests: Dict[str, Manifest] = {}

    @property
    def platform(self) -> str:
        """Platform key used when none is passed explicitly."""
        if self._platform is None:
            self._platform = current_platform_key()
        return self._platform

    def manifest_url(self, platform: str) -> str:
        """URL of the release list for ``platform``."""
        return f"{self.config.manifest_url}/{platform}/list.json"

    def cache_path(self, platform: str) -> Path:
        """Path of the cached manifest for ``platform``."""
        return self.cache_dir / f"manifest-{platform}.json"

    def load(self, platform: Optional[str] = None, offline: Optional[bool] = None) -> Manifest:
        """
        Return the manifest for ``platform``, loading it on first use.

        Raises:
            ManifestUnavailable: If it can be neither fetched nor read from cache
        """
        platform = platform or self.platform
        offline = self.offline if offline is None else offline

        manifest = self._manifests.get(platform)
        if manifest is None:
            if offline:
                manifest = self._load_cached(platform)
            else:
                manifest = self._fetch(platform)
            self._manifests[platform] = manifest
        return manifest

    def refresh(self, platform: Optional[str] = None) -> Manifest:
        """Discard the in-memory manifest and load it again."""
        platform = platform or self.platform
        self._manifests.pop(platform, None)
        return self.load(platform)

    def _fetch(self, platform: str) -> Manifest:
        url = self.manifest_url(platform)
        try:
            raw = fetch_bytes(url, timeout=self.config.manifest_timeout)
        except TransferError as e:
            raise ManifestUnavailable(
                f"Could not fetch release manifest from {url}: {e}", source=url
            ) from e

        manifest = parse_manifest(raw, platform, source=url)
        logger.debug(f"Fetched manifest with {len(manifest)} versions from {url}")
        self._write_cache(platform, raw)
        return manifest

    def _write_cache(self, platform: str, raw: bytes):
        path = self.cache_path(platform)
        try:
            atomic_write(path, raw)
            logger.debug(f"Cached manifest at {path}")
        except OSError as e:
            logger.warning(f"Could not update manifest cache {path}: {e}")

    def _load_cached(self, platform: str) -> Manifest:
        path = self.cache_path(platform)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise ManifestUnavailable(
                f"No cached release manifest for {platform} at {path}; "
                f"run once without --offline",
                source=str(path),
            ) from None
        except OSError as e:
            raise ManifestUnavailable(
                f"Could not read cached manifest {path}: {e}", source=str(path)
            ) from e

        logger.debug(f"Using cached manifest {path}")
        return parse_manifest(raw, platform, source=str(path))

    def available(
        self, platform: Optional[str] = None, include_prereleases: bool = True
    ) -> List[Tuple[Version, ArtifactDescriptor]]:
        """
        Versions published for ``platform`` with their artifacts, ascending.

        Raises:
            ManifestUnavailable: If no manifest can be loaded
        """
        platform = platform or self.platform
        manifest = self.load(platform)
        return [
            (version, manifest.get(version, platform))
            for version in manifest.versions(platform, include_prereleases)
        ]

    def resolve(
        self,
        target: InstallTarget,
        platform: Optional[str] = None,
        offline: Optional[bool] = None,
    ) -> Tuple[Version, ArtifactDescriptor]:
        """
        Resolve an install target to a concrete version and artifact.

        Args:
            target: Exact version or latest
            platform: Platform key (default: detected platform)
            offline: Override the resolver's mode for this call

        Returns:
            Tuple of (version, artifact descriptor)

        Raises:
            ManifestUnavailable: If no manifest can be loaded
            VersionNotFound: If the version (or any stable version) is missing
            PlatformUnsupported: If the running platform has no artifacts
        """
        platform = platform or self.platform
        manifest = self.load(platform, offline=offline)

        version = manifest.latest(platform) if target.is_latest else target.version
        descriptor = manifest.get(version, platform)
        logger.debug(f"Resolved {target} to {version} ({descriptor.url})")
        return version, descriptor
