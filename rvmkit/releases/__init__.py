"""
Release metadata: versions, manifests and verified artifact downloads.
"""

from .version import Version

from .manifest import (
    LATEST,
    MIN_SOLC_VERSION,
    ArtifactDescriptor,
    Digest,
    InstallTarget,
    Manifest,
    ManifestResolver,
    parse_install_target,
    parse_manifest,
)

from .fetcher import ArtifactFetcher, StagedArtifact

__all__ = [
    # Version
    "Version",
    # Manifest
    "LATEST",
    "MIN_SOLC_VERSION",
    "ArtifactDescriptor",
    "Digest",
    "InstallTarget",
    "Manifest",
    "ManifestResolver",
    "parse_install_target",
    "parse_manifest",
    # Fetcher
    "ArtifactFetcher",
    "StagedArtifact",
]
