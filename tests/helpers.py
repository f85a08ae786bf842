"""
Builders for fake releases, manifests and artifacts used across the tests.
"""

import hashlib

from rvmkit.releases.manifest import ArtifactDescriptor, Digest

BASE_URL = "https://example.com/resolc-bin"
PLATFORM = "linux"
BINARY_NAME = "resolc-x86_64-unknown-linux-musl"
MANIFEST_URL = f"{BASE_URL}/{PLATFORM}/list.json"


def binary_content(version: str) -> bytes:
    """Fake compiler binary whose bytes depend on the version."""
    return f"#!/bin/sh\necho 'resolc {version}'\n".encode()


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def artifact_url(version: str) -> str:
    return f"https://example.com/releases/v{version}/{BINARY_NAME}"


def make_descriptor(version: str, content: bytes = None, **kwargs) -> ArtifactDescriptor:
    """Build a descriptor matching ``content`` (default: ``binary_content(version)``)."""
    content = binary_content(version) if content is None else content
    return ArtifactDescriptor(
        name=kwargs.pop("name", BINARY_NAME),
        url=kwargs.pop("url", artifact_url(version)),
        digest=Digest("sha256", sha256_hex(content)),
        size=kwargs.pop("size", len(content)),
        **kwargs,
    )


def build_entry(version: str, content: bytes = None, **extra) -> dict:
    """One ``builds`` entry of a release list."""
    content = binary_content(version) if content is None else content
    entry = {
        "name": BINARY_NAME,
        "version": version,
        "longVersion": f"{version}+commit.ad331534",
        "url": artifact_url(version),
        "sha256": sha256_hex(content),
        "firstSolcVersion": "0.8.0",
        "lastSolcVersion": "0.8.29",
    }
    entry.update(extra)
    return entry


def release_list(*versions: str) -> dict:
    """A release list document publishing ``versions``."""
    return {
        "builds": [build_entry(v) for v in versions],
        "releases": {v: f"{BINARY_NAME}+v{v}" for v in versions},
        "latestRelease": versions[-1] if versions else None,
    }
