"""
Integrity-verified artifact downloads.

The fetcher streams an artifact into the staging area, hashing the bytes as
they arrive, and only publishes the staged file under its final staging name
once the digest matches. Bytes that fail verification are deleted and never
handed to the version store.

Staging layout (``<data_dir>/.staging``):
    <algorithm>-<hex>.*.part : download in progress
    <algorithm>-<hex>        : verified artifact awaiting installation
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rvmkit.core.directory import STAGING_DIR
from rvmkit.core.download import (
    DownloadProgress,
    StreamingHasher,
    hash_file,
    stream_to_file,
)
from rvmkit.core.exceptions import IntegrityError
from rvmkit.releases.manifest import ArtifactDescriptor, Digest

logger = logging.getLogger(__name__)


@dataclass
class StagedArtifact:
    """A downloaded artifact whose digest has been verified."""

    path: Path
    """Location of the verified bytes in the staging area"""

    digest: Digest
    """Verified digest"""

    size: int
    """Size in bytes"""

    descriptor: ArtifactDescriptor
    """Descriptor the bytes were verified against"""

    def discard(self):
        """Delete the staged file."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove staged artifact {self.path}: {e}")


class ArtifactFetcher:
    """
    Downloads artifacts and verifies them against their expected digest.

    This component never retries; transfer failures surface as
    ``TransferError`` and retry policy belongs to the caller.

    Example:
        >>> fetcher = ArtifactFetcher(data_dir)
        >>> staged = fetcher.fetch(descriptor)
        >>> store.install(version, staged)
    """

    def __init__(self, data_dir: Path, timeout: float = 300):
        """
        Initialize fetcher.

        Args:
            data_dir: Data directory containing the staging area
            timeout: Download timeout in seconds
        """
        self.staging_dir = Path(data_dir) / STAGING_DIR
        self.timeout = timeout

    def staged_path(self, digest: Digest) -> Path:
        """Final staging path for an artifact with ``digest``."""
        return self.staging_dir / f"{digest.algorithm}-{digest.value}"

    def _reuse_staged(self, descriptor: ArtifactDescriptor) -> Optional[StagedArtifact]:
        path = self.staged_path(descriptor.digest)
        if not path.is_file():
            return None

        actual = hash_file(path, descriptor.digest.algorithm)
        if actual != descriptor.digest.value:
            logger.warning(f"Discarding corrupt staged artifact {path}")
            path.unlink(missing_ok=True)
            return None

        logger.info(f"Using previously downloaded artifact {path.name}")
        return StagedArtifact(
            path=path,
            digest=descriptor.digest,
            size=path.stat().st_size,
            descriptor=descriptor,
        )

    def fetch(
        self,
        descriptor: ArtifactDescriptor,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> StagedArtifact:
        """
        Download and verify an artifact.

        Args:
            descriptor: Artifact to download
            progress_callback: Optional callback for progress updates

        Returns:
            StagedArtifact pointing at the verified bytes

        Raises:
            IntegrityError: If the digest or size does not match
            TransferError: If the download fails (retryable)
        """
        self.staging_dir.mkdir(parents=True, exist_ok=True)

        staged = self._reuse_staged(descriptor)
        if staged is not None:
            return staged

        final_path = self.staged_path(descriptor.digest)
        # Unique name so concurrent fetches of one artifact never share a file
        fd, part_name = tempfile.mkstemp(
            dir=self.staging_dir, prefix=f"{final_path.name}.", suffix=".part"
        )
        os.close(fd)
        part_path = Path(part_name)
        hasher = StreamingHasher(descriptor.digest.algorithm)

        try:
            size = stream_to_file(
                descriptor.url,
                part_path,
                hasher,
                expected_size=descriptor.size,
                progress_callback=progress_callback,
                timeout=self.timeout,
            )

            if not hasher.verify(descriptor.digest.value):
                raise IntegrityError(
                    f"Checksum validation failed for {descriptor.url}: "
                    f"expected {descriptor.digest}, "
                    f"got {descriptor.digest.algorithm}:{hasher.finalize()}"
                )

            part_path.replace(final_path)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise

        logger.info(f"Checksum verified for {descriptor.name}")
        return StagedArtifact(
            path=final_path, digest=descriptor.digest, size=size, descriptor=descriptor
        )
