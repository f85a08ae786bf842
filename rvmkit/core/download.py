"""
Network download primitives with progress tracking and streaming verification.

This module provides:
- HTTP/HTTPS streaming downloads with TLS verification
- Incremental hashing while bytes arrive
- Early size checks against an expected length
- Progress reporting (bytes, percentage, speed, ETA)
- Caller-driven retry with exponential backoff for transfer failures only

Downloads never retry on their own: a failed transfer raises ``TransferError``
carrying the URL and byte offset, and the caller decides whether to retry via
:func:`call_with_retries`.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

import requests
from requests.exceptions import RequestException

from rvmkit.core.exceptions import IntegrityError, TransferError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

SUPPORTED_ALGORITHMS = {"sha256": 64, "sha512": 128}

T = TypeVar("T")


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


class StreamingHasher:
    """Compute hash incrementally for streaming downloads."""

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha256', 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()

        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.hasher = hashlib.new(self.algorithm)

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """
        Check if computed hash matches expected value (constant-time).

        Args:
            expected_hash: Expected hash value (hex string)

        Returns:
            True if hashes match, False otherwise
        """
        return hmac.compare_digest(self.finalize(), expected_hash.lower())


def hash_file(file_path: Path, algorithm: str = "sha256") -> str:
    """
    Compute the hex digest of a file.

    Args:
        file_path: File to hash
        algorithm: Hash algorithm ('sha256', 'sha512')

    Returns:
        Hex digest string
    """
    hasher = StreamingHasher(algorithm)
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.finalize()


def fetch_bytes(url: str, timeout: float = 30) -> bytes:
    """
    GET a small document fully into memory.

    Args:
        url: URL to fetch
        timeout: Request timeout in seconds

    Returns:
        Response body

    Raises:
        TransferError: On connection failure, timeout or non-2xx status
    """
    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except RequestException as e:
        raise TransferError(f"Request failed: {e}", url=url) from e
    return response.content


def stream_to_file(
    url: str,
    destination: Path,
    hasher: StreamingHasher,
    expected_size: Optional[int] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: float = 300,
) -> int:
    """
    Stream ``url`` into ``destination`` while hashing the received bytes.

    The caller owns ``destination`` and is responsible for deleting it when
    this function raises.

    Args:
        url: URL to download
        destination: File to write (truncated)
        hasher: Hasher updated with every chunk
        expected_size: Expected total size in bytes, if known
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds

    Returns:
        Number of bytes written

    Raises:
        TransferError: On network failure, non-2xx status or a truncated body
        IntegrityError: If the size differs from ``expected_size``
    """
    logger.info(f"Downloading from {url}")
    downloaded = 0

    try:
        response = requests.get(url, stream=True, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except RequestException as e:
        raise TransferError(f"Request failed: {e}", url=url) from e

    with response:
        # Content-Length counts encoded bytes when the body is compressed
        encoded = response.headers.get("content-encoding", "identity") != "identity"
        content_length = None if encoded else response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        if expected_size is not None and total_size and total_size != expected_size:
            raise IntegrityError(
                f"Size mismatch for {url}: manifest lists {expected_size} bytes, "
                f"server announced {total_size}"
            )
        if not total_size and expected_size is not None:
            total_size = expected_size

        start_time = time.time()
        last_progress_time = start_time

        try:
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    hasher.update(chunk)
                    downloaded += len(chunk)

                    if expected_size is not None and downloaded > expected_size:
                        raise IntegrityError(
                            f"Received more than the expected {expected_size} bytes "
                            f"from {url}"
                        )

                    # Report progress (max once per 0.5 seconds to avoid spam)
                    current_time = time.time()
                    if progress_callback and (
                        current_time - last_progress_time >= 0.5
                        or downloaded == total_size
                    ):
                        progress_callback(
                            _progress(downloaded, total_size, current_time - start_time)
                        )
                        last_progress_time = current_time
                f.flush()
        except RequestException as e:
            raise TransferError(
                f"Connection lost: {e}", url=url, offset=downloaded
            ) from e

    if content_length and downloaded != int(content_length):
        raise TransferError(
            f"Transfer ended early, expected {content_length} bytes",
            url=url,
            offset=downloaded,
        )
    if expected_size is not None and downloaded < expected_size:
        raise TransferError(
            f"Transfer ended early, expected {expected_size} bytes",
            url=url,
            offset=downloaded,
        )

    logger.debug(f"Downloaded {downloaded} bytes to {destination}")
    return downloaded


def _progress(downloaded: int, total_size: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total_size - downloaded if total_size > 0 else 0
    eta = remaining / speed if speed > 0 else 0
    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total_size if total_size > 0 else downloaded,
        percentage=(downloaded / total_size * 100) if total_size > 0 else 0,
        speed_bps=speed,
        eta_seconds=eta,
    )


def call_with_retries(
    operation: Callable[[], T],
    attempts: int = 3,
    backoff: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``, retrying only on ``TransferError``.

    Args:
        operation: Callable to run
        attempts: Maximum number of attempts (>= 1)
        backoff: Base delay in seconds; attempt ``n`` waits ``backoff * 2**n``
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation's result

    Raises:
        TransferError: The last transfer failure once attempts are exhausted
        Exception: Any other error immediately, without retrying
    """
    for attempt in range(attempts):
        try:
            return operation()
        except TransferError as e:
            if attempt == attempts - 1:
                logger.error(f"Giving up after {attempts} attempts: {e}")
                raise

            backoff_seconds = backoff * 2**attempt
            logger.warning(
                f"Attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds:.1f}s..."
            )
            sleep(backoff_seconds)

    raise ValueError("attempts must be at least 1")


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Args:
        progress: Download progress information

    Returns:
        Formatted progress string

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        return f"{mb_downloaded:.1f} MB " f"at {speed_mbps:.1f} MB/s"
