"""
On-disk version store.

The store owns every piece of persisted state: one directory per installed
version and the default-version pointer. It is the only component that writes
them, and every write follows the same discipline:

- mutations run under the exclusive store lock for their whole duration;
- a version directory is fully populated under a hidden sibling name and
  published with one atomic rename;
- a version directory is removed by renaming it to a hidden trash name before
  deleting it;
- the default pointer is replaced with write-temp-then-rename.

Readers take no lock. Because every change becomes visible through a single
rename, a reader always observes either the state before a mutation or the
state after it.

Example:
    >>> store = VersionStore(data_dir)
    >>> installed = store.install(Version("0.1.0"), staged)
    >>> store.set_default(installed.version)
    >>> store.resolve_binary()
    PosixPath('/home/user/.rvm/0.1.0/resolc-x86_64-unknown-linux-musl')
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rvmkit.core.directory import DEFAULT_POINTER, ensure_data_dir
from rvmkit.core.download import StreamingHasher, CHUNK_SIZE
from rvmkit.core.exceptions import (
    IntegrityError,
    InvalidVersionError,
    NoDefaultSet,
    StoreError,
    VersionNotInstalled,
)
from rvmkit.core.filesystem import (
    FilesystemError,
    atomic_write,
    discard_directory,
    is_executable,
    make_executable,
    make_sibling_temp_dir,
    move_to_trash,
    publish_directory,
    safe_rmtree,
    sweep_transient_dirs,
)
from rvmkit.core.locking import StoreLock
from rvmkit.releases.fetcher import StagedArtifact
from rvmkit.releases.manifest import ArtifactDescriptor, Digest
from rvmkit.releases.version import Version

logger = logging.getLogger(__name__)

RECORD_FILE = "install.json"
RECORD_FORMAT = 1


@dataclass
class InstalledVersion:
    """
    A version present in the store.

    Attributes:
        version: Installed version
        path: Path to the installed binary
        digest: Digest of the installed bytes
        installed_at: ISO 8601 timestamp of installation
        artifact: Descriptor the binary was installed from, if recorded
    """

    version: Version
    path: Path
    digest: Digest
    installed_at: str = ""
    artifact: Optional[ArtifactDescriptor] = None

    @property
    def name(self) -> str:
        """File name of the installed binary."""
        return self.path.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "format": RECORD_FORMAT,
            "version": str(self.version),
            "name": self.name,
            "digest": str(self.digest),
            "installed_at": self.installed_at,
            "artifact": self.artifact.to_dict() if self.artifact else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], version_dir: Path) -> "InstalledVersion":
        """
        Create record from its JSON form.

        Raises:
            KeyError, TypeError, ValueError, InvalidVersionError: On malformed data
        """
        name = data["name"]
        if "/" in name or "\\" in name or name in ("", ".", ".."):
            raise ValueError(f"Invalid binary name in record: {name!r}")

        artifact = data.get("artifact")
        return cls(
            version=Version(data["version"]),
            path=version_dir / name,
            digest=Digest.parse(data["digest"]),
            installed_at=data.get("installed_at", ""),
            artifact=ArtifactDescriptor.from_dict(artifact) if artifact else None,
        )


def _copy_verified(source: Path, destination: Path, digest: Digest) -> None:
    """Copy ``source`` to ``destination``, failing if the bytes do not match ``digest``."""
    hasher = StreamingHasher(digest.algorithm)
    with open(source, "rb") as src, open(destination, "wb") as dst:
        while chunk := src.read(CHUNK_SIZE):
            hasher.update(chunk)
            dst.write(chunk)
        dst.flush()

    if not hasher.verify(digest.value):
        raise IntegrityError(
            f"Staged artifact {source} no longer matches {digest} "
            f"(got {digest.algorithm}:{hasher.finalize()}); refusing to install"
        )


class VersionStore:
    """
    Directory of installed versions plus the default-version pointer.

    Attributes:
        root: Store root directory
        lock: Exclusive cross-process lock guarding mutations
    """

    def __init__(self, root: Path, lock_timeout: float = 30):
        """
        Initialize version store.

        Args:
            root: Store root directory (created if missing)
            lock_timeout: Seconds to wait for the store lock
        """
        self.root = ensure_data_dir(Path(root))
        self.lock = StoreLock(self.root, timeout=lock_timeout)
        self.pointer_path = self.root / DEFAULT_POINTER

    # ------------------------------------------------------------------
    # Read-only operations
    # ------------------------------------------------------------------

    def version_dir(self, version: Version) -> Path:
        """Directory that holds ``version`` once installed."""
        return self.root / str(version.without_build())

    def _read_record(self, version_dir: Path) -> Optional[InstalledVersion]:
        record_path = version_dir / RECORD_FILE
        try:
            data = json.loads(record_path.read_text(encoding="utf-8"))
            return InstalledVersion.from_dict(data, version_dir)
        except FileNotFoundError:
            return None
        except (OSError, KeyError, TypeError, ValueError, InvalidVersionError) as e:
            logger.warning(f"Ignoring unreadable install record {record_path}: {e}")
            return None

    def list(self) -> List[InstalledVersion]:
        """
        List installed versions in ascending order.

        Hidden entries, files, directories not named after a version and
        directories without a valid install record are ignored.
        """
        installed = []
        try:
            entries = list(self.root.iterdir())
        except OSError as e:
            raise StoreError(f"Failed to read store directory {self.root}: {e}") from e

        for entry in entries:
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            try:
                version = Version(entry.name)
            except InvalidVersionError:
                continue

            record = self._read_record(entry)
            if record is None or record.version != version:
                continue
            installed.append(record)

        return sorted(installed, key=lambda record: record.version)

    def get(self, version: Version) -> InstalledVersion:
        """
        Return the install record of ``version``.

        Raises:
            VersionNotInstalled: If the version is not installed
        """
        version_dir = self.version_dir(version)
        record = self._read_record(version_dir) if version_dir.is_dir() else None
        if record is None or record.version != version:
            raise VersionNotInstalled(version)
        return record

    def is_installed(self, version: Version) -> bool:
        """Whether ``version`` is installed."""
        try:
            self.get(version)
        except VersionNotInstalled:
            return False
        return True

    def get_default(self) -> Optional[Version]:
        """
        Read the default-version pointer.

        Returns:
            The default version, or None if unset

        Raises:
            StoreError: If the pointer file exists but cannot be read or parsed
        """
        try:
            text = self.pointer_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Failed to read default pointer {self.pointer_path}: {e}")

        text = text.strip().strip("/")
        if not text:
            return None
        try:
            return Version(text)
        except InvalidVersionError as e:
            raise StoreError(
                f"Default pointer {self.pointer_path} is corrupted: {text!r}"
            ) from e

    def resolve_binary(self, version: Optional[Version] = None) -> Path:
        """
        Locate the binary to run.

        Args:
            version: Explicit version, or None to use the default pointer

        Returns:
            Path to the installed binary

        Raises:
            NoDefaultSet: If no version is given and no default is set
            VersionNotInstalled: If the version is missing or its binary is
                missing or not executable
        """
        if version is None:
            version = self.get_default()
            if version is None:
                raise NoDefaultSet()

        record = self.get(version)
        if not is_executable(record.path):
            raise VersionNotInstalled(
                version, detail=f"binary missing or not executable at {record.path}"
            )
        return record.path

    # ------------------------------------------------------------------
    # Mutating operations (all under the store lock)
    # ------------------------------------------------------------------

    def _sweep(self):
        removed = sweep_transient_dirs(self.root)
        if removed:
            logger.info(f"Removed {removed} leftover temporary director(ies) from {self.root}")

    def install(self, version: Version, staged: StagedArtifact) -> InstalledVersion:
        """
        Install a verified artifact as ``version``.

        Installing a version that is already present with the same digest is a
        no-op that returns the existing record.

        Args:
            version: Version being installed
            staged: Verified artifact from the fetcher

        Returns:
            InstalledVersion record

        Raises:
            IntegrityError: If the version is installed with a different
                digest, or the staged bytes no longer match their digest
            StoreLocked: If the store lock can't be acquired
            StoreError: If the filesystem operations fail
        """
        version_dir = self.version_dir(version)

        with self.lock:
            self._sweep()

            if version_dir.exists():
                existing = self._read_record(version_dir)
                if existing is not None and existing.path.is_file():
                    if existing.digest == staged.digest:
                        logger.info(f"Resolc v{version} is already installed")
                        return existing
                    raise IntegrityError(
                        f"Resolc v{version} is already installed with digest "
                        f"{existing.digest}, refusing to replace it with "
                        f"{staged.digest}; remove it first"
                    )
                logger.warning(f"Discarding incomplete installation at {version_dir}")
                discard_directory(version_dir)

            record = InstalledVersion(
                version=version,
                path=version_dir / staged.descriptor.name,
                digest=staged.digest,
                installed_at=datetime.now().isoformat(),
                artifact=staged.descriptor,
            )

            temp_dir = make_sibling_temp_dir(version_dir)
            try:
                binary = temp_dir / staged.descriptor.name
                _copy_verified(staged.path, binary, staged.digest)
                make_executable(binary)
                atomic_write(
                    temp_dir / RECORD_FILE,
                    json.dumps(record.to_dict(), indent=2, ensure_ascii=False),
                )
                publish_directory(temp_dir, version_dir)
            except BaseException:
                safe_rmtree(temp_dir, require_prefix=self.root)
                raise

        logger.info(f"Installed Resolc v{version} at {version_dir}")
        return record

    def remove(self, version: Version) -> None:
        """
        Remove an installed version.

        If ``version`` is the default, the pointer is cleared; it is never
        moved to another version. A failure before the version directory is
        renamed away leaves both the version and the pointer untouched.

        Raises:
            VersionNotInstalled: If the version is not installed
            StoreLocked: If the store lock can't be acquired
            StoreError: If the version directory can't be moved aside
        """
        with self.lock:
            self._sweep()

            if not self.is_installed(version):
                raise VersionNotInstalled(version)

            version_dir = self.version_dir(version)
            was_default = self.get_default() == version

            trash = move_to_trash(version_dir)
            if was_default:
                try:
                    self._clear_pointer()
                except StoreError:
                    trash.rename(version_dir)
                    raise
                logger.info(f"Cleared default version (was {version})")

            try:
                safe_rmtree(trash, require_prefix=self.root)
            except FilesystemError as e:
                # Swept by the next mutation
                logger.warning(f"Could not delete {trash}: {e}")

        logger.info(f"Removed Resolc v{version}")

    def set_default(self, version: Version) -> None:
        """
        Make ``version`` the default.

        Raises:
            VersionNotInstalled: If the version is not installed
            StoreLocked: If the store lock can't be acquired
        """
        with self.lock:
            if not self.is_installed(version):
                raise VersionNotInstalled(version)
            atomic_write(self.pointer_path, str(version.without_build()))

        logger.info(f"Default version set to {version}")

    def clear_default(self) -> None:
        """Unset the default version."""
        with self.lock:
            self._clear_pointer()

    def _clear_pointer(self):
        try:
            self.pointer_path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to clear default pointer: {e}") from e
