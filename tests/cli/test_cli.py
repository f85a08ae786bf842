"""
Tests for the rvm command-line interface.

Commands run end to end against a mocked distribution host.
"""

from unittest.mock import patch

import pytest
import requests
import responses

from rvmkit.cli.parser import CLI
from rvmkit.core.exceptions import (
    EXIT_INTEGRITY,
    EXIT_LOCKED,
    EXIT_OK,
    EXIT_RESOLUTION,
    EXIT_TRANSFER,
    EXIT_USAGE,
)
from rvmkit.core.locking import StoreLock
from rvmkit.releases.version import Version
from rvmkit.store.store import VersionStore
from tests.helpers import (
    BASE_URL,
    BINARY_NAME,
    MANIFEST_URL,
    PLATFORM,
    artifact_url,
    binary_content,
    release_list,
)


@pytest.fixture
def home(tmp_path):
    """Data directory with a config pointing at the mocked host."""
    home = tmp_path / "rvm"
    home.mkdir()
    (home / "config.yaml").write_text(
        f"manifest_url: {BASE_URL}\nretry_backoff: 0\nlock_timeout: 0.2\n"
    )
    with patch("rvmkit.releases.manifest.current_platform_key", return_value=PLATFORM):
        yield home


def serve(*versions, content=None):
    """Register the manifest and artifacts for ``versions``."""
    responses.add(responses.GET, MANIFEST_URL, json=release_list(*versions))
    for version in versions:
        body = binary_content(version) if content is None else content
        responses.add(responses.GET, artifact_url(version), body=body)


def rvm(home, *args):
    return CLI().run(["--home", str(home), *args])


class TestParser:
    """Tests for argument parsing."""

    def test_no_command(self, capsys):
        """Test running without a command prints help and is a usage error."""
        assert CLI().run([]) == EXIT_USAGE
        assert "install" in capsys.readouterr().out

    def test_unknown_command(self):
        """Test argparse rejects unknown commands with exit code 2."""
        with pytest.raises(SystemExit) as exc_info:
            CLI().run(["frobnicate"])
        assert exc_info.value.code == EXIT_USAGE

    def test_install_options(self):
        """Test install arguments."""
        args = CLI().parse_args(["--offline", "install", "latest", "--set-default"])

        assert args.offline is True
        assert args.command == "install"
        assert args.version == "latest"
        assert args.set_default is True

    def test_which_version_optional(self):
        """Test which accepts no version."""
        assert CLI().parse_args(["which"]).version is None

    def test_version_flag(self, capsys):
        """Test --version prints the program version."""
        with pytest.raises(SystemExit) as exc_info:
            CLI().run(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("rvm ")


class TestInstall:
    """Tests for 'rvm install'."""

    @responses.activate
    def test_install_and_which(self, home, capsys):
        """Test installing a version makes it resolvable."""
        serve("0.1.0")

        assert rvm(home, "install", "0.1.0") == EXIT_OK
        assert rvm(home, "which", "0.1.0") == EXIT_OK

        out = capsys.readouterr().out.strip().splitlines()
        assert out[-1] == str(home / "0.1.0" / BINARY_NAME)

    @responses.activate
    def test_install_latest_set_default(self, home):
        """Test installing latest and selecting it."""
        serve("0.1.0", "0.2.0")

        assert rvm(home, "install", "latest", "--set-default") == EXIT_OK

        store = VersionStore(home)
        assert store.get_default() == Version("0.2.0")
        assert [r.version for r in store.list()] == [Version("0.2.0")]

    @responses.activate
    def test_already_installed_skips_download(self, home):
        """Test reinstalling does not download again."""
        serve("0.1.0")
        rvm(home, "install", "0.1.0")
        downloads = len(responses.calls)

        assert rvm(home, "install", "0.1.0") == EXIT_OK
        # Only the manifest is fetched by the second process
        assert len(responses.calls) == downloads + 1

    @responses.activate
    def test_unknown_version(self, home):
        """Test unknown versions map to the resolution exit code."""
        serve("0.1.0")
        assert rvm(home, "install", "9.9.9") == EXIT_RESOLUTION

    def test_invalid_version(self, home):
        """Test malformed versions map to the resolution exit code."""
        assert rvm(home, "install", "not-a-version") == EXIT_RESOLUTION

    @responses.activate
    def test_integrity_failure(self, home):
        """Test corrupted downloads fail with the integrity exit code."""
        serve("0.1.0", content=b"tampered")

        assert rvm(home, "install", "0.1.0") == EXIT_INTEGRITY
        assert VersionStore(home).list() == []

    @responses.activate
    def test_transfer_failure_retried(self, home):
        """Test transfer failures are retried, then reported."""
        responses.add(responses.GET, MANIFEST_URL, json=release_list("0.1.0"))
        responses.add(
            responses.GET,
            artifact_url("0.1.0"),
            body=requests.exceptions.ConnectionError("reset"),
        )

        assert rvm(home, "install", "0.1.0") == EXIT_TRANSFER

        artifact_calls = [c for c in responses.calls if c.request.url == artifact_url("0.1.0")]
        assert len(artifact_calls) == 3

    @responses.activate
    def test_manifest_unavailable(self, home):
        """Test an unreachable manifest maps to the resolution exit code."""
        responses.add(responses.GET, MANIFEST_URL, status=500)
        assert rvm(home, "install", "latest") == EXIT_RESOLUTION

    def test_offline_install_of_missing_version(self, home):
        """Test offline mode never downloads."""
        assert rvm(home, "--offline", "install", "0.1.0") == EXIT_RESOLUTION

    @responses.activate
    def test_store_locked(self, home):
        """Test lock contention maps to its own exit code."""
        serve("0.1.0")

        with StoreLock(home):
            assert rvm(home, "install", "0.1.0") == EXIT_LOCKED

        assert VersionStore(home).list() == []

    @responses.activate
    def test_install_solc_supported(self, home):
        """Test --solc accepts a build that supports the solc version."""
        serve("0.1.0")

        assert rvm(home, "install", "0.1.0", "--solc", "0.8.20") == EXIT_OK
        assert VersionStore(home).is_installed(Version("0.1.0"))

    @responses.activate
    def test_install_solc_unsupported(self, home):
        """Test --solc rejects an incompatible build before downloading."""
        serve("0.1.0")

        assert rvm(home, "install", "0.1.0", "--solc", "0.8.30") == EXIT_RESOLUTION
        assert VersionStore(home).list() == []
        # Only the manifest was requested
        assert len(responses.calls) == 1


class TestUseWhichRemove:
    """Tests for 'rvm use', 'rvm which' and 'rvm remove'."""

    def test_use_missing_version(self, home):
        """Test use refuses versions that are not installed."""
        assert rvm(home, "use", "0.1.0") == EXIT_RESOLUTION

    @responses.activate
    def test_use_install(self, home):
        """Test use --install installs then selects."""
        serve("0.1.0")

        assert rvm(home, "use", "0.1.0", "--install") == EXIT_OK
        assert VersionStore(home).get_default() == Version("0.1.0")

    def test_which_without_default(self, home):
        """Test which fails when no default is set."""
        assert rvm(home, "which") == EXIT_RESOLUTION

    @responses.activate
    def test_lifecycle(self, home, capsys):
        """Test install, use, which and remove in sequence."""
        serve("0.1.0")

        assert rvm(home, "install", "0.1.0") == EXIT_OK
        assert rvm(home, "use", "0.1.0") == EXIT_OK
        assert rvm(home, "which") == EXIT_OK
        assert capsys.readouterr().out.strip().endswith(BINARY_NAME)

        assert rvm(home, "remove", "0.1.0") == EXIT_OK
        assert rvm(home, "which") == EXIT_RESOLUTION
        assert rvm(home, "remove", "0.1.0") == EXIT_RESOLUTION

    @responses.activate
    def test_offline_use_of_installed_version(self, home):
        """Test offline mode works for versions already installed."""
        serve("0.1.0")
        rvm(home, "install", "0.1.0")

        assert rvm(home, "--offline", "use", "0.1.0", "--install") == EXIT_OK
        assert rvm(home, "--offline", "install", "0.1.0") == EXIT_OK


class TestList:
    """Tests for 'rvm list'."""

    @responses.activate
    def test_list(self, home, capsys):
        """Test default, installed and available versions are shown."""
        serve("0.1.0", "0.2.0")
        rvm(home, "install", "0.1.0", "--set-default")
        capsys.readouterr()

        assert rvm(home, "list") == EXIT_OK

        out = capsys.readouterr().out
        assert "Default: 0.1.0" in out
        assert "  0.1.0 (default)" in out
        installed, available = out.split("Available:")
        assert "0.2.0" in available
        assert "0.1.0" not in available

    @responses.activate
    def test_list_solc_filter(self, home, capsys):
        """Test --solc hides versions that do not support it."""
        serve("0.1.0")

        assert rvm(home, "list", "--solc", "0.9.0") == EXIT_OK

        available = capsys.readouterr().out.split("Available:")[1]
        assert "0.1.0" not in available
        assert "(none)" in available

    def test_list_offline_without_cache(self, home, capsys):
        """Test listing still works when available versions are unknown."""
        assert rvm(home, "--offline", "list") == EXIT_OK
        assert "Default: not set" in capsys.readouterr().out
