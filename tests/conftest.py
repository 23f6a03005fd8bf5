import io
import zipfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from astroboa_server.host import LinuxHost, MacHost
from astroboa_server.models import PersistedServerConfig, RepositoryConfigEntry
from astroboa_server.process_runner import CommandResult
from astroboa_server.settings import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ASTROBOA_CONF_FILE=tmp_path / "etc" / "astroboa-conf.json",
        ASTROBOA_DOWNLOAD_URL="http://releases.example.org/latest",
        LOG_DIR=tmp_path / "logs",
    )


@pytest.fixture
def linux_host(settings):
    return LinuxHost(settings)


@pytest.fixture
def mac_host(settings):
    return MacHost(settings)


@pytest.fixture
def runner():
    r = Mock()
    r.run.return_value = CommandResult(returncode=0, output='java version "1.7.0_80"\n')
    r.spawn_detached.return_value = 4242
    return r


def make_zip(path: Path, files: dict, dirs=()) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for d in dirs:
            zf.writestr(d.rstrip("/") + "/", "")
        for name, content in files.items():
            zf.writestr(name, content)
    return path


def make_installed_tree(install_dir: Path, repos_dir: Path, with_identities: bool = True) -> PersistedServerConfig:
    """Lay out a finished installation on disk and return its settings record."""
    versioned = install_dir / "torquebox-2.0.3"
    (versioned / "jboss" / "standalone" / "deployments").mkdir(parents=True)
    (versioned / "jboss" / "bin").mkdir(parents=True)
    (versioned / "jboss" / "standalone" / "deployments" / "astroboa.ear").write_bytes(b"ear")
    (install_dir / "torquebox").symlink_to(versioned)
    repos_dir.mkdir(parents=True, exist_ok=True)
    repositories = {}
    if with_identities:
        (repos_dir / "identities").mkdir()
        (repos_dir / "repositories-conf.xml").write_text(
            '<repositories><repository id="identities" /></repositories>', encoding="utf-8")
        repositories["identities"] = RepositoryConfigEntry(id="identities")
    return PersistedServerConfig(
        install_dir=str(install_dir),
        repos_dir=str(repos_dir),
        database="derby",
        database_admin="sa",
        repositories=repositories,
    )


class FakeResponse(io.BytesIO):
    """Minimal stand-in for the object returned by urllib.request.urlopen."""

    def __init__(self, body: bytes, content_length=None):
        super().__init__(body)
        self.headers = {}
        if content_length is not None:
            self.headers["Content-Length"] = str(content_length)
