"""
host.py: Platform variants
-------------------------
The installer supports two host families which differ in a handful of
places only: who owns and runs the server, where the server settings file
lives and whether the install paths are mirrored into the login environment.
The variant is selected once (``detect_host``) and passed to every step.
"""

from __future__ import annotations
import getpass
import os
import pwd
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple
from .accounts import chown_recursive, ensure_service_account
from .errors import AccountError, ConfigStoreError, PreconditionError, ProcessControlError
from .logging_setup import get_logger
from .process_runner import ProcessRunner
from .settings import Settings

log = get_logger("host")

# set by bundler in the calling shell; never passed to the server
LEAKY_ENV_VARS = ("BUNDLE_GEMFILE",)

SYSTEM_CONF_FILE = Path("/etc/astroboa/astroboa-conf.json")
USER_CONF_FILE_NAME = ".astroboa-conf.json"

PROFILE_FILE_NAME = ".bash_profile"
PROFILE_BLOCK_START = "# ASTROBOA REQUIRED PATHS CONFIGURATION STARTS HERE"
PROFILE_BLOCK_END = "# ASTROBOA REQUIRED PATHS CONFIGURATION ENDS HERE"


def remove_profile_block(text: str) -> str:
    """Drop every line from a start marker up to and including its end marker."""
    kept: List[str] = []
    inside = False
    for line in text.splitlines(keepends=True):
        if line.strip() == PROFILE_BLOCK_START:
            inside = True
        if not inside:
            kept.append(line)
        elif line.strip() == PROFILE_BLOCK_END:
            inside = False
    return "".join(kept)


class Host:
    name = "generic"
    dedicated_account = False
    mirrors_environment = False

    def __init__(self, settings: Settings):
        self.settings = settings

    def config_path(self) -> Path:
        if self.settings.conf_file:
            return Path(self.settings.conf_file)
        return self._default_config_path()

    def _default_config_path(self) -> Path:
        return SYSTEM_CONF_FILE

    def ensure_account(self, runner: ProcessRunner) -> None:
        pass

    def fix_ownership(self, path: Path) -> None:
        pass

    def check_launch_user(self, install_dir: Path) -> None:
        pass

    def profile_path(self) -> Path:
        return Path.home() / PROFILE_FILE_NAME

    def profile_exports(self, install_dir: Path, repo_dir: Path) -> List[str]:
        return [
            f"export ASTROBOA_HOME={install_dir}",
            f"export ASTROBOA_REPOSITORIES_HOME={repo_dir}",
            "export TORQUEBOX_HOME=$ASTROBOA_HOME/torquebox",
            "export JBOSS_HOME=$TORQUEBOX_HOME/jboss",
        ]

    def write_profile(self, install_dir: Path, repo_dir: Path) -> Path:
        """Put the install paths into the server owner's login profile.

        A block written by an earlier install is replaced, the rest of the
        file is kept as is.
        """
        path = self.profile_path()
        block = [PROFILE_BLOCK_START, *self.profile_exports(install_dir, repo_dir), PROFILE_BLOCK_END]
        try:
            existing = path.read_text(encoding="utf-8") if path.exists() else ""
            kept = remove_profile_block(existing).rstrip("\n")
            text = (kept + "\n\n" if kept else "") + "\n".join(block) + "\n"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ConfigStoreError(f"Failed to write environment settings to '{path}': {e}") from e
        log.info("Added required environment settings in %s", path)
        return path

    def command(self, argv: List[str], overrides: Optional[Mapping[str, str]] = None,
                base_env: Optional[Mapping[str, str]] = None) -> Tuple[List[str], Dict[str, str]]:
        """Return the argv and environment to run ``argv`` as the server owner."""
        env = dict(os.environ if base_env is None else base_env)
        for key in LEAKY_ENV_VARS:
            env.pop(key, None)
        env.update(overrides or {})
        return list(argv), env


class MacHost(Host):
    """Server is owned and run by the user that installed it."""
    name = "darwin"
    mirrors_environment = True

    def _default_config_path(self) -> Path:
        return Path.home() / USER_CONF_FILE_NAME

    def check_launch_user(self, install_dir: Path) -> None:
        owner = pwd.getpwuid(os.stat(install_dir).st_uid).pw_name
        user = getpass.getuser()
        if user != owner:
            raise ProcessControlError(f"Please login as user: {owner} to run astroboa")


class LinuxHost(Host):
    """A dedicated service account owns the install tree and runs the server."""
    name = "linux"
    dedicated_account = True

    @property
    def service_user(self) -> str:
        return self.settings.service_user

    def ensure_account(self, runner: ProcessRunner) -> None:
        ensure_service_account(self.service_user, runner)

    def fix_ownership(self, path: Path) -> None:
        chown_recursive(path, self.service_user, self.service_user)
        log.info("Changed (recursively) user and group owner of %s to '%s'", path, self.service_user)

    def profile_path(self) -> Path:
        try:
            home = pwd.getpwnam(self.service_user).pw_dir
        except KeyError as e:
            raise AccountError(f"User '{self.service_user}' does not exist") from e
        return Path(home) / PROFILE_FILE_NAME

    def profile_exports(self, install_dir: Path, repo_dir: Path) -> List[str]:
        return super().profile_exports(install_dir, repo_dir) + ["export PATH=$TORQUEBOX_HOME/jruby/bin:$PATH"]

    def write_profile(self, install_dir: Path, repo_dir: Path) -> Path:
        path = super().write_profile(install_dir, repo_dir)
        chown_recursive(path, self.service_user, self.service_user)
        return path

    def command(self, argv: List[str], overrides: Optional[Mapping[str, str]] = None,
                base_env: Optional[Mapping[str, str]] = None) -> Tuple[List[str], Dict[str, str]]:
        # `su -` starts a login shell with a fresh environment: pass overrides through env(1)
        inner = ["env"] + [f"{k}={v}" for k, v in (overrides or {}).items()] + list(argv)
        _, env = super().command([], None, base_env)
        return ["su", "-", self.service_user, "-c", shlex.join(inner)], env


def detect_host(settings: Settings, platform: Optional[str] = None) -> Host:
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return LinuxHost(settings)
    if platform == "darwin":
        return MacHost(settings)
    raise PreconditionError(
        f"astroboa server installation is currently supported for linux and mac os x (this host is '{platform}')"
    )
