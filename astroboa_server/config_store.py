"""
Persistent server settings.

Written once by ``install`` (later updated by repository management) and
read by every other command. The file is a flat JSON object holding the
install paths and database settings plus a ``repositories`` mapping.
"""

from __future__ import annotations
import json
import os
from pathlib import Path
from typing import Mapping, Optional
from pydantic import ValidationError
from .errors import ConfigStoreError, ConsistencyError
from .fs_layout import Layout
from .host import Host
from .logging_setup import get_logger
from .models import MANDATORY_REPOSITORY, PersistedServerConfig
from .repositories import repository_valid

log = get_logger("config_store")

PROBLEM = "Astroboa is not properly installed."


class ServerConfigStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def for_host(cls, host: Host) -> "ServerConfigStore":
        return cls(host.config_path())

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, cfg: PersistedServerConfig) -> None:
        """Overwrite the whole settings file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            temp_path.write_text(json.dumps(cfg.model_dump(mode="json"), indent=2), encoding="utf-8")
            temp_path.replace(self.path)
        except OSError as e:
            raise ConfigStoreError(f"Failed to write server settings file '{self.path}': {e}") from e
        log.info("The server configuration has been saved to '%s'", self.path)

    def load(self) -> PersistedServerConfig:
        if not self.path.is_file():
            raise ConfigStoreError(f"Server configuration file: '{self.path}' does not exist")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return PersistedServerConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigStoreError(f"Server configuration file '{self.path}' cannot be read: {e}") from e


def check_installation(cfg: PersistedServerConfig, layout: Layout) -> None:
    ears = sorted(layout.deployments.glob("astroboa*.ear"))
    if not ears:
        raise ConsistencyError(f"{PROBLEM} Astroboa ear package is not installed in {layout.deployments}")
    log.info("Check astroboa ear: OK")


# persisted field -> environment variable exported by the login profile
ENV_MIRROR = (
    ("install_dir", "ASTROBOA_HOME"),
    ("repos_dir", "ASTROBOA_REPOSITORIES_HOME"),
)


def check_consistency(cfg: PersistedServerConfig, host: Host, environ: Optional[Mapping[str, str]] = None) -> None:
    if host.mirrors_environment:
        env = os.environ if environ is None else environ
        for field, var in ENV_MIRROR:
            stored = getattr(cfg, field)
            actual = env.get(var)
            if actual != stored:
                raise ConsistencyError(
                    f"{PROBLEM} Mismatch of {field} in environment variable '{var}' ({actual}) "
                    f"and server settings ({stored})"
                )
        log.info("Check consistency between environment variables and server settings: OK")

    if not repository_valid(cfg, MANDATORY_REPOSITORY):
        raise ConsistencyError(
            f"{PROBLEM} The mandatory repository '{MANDATORY_REPOSITORY}' is not configured. "
            f"Use the command 'repository:create {MANDATORY_REPOSITORY}' to create it."
        )
    log.info("Check %s repository: OK", MANDATORY_REPOSITORY)
