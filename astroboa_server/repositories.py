from __future__ import annotations
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Set
from .errors import ConsistencyError
from .logging_setup import get_logger
from .models import PersistedServerConfig

log = get_logger("repositories")

DESCRIPTOR_FILE = "repositories-conf.xml"


def descriptor_path(repos_dir) -> Path:
    return Path(repos_dir) / DESCRIPTOR_FILE


def load_descriptor_ids(path: Path) -> Set[str]:
    """Ids of all <repository id="..."> elements; empty when the file does not exist yet."""
    path = Path(path)
    if not path.exists():
        return set()
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        raise ConsistencyError(f"Repository descriptor {path} cannot be read: {e}") from e
    return {el.get("id") for el in root.iter("repository") if el.get("id")}


def repository_valid(cfg: PersistedServerConfig, name: str) -> bool:
    """A repository counts only if its directory, descriptor entry and settings entry all exist."""
    on_disk = (Path(cfg.repos_dir) / name).is_dir()
    described = name in load_descriptor_ids(descriptor_path(cfg.repos_dir))
    configured = name in cfg.repositories
    if not (on_disk and described and configured):
        log.debug("Repository %s: dir=%s descriptor=%s settings=%s", name, on_disk, described, configured)
    return on_disk and described and configured
