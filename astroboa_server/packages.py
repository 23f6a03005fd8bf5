"""
packages.py: Download of the fixed release artifacts
---------------------------------------------------
Each artifact has a known byte size. A file already on disk with exactly that
size is considered downloaded and is never fetched again; anything else is
(re)downloaded in a single streaming GET.
"""

from __future__ import annotations
import http.client
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional
from .errors import TransferError
from .logging_setup import get_logger
from .models import PackageSpec

log = get_logger("packages")

CHUNK_SIZE = 64 * 1024

TORQUEBOX_PACKAGE = "torquebox-dist-2.0.3-bin.zip"
TORQUEBOX_VERSION_FILE = "TORQUEBOX-VERSION"
ASTROBOA_EAR_PACKAGE = "astroboa.ear"
ASTROBOA_VERSION_FILE = "ASTROBOA-VERSION"
SETUP_TEMPLATES_PACKAGE = "astroboa-setup-templates.zip"

# name -> expected size in bytes
RELEASE_ARTIFACTS = (
    (TORQUEBOX_PACKAGE, 173153188),
    (TORQUEBOX_VERSION_FILE, 6),
    (ASTROBOA_EAR_PACKAGE, 64585240),
    (ASTROBOA_VERSION_FILE, 15),
    (SETUP_TEMPLATES_PACKAGE, 11030750),
)

# packages removed after a successful install; version files stay
DISPOSABLE_PACKAGES = (TORQUEBOX_PACKAGE, ASTROBOA_EAR_PACKAGE, SETUP_TEMPLATES_PACKAGE)

ProgressCallback = Callable[[str, int, Optional[int]], None]


@dataclass(frozen=True)
class FetchResult:
    name: str
    status: str  # skipped|downloaded
    bytes: int


def default_packages(install_dir: Path, base_url: str) -> List[PackageSpec]:
    base = base_url.rstrip("/")
    return [
        PackageSpec(name=name, url=f"{base}/{name}", destination=Path(install_dir) / name, expected_size=size)
        for name, size in RELEASE_ARTIFACTS
    ]


def is_fetched(spec: PackageSpec) -> bool:
    try:
        return spec.destination.is_file() and spec.destination.stat().st_size == spec.expected_size
    except OSError:
        return False


def progress_percent(received: int, content_length: Optional[int]) -> Optional[int]:
    """floor(received*100/content_length); None when the length is unknown."""
    if not content_length:
        return None
    return received * 100 // content_length


class _LogProgress:
    """Default progress sink: one log line per 10 %, or per 10 MB when the length is unknown."""

    def __init__(self):
        self._last = -1

    def __call__(self, name: str, received: int, percent: Optional[int]) -> None:
        step = percent // 10 if percent is not None else received // (10 * 1024 * 1024)
        if step != self._last:
            self._last = step
            if percent is None:
                log.info("%s: %d bytes received", name, received)
            else:
                log.info("%s: %d%%", name, percent)


def _content_length(response) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def fetch(spec: PackageSpec, *, timeout: float = 60.0, on_progress: Optional[ProgressCallback] = None) -> FetchResult:
    if is_fetched(spec):
        log.info("%s already downloaded (%d bytes), skipping", spec.name, spec.expected_size)
        return FetchResult(name=spec.name, status="skipped", bytes=0)

    progress = on_progress or _LogProgress()
    log.info("Downloading %s from %s to %s", spec.name, spec.url, spec.destination)
    received = 0
    try:
        spec.destination.parent.mkdir(parents=True, exist_ok=True)
        with urllib.request.urlopen(spec.url, timeout=timeout) as response:
            length = _content_length(response)
            with open(spec.destination, "wb") as fh:
                while True:
                    chunk = response.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    fh.write(chunk)
                    received += len(chunk)
                    progress(spec.name, received, progress_percent(received, length))
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        # partial file stays; its size will not match and the next run downloads again
        raise TransferError(f"Failed to download package '{spec.name}' from {spec.url}: {e}") from e

    if length and received != length:
        raise TransferError(f"Incomplete download of '{spec.name}': got {received} of {length} bytes")
    if received != spec.expected_size:
        log.warning("%s: downloaded %d bytes, expected %d", spec.name, received, spec.expected_size)
    log.info("%s downloaded successfully (%d bytes)", spec.name, received)
    return FetchResult(name=spec.name, status="downloaded", bytes=received)
