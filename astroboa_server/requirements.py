from __future__ import annotations
import re
import subprocess
from typing import Optional, Tuple
from .errors import PreconditionError
from .host import Host
from .logging_setup import get_logger
from .models import MANDATORY_REPOSITORY, InstallationPlan
from .process_runner import ProcessRunner
from .settings import Settings

log = get_logger("requirements")

_VERSION_RE = re.compile(r'version\s+"?(\d+(?:\.\d+)*)')

JAVA_REMEDIATION = (
    "Please install java 6 (version 1.6.x) or java 7 (version 1.7.x) to proceed with installation. "
    "Set JAVA_BIN if java is installed outside the PATH."
)


def parse_java_version(text: str) -> Optional[Tuple[int, ...]]:
    """Extract the version tuple from ``java -version`` output, e.g. (1, 7, 0)."""
    m = _VERSION_RE.search(text or "")
    if not m:
        return None
    return tuple(int(p) for p in m.group(1).split("."))


def check_not_installed(plan: InstallationPlan) -> None:
    tb = plan.install_dir / "torquebox"
    if tb.is_dir():
        raise PreconditionError(
            f"Astroboa seems to be already installed at {plan.install_dir} ({tb} exists). "
            "Delete the installation directory or specify another install path."
        )
    ids = plan.repo_dir / MANDATORY_REPOSITORY
    if ids.is_dir():
        raise PreconditionError(
            f"Repositories already exist at {plan.repo_dir} ({ids} exists). "
            "Specify another repository path."
        )
    log.info("Verifying that Astroboa is not already installed in the specified directories: OK")


def check_java(runner: ProcessRunner, settings: Settings) -> Tuple[int, ...]:
    try:
        res = runner.run([settings.java_bin, "-version"])
    except (OSError, subprocess.TimeoutExpired) as e:
        raise PreconditionError(f"Java runtime not found ({e}). {JAVA_REMEDIATION}") from e
    if not res.ok or not re.search(settings.java_version_pattern, res.output):
        found = parse_java_version(res.output)
        shown = ".".join(str(p) for p in found) if found else "unknown"
        raise PreconditionError(f"Unsupported java version: {shown}. {JAVA_REMEDIATION}")
    version = parse_java_version(res.output) or ()
    log.info("Checking java version (%s): OK", ".".join(str(p) for p in version))
    return version


def check_preconditions(plan: InstallationPlan, host: Host, runner: ProcessRunner, settings: Settings) -> None:
    """Run all install checks in order; the first failure raises PreconditionError."""
    log.info("Checking installation requirements")
    # an unsupported OS never gets a Host (detect_host raises)
    log.info("Checking if operating system is supported (%s): OK", host.name)
    check_not_installed(plan)
    check_java(runner, settings)
