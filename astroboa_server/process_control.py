"""
process_control.py: start / stop / check of the installed server
---------------------------------------------------------------
Liveness is decided by looking for the JBoss command line of this
installation in the process table; there is no PID file.
"""

from __future__ import annotations
import enum
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import psutil
from .config_store import ServerConfigStore, check_consistency, check_installation
from .errors import ProcessControlError
from .fs_layout import build_layout
from .host import Host
from .logging_setup import get_logger
from .models import PersistedServerConfig
from .process_runner import ProcessRunner

log = get_logger("control")

SHUTDOWN_SUCCESS_MARKER = "success"


class ShutdownOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"        # non-zero exit code
    AMBIGUOUS = "ambiguous"  # exit code 0 but no success marker in the output


def parse_shutdown_output(returncode: int, output: str) -> ShutdownOutcome:
    if returncode != 0:
        return ShutdownOutcome.FAILED
    if SHUTDOWN_SUCCESS_MARKER in (output or ""):
        return ShutdownOutcome.SUCCESS
    return ShutdownOutcome.AMBIGUOUS


@dataclass
class ServerStatus:
    running: bool
    install_dir: str
    repos_dir: str

    def to_dict(self) -> dict:
        return {"running": self.running, "install_dir": self.install_dir, "repos_dir": self.repos_dir}


def process_table_contains(marker: str) -> bool:
    for proc in psutil.process_iter(["pid", "cmdline"]):
        try:
            cmdline = proc.info.get("cmdline")
            if not isinstance(cmdline, (list, tuple)):
                continue
            if marker in " ".join(cmdline):
                return True
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return False


class ProcessController:
    def __init__(self, store: ServerConfigStore, host: Host, runner: ProcessRunner):
        self.store = store
        self.host = host
        self.runner = runner

    def is_running(self, cfg: Optional[PersistedServerConfig] = None) -> bool:
        cfg = cfg or self.store.load()
        return process_table_contains(build_layout(cfg.install_dir).process_marker)

    def start(self, jvm_options: Optional[str] = None) -> int:
        cfg = self.store.load()
        if self.is_running(cfg):
            raise ProcessControlError("astroboa is already running")
        layout = build_layout(cfg.install_dir)
        check_installation(cfg, layout)
        check_consistency(cfg, self.host)
        self.host.check_launch_user(layout.install_dir)

        overrides = {"JRUBY_HOME": str(layout.jruby_home)}
        if jvm_options:
            overrides["APPEND_JAVA_OPTS"] = jvm_options
        argv, env = self.host.command([str(layout.standalone_sh)], overrides)

        log.info("Astroboa is starting in the background...")
        try:
            pid = self.runner.spawn_detached("astroboa", argv, cwd=layout.jboss_bin, env=env)
        except OSError as e:
            raise ProcessControlError(f"Failed to start astroboa: {e}") from e
        log.info("You can check the log file with 'tail -f %s'", layout.server_log)
        log.info("When server startup has finished access astroboa console at: http://localhost:8080/console")
        return pid

    def stop(self) -> None:
        cfg = self.store.load()
        if not self.is_running(cfg):
            raise ProcessControlError("Astroboa is not running")
        layout = build_layout(cfg.install_dir)
        argv, env = self.host.command([str(layout.jboss_cli_sh), "--connect", "--command=:shutdown"])
        try:
            res = self.runner.run(argv, env=env)
        except subprocess.TimeoutExpired as e:
            raise ProcessControlError(f"Shutdown command did not finish within {e.timeout}s", output=str(e.output or "")) from e
        except OSError as e:
            raise ProcessControlError(f"Failed to run shutdown command: {e}") from e

        outcome = parse_shutdown_output(res.returncode, res.output)
        if outcome is not ShutdownOutcome.SUCCESS:
            log.debug("Shutdown outcome %s (rc=%s)", outcome.value, res.returncode)
            raise ProcessControlError(f"Failed to shutdown Astroboa. Message is: {res.output}", output=res.output)
        log.info("Astroboa has been successfully stopped")

    def check(self) -> ServerStatus:
        cfg = self.store.load()
        check_installation(cfg, build_layout(cfg.install_dir))
        check_consistency(cfg, self.host)
        status = ServerStatus(running=self.is_running(cfg), install_dir=cfg.install_dir, repos_dir=cfg.repos_dir)
        log.info("Installation path: %s", status.install_dir)
        log.info("Repository configuration and data are stored in: %s", status.repos_dir)
        log.info("astroboa is running" if status.running else "astroboa is not running")
        return status
