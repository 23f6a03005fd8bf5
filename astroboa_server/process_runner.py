from __future__ import annotations
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
from .logging_setup import get_logger

log = get_logger("proc")

@dataclass
class CommandResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

@dataclass
class ProcessHandle:
    name: str
    proc: subprocess.Popen

class ProcessRunner:
    """Runs external commands. Every blocking call is bounded by a timeout."""

    def __init__(self, timeout: float = 120.0):
        self.timeout = timeout
        self.handles: List[ProcessHandle] = []

    def run(self, cmd: List[str], *, env: Optional[Dict[str, str]] = None,
            timeout: Optional[float] = None) -> CommandResult:
        """Run ``cmd`` to completion; stdout and stderr are merged into ``output``.

        Raises OSError if the executable cannot be started and
        subprocess.TimeoutExpired if it does not finish in time.
        """
        self.reap()
        log.debug("Running: %s", " ".join(cmd))
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, env=env,
                              timeout=timeout if timeout is not None else self.timeout)
        if proc.stdout:
            log.debug("%s output: %s", cmd[0], proc.stdout[-4000:])
        return CommandResult(returncode=proc.returncode, output=proc.stdout or "")

    def spawn_detached(self, name: str, cmd: List[str], *, cwd: Optional[Path] = None,
                       env: Optional[Dict[str, str]] = None) -> int:
        """Start ``cmd`` in its own session with output discarded; does not wait."""
        self.reap()
        log.info("Starting %s in the background: %s", name, " ".join(cmd))
        proc = subprocess.Popen(cmd, cwd=str(cwd) if cwd else None, env=env,
                                stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                                start_new_session=True, close_fds=True)
        self.handles.append(ProcessHandle(name=name, proc=proc))
        return proc.pid

    def reap(self) -> None:
        """Collect the exit status of finished background processes."""
        alive: List[ProcessHandle] = []
        for h in self.handles:
            rc = h.proc.poll()
            if rc is None:
                alive.append(h)
            else:
                log.debug("%s (pid=%s) exited with %s", h.name, h.proc.pid, rc)
        self.handles = alive
