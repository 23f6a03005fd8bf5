from __future__ import annotations
import grp
import os
import pwd
import subprocess
from pathlib import Path
from typing import List, Union
from .errors import AccountError
from .logging_setup import get_logger

log = get_logger("accounts")


def _group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
    except KeyError:
        return False
    return True


def _user_exists(name: str) -> bool:
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def _run(runner, cmd: List[str], what: str) -> None:
    try:
        res = runner.run(cmd)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise AccountError(f"Failed to create {what}: {e}") from e
    if not res.ok:
        raise AccountError(f"Failed to create {what} (rc={res.returncode}): {res.output.strip()}")


def ensure_service_account(name: str, runner) -> None:
    """Create group ``name`` and user ``name`` (primary group ``name``) if absent."""
    if _group_exists(name):
        log.info("Usergroup '%s' already exists", name)
    else:
        _run(runner, ["groupadd", name], f"usergroup {name}")
        log.info("Created usergroup '%s'", name)

    if _user_exists(name):
        log.info("User '%s' already exists", name)
    else:
        _run(runner, ["useradd", "-m", "-g", name, name], f"user {name}")
        log.info("Created user '%s'", name)


def chown_recursive(path: Union[str, Path], owner: str, group: str) -> None:
    """chown -R; symlinks are re-owned themselves and never followed."""
    try:
        uid = pwd.getpwnam(owner).pw_uid
        gid = grp.getgrnam(group).gr_gid
    except KeyError as e:
        raise AccountError(f"Unknown owner {owner}:{group}: {e}") from e

    root = Path(path)
    try:
        os.chown(root, uid, gid, follow_symlinks=False)
        for dirpath, dirnames, filenames in os.walk(root):
            for entry in dirnames + filenames:
                os.chown(os.path.join(dirpath, entry), uid, gid, follow_symlinks=False)
    except OSError as e:
        raise AccountError(f"Failed to change owner of {root} to {owner}:{group}: {e}") from e
