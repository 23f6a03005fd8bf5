"""Dry-run view of what ``install`` would do on this host."""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List
from .errors import PreconditionError
from .fs_layout import TORQUEBOX_ALIAS, TORQUEBOX_DIR_PATTERN, build_layout
from .host import Host
from .models import InstallationPlan, PackageSpec
from .packages import is_fetched
from .requirements import check_not_installed

@dataclass
class PlanAction:
    action: str
    target: str
    detail: str
    paths: Dict[str, str]
    will_change: bool
    severity: str = "info"  # info|warn|error

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass
class Plan:
    ok: bool
    actions: List[PlanAction]
    notes: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "actions": [a.to_dict() for a in self.actions],
            "notes": list(self.notes),
        }

def build_install_plan(plan: InstallationPlan, host: Host, packages: List[PackageSpec], conf_path: str) -> Plan:
    actions: List[PlanAction] = []
    notes: List[str] = []
    ok = True

    try:
        check_not_installed(plan)
    except PreconditionError as e:
        ok = False
        notes.append(str(e))

    for spec in packages:
        fetched = is_fetched(spec)
        actions.append(PlanAction(
            action="download",
            target=spec.name,
            detail="already downloaded (size matches)" if fetched else f"GET {spec.url}",
            paths={"dest": str(spec.destination)},
            will_change=not fetched,
        ))

    if host.dedicated_account:
        actions.append(PlanAction(
            action="ensure_account",
            target=host.settings.service_user,
            detail="create group and user if absent",
            paths={},
            will_change=True,
        ))

    layout = build_layout(plan.install_dir)
    actions.append(PlanAction(
        action="extract",
        target="torquebox",
        detail=f"unzip and link {TORQUEBOX_ALIAS} -> {TORQUEBOX_DIR_PATTERN}",
        paths={"dest": str(plan.install_dir), "alias": str(layout.torquebox)},
        will_change=not layout.torquebox.exists(),
        severity="info" if not layout.torquebox.exists() else "error",
    ))
    actions.append(PlanAction(
        action="configure",
        target="jboss",
        detail=f"ear, jdbc modules ({plan.database}), spring modules, standalone.conf, standalone.xml",
        paths={"deployments": str(layout.deployments), "standalone_xml": str(layout.standalone_xml)},
        will_change=True,
    ))
    actions.append(PlanAction(
        action="save_settings",
        target="server settings",
        detail=f"install_dir={plan.install_dir} repos_dir={plan.repo_dir} database={plan.database}",
        paths={"file": conf_path},
        will_change=True,
    ))
    actions.append(PlanAction(
        action="write_profile",
        target=".bash_profile",
        detail="export ASTROBOA_HOME, ASTROBOA_REPOSITORIES_HOME, TORQUEBOX_HOME, JBOSS_HOME",
        paths={},
        will_change=True,
    ))
    if host.dedicated_account:
        actions.append(PlanAction(
            action="chown",
            target=str(plan.install_dir),
            detail=f"owner {host.settings.service_user}:{host.settings.service_user}",
            paths={},
            will_change=True,
        ))
    return Plan(ok=ok, actions=actions, notes=notes)
