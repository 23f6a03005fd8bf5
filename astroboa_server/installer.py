from __future__ import annotations
import shutil
from pathlib import Path
from typing import List, Optional
from .archive import create_stable_alias, extract
from .config_store import ServerConfigStore
from .errors import ExtractionError, PreconditionError
from .fs_layout import Layout, TORQUEBOX_ALIAS, TORQUEBOX_DIR_PATTERN, build_layout
from .host import Host
from .logging_setup import get_logger
from .models import MANDATORY_REPOSITORY, InstallationPlan, PackageSpec, PersistedServerConfig, is_postgres
from .packages import (
    ASTROBOA_EAR_PACKAGE,
    DISPOSABLE_PACKAGES,
    SETUP_TEMPLATES_PACKAGE,
    TORQUEBOX_PACKAGE,
    FetchResult,
    ProgressCallback,
    default_packages,
    fetch,
)
from .planner import Plan, build_install_plan
from .process_runner import ProcessRunner
from .requirements import check_preconditions
from .settings import Settings
from .templating import install_file, render

log = get_logger("install")

# postgres driver module installed next to derby when derby is selected
FALLBACK_POSTGRES = "postgres-9.1"


class Installer:
    def __init__(self, settings: Settings, host: Host, runner: Optional[ProcessRunner] = None,
                 store: Optional[ServerConfigStore] = None, on_progress: Optional[ProgressCallback] = None):
        self.settings = settings
        self.host = host
        self.runner = runner or ProcessRunner(timeout=settings.command_timeout)
        self.store = store or ServerConfigStore.for_host(host)
        self.on_progress = on_progress

    def packages(self, plan: InstallationPlan) -> List[PackageSpec]:
        return default_packages(plan.install_dir, self.settings.download_base_url)

    def plan(self, plan: InstallationPlan) -> Plan:
        return build_install_plan(plan, self.host, self.packages(plan), str(self.store.path))

    # ---------------------------------------------------------------------- #
    def install(self, plan: InstallationPlan) -> PersistedServerConfig:
        log.info("Starting astroboa server installation. Server will be installed in: %s. "
                 "Repository data and config will be stored in: %s", plan.install_dir, plan.repo_dir)
        log.info("Repository database is %s accessed with user: '%s'", plan.database, plan.database_admin)
        if is_postgres(plan.database):
            log.info("Database server IP or FQDN is: %s", plan.database_server)

        check_preconditions(plan, self.host, self.runner, self.settings)
        self.download(plan)
        self.host.ensure_account(self.runner)

        layout = build_layout(plan.install_dir)
        self.install_torquebox(plan)
        self.install_astroboa(plan, layout)

        record = PersistedServerConfig.from_plan(plan)
        self.store.save(record)
        profile = self.host.write_profile(plan.install_dir, plan.repo_dir)

        self.host.fix_ownership(plan.install_dir)
        self.cleanup(plan)
        log.info("Installation finished. Create the mandatory repository with 'repository:create %s' "
                 "before starting the server.", MANDATORY_REPOSITORY)
        log.info("Login again or run 'source %s' to load the astroboa environment settings", profile)
        return record

    def download(self, plan: InstallationPlan) -> List[FetchResult]:
        try:
            plan.install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"Failed to create installation directory '{plan.install_dir}': {e}") from e
        log.info("Downloading astroboa server components to %s", plan.install_dir)
        return [fetch(spec, timeout=self.settings.http_timeout, on_progress=self.on_progress)
                for spec in self.packages(plan)]

    def install_torquebox(self, plan: InstallationPlan) -> Path:
        extract(plan.install_dir / TORQUEBOX_PACKAGE, plan.install_dir)
        return create_stable_alias(plan.install_dir, TORQUEBOX_DIR_PATTERN, TORQUEBOX_ALIAS)

    def install_astroboa(self, plan: InstallationPlan, layout: Layout) -> None:
        extract(plan.install_dir / SETUP_TEMPLATES_PACKAGE, plan.install_dir)
        try:
            plan.repo_dir.mkdir(parents=True, exist_ok=True)
            log.info("Creating repositories directory %s: OK", plan.repo_dir)

            layout.deployments.mkdir(parents=True, exist_ok=True)
            shutil.copy2(plan.install_dir / ASTROBOA_EAR_PACKAGE, layout.deployments / ASTROBOA_EAR_PACKAGE)
            log.info("Copying astroboa ear package into jboss deployments: OK")

            self._install_jdbc_modules(plan, layout)
            shutil.copytree(layout.setup_templates / "jboss-modules" / "org", layout.jboss_modules / "org",
                            dirs_exist_ok=True)
            log.info("Copying spring and snowdrop modules into jboss modules: OK")

            install_file(layout.setup_templates / "standalone.conf", layout.standalone_conf)
            render(layout.setup_templates / "standalone.xml", self.template_context(plan), layout.standalone_xml)
        except OSError as e:
            raise ExtractionError(f"Failed to install astroboa components into {layout.jboss}: {e}") from e

    def _install_jdbc_modules(self, plan: InstallationPlan, layout: Layout) -> None:
        drivers = layout.setup_templates / "jdbc-drivers"
        # the ear declares both derby and postgres modules as dependencies
        postgres_db = plan.database if is_postgres(plan.database) else FALLBACK_POSTGRES
        for db in ("derby", postgres_db):
            shutil.copytree(drivers / db / "org", layout.jboss_modules / "org", dirs_exist_ok=True)
            log.info("Copying %s jdbc driver module into jboss modules: OK", db)

    @staticmethod
    def template_context(plan: InstallationPlan) -> dict:
        return {
            "astroboa_config_dir": str(plan.repo_dir),
            "install_dir": str(plan.install_dir),
            "database": plan.database,
            "database_server": plan.database_server,
            "database_admin": plan.database_admin,
            "database_admin_password": plan.database_admin_password,
        }

    def cleanup(self, plan: InstallationPlan) -> None:
        log.info("Cleaning not required installation packages...")
        for name in DISPOSABLE_PACKAGES:
            p = plan.install_dir / name
            try:
                p.unlink()
                log.info("Removed %s", p)
            except FileNotFoundError:
                pass
            except OSError as e:
                log.warning("Could not remove %s: %s", p, e)
