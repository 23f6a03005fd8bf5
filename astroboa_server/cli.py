from __future__ import annotations
import argparse
import json
from typing import Optional, Sequence
import uvicorn
from .api import create_app
from .config_store import ServerConfigStore
from .errors import AstroboaError
from .host import detect_host
from .installer import Installer
from .logging_setup import get_logger, setup_logging
from .models import SUPPORTED_DATABASES, build_plan
from .process_control import ProcessController
from .process_runner import ProcessRunner
from .settings import Settings, load_settings

log = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="astroboa-server")
    sub = parser.add_subparsers(dest="cmd", required=True)

    inst = sub.add_parser("install", help="Install and setup astroboa server for production use")
    inst.add_argument("-i", "--install_dir", help="Directory into which to install astroboa (default /opt/astroboa)")
    inst.add_argument("-r", "--repo_dir", help="Directory for repository config and data (default INSTALL_DIR/repositories)")
    inst.add_argument("-d", "--database", help=f"Database vendor, one of: {', '.join(SUPPORTED_DATABASES)} (default derby)")
    inst.add_argument("-s", "--database_server", help="Database server IP or FQDN (default localhost, ignored for derby)")
    inst.add_argument("-u", "--database_admin", help="Database administrator (default postgres, ignored for derby)")
    inst.add_argument("-p", "--database_admin_password", help="Database administrator password (default empty)")
    inst.add_argument("--dry-run", action="store_true", help="Print the install plan as JSON and exit")

    start_p = sub.add_parser("start", help="Start astroboa server as a background process")
    start_p.add_argument("-j", "--jvm_options", help="Extra JVM options appended to the server start command")

    sub.add_parser("stop", help="Stop astroboa server if it is running")
    sub.add_parser("check", help="Check the installation and whether the server is running")

    api_p = sub.add_parser("api", help="Run the REST control API (FastAPI)")
    api_p.add_argument("--host", default="127.0.0.1")
    api_p.add_argument("--port", type=int, default=8000)
    return parser


def run(args: argparse.Namespace, settings: Settings) -> int:
    host = detect_host(settings)
    runner = ProcessRunner(timeout=settings.command_timeout)
    store = ServerConfigStore.for_host(host)

    if args.cmd == "install":
        plan = build_plan(
            install_dir=args.install_dir,
            repo_dir=args.repo_dir,
            database=args.database,
            database_server=args.database_server,
            database_admin=args.database_admin,
            database_admin_password=args.database_admin_password,
        )
        installer = Installer(settings, host, runner, store)
        if args.dry_run:
            p = installer.plan(plan).to_dict()
            print(json.dumps(p, indent=2, ensure_ascii=False))
            return 0 if p.get("ok", True) else 1
        installer.install(plan)
        return 0

    ctl = ProcessController(store, host, runner)
    if args.cmd == "start":
        ctl.start(jvm_options=args.jvm_options)
        return 0
    if args.cmd == "stop":
        ctl.stop()
        return 0
    if args.cmd == "check":
        status = ctl.check()
        print("astroboa is running" if status.running else "astroboa is not running")
        print(f"Installation Path: {status.install_dir}")
        print(f"Repository configuration and data are stored in: {status.repos_dir}")
        return 0

    if args.cmd == "api":
        uvicorn.run(create_app(settings, host=host), host=args.host, port=args.port,
                    log_level=settings.log_level.lower())
        return 0

    return 2


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
        setup_logging(settings)
        return run(args, settings)
    except AstroboaError as e:
        log.error("%s", e)
        return e.exit_code
    except Exception as e:
        log.exception("Unexpected failure in '%s': %s", args.cmd, e)
        return 1
