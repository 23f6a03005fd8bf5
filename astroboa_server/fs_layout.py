from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Union

TORQUEBOX_ALIAS = "torquebox"
TORQUEBOX_DIR_PATTERN = "torquebox-*"
SETUP_TEMPLATES_DIR = "astroboa-setup-templates"

@dataclass(frozen=True)
class Layout:
    install_dir: Path
    torquebox: Path
    jruby_home: Path
    jboss: Path
    jboss_bin: Path
    jboss_modules: Path
    deployments: Path
    standalone_conf: Path
    standalone_xml: Path
    standalone_sh: Path
    jboss_cli_sh: Path
    server_log: Path
    setup_templates: Path

    @property
    def process_marker(self) -> str:
        """Command line fragment identifying the running JBoss of this installation."""
        return f"org.jboss.as.standalone -Djboss.home.dir={self.jboss}"

def build_layout(install_dir: Union[str, Path]) -> Layout:
    inst = Path(install_dir)
    tb = inst / TORQUEBOX_ALIAS
    jboss = tb / "jboss"
    return Layout(
        install_dir=inst,
        torquebox=tb,
        jruby_home=tb / "jruby",
        jboss=jboss,
        jboss_bin=jboss / "bin",
        jboss_modules=jboss / "modules",
        deployments=jboss / "standalone" / "deployments",
        standalone_conf=jboss / "bin" / "standalone.conf",
        standalone_xml=jboss / "standalone" / "configuration" / "standalone.xml",
        standalone_sh=jboss / "bin" / "standalone.sh",
        jboss_cli_sh=jboss / "bin" / "jboss-cli.sh",
        server_log=jboss / "standalone" / "log" / "server.log",
        setup_templates=inst / SETUP_TEMPLATES_DIR,
    )
