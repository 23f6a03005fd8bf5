"""
End-to-end install runs against locally staged release packages.
"""

import json
from pathlib import Path
from unittest.mock import Mock, call, patch

import pytest

from astroboa_server.errors import ExtractionError, PreconditionError, SymlinkError, TemplateRenderError
from astroboa_server.fs_layout import build_layout
from astroboa_server.host import LinuxHost
from astroboa_server.installer import Installer
from astroboa_server.models import PackageSpec, build_plan
from astroboa_server.process_runner import CommandResult
from astroboa_server.packages import (
    ASTROBOA_EAR_PACKAGE,
    ASTROBOA_VERSION_FILE,
    SETUP_TEMPLATES_PACKAGE,
    TORQUEBOX_PACKAGE,
    TORQUEBOX_VERSION_FILE,
)

from conftest import make_zip

STANDALONE_XML_TEMPLATE = (
    "<server>\n"
    "  <property name=\"astroboa.config.dir\" value=\"<%= @astroboa_config_dir %>\"/>\n"
    "  <datasource user=\"<%= @database_admin %>\" host=\"<%= @database_server %>\" bind=\"${jboss.bind.address:127.0.0.1}\"/>\n"
    "</server>\n"
)


def stage_packages(install_dir: Path, standalone_xml: str = STANDALONE_XML_TEMPLATE):
    """Place every release package in ``install_dir`` and return matching specs."""
    make_zip(install_dir / TORQUEBOX_PACKAGE, {
        "torquebox-2.0.3/jboss/bin/standalone.sh": "#!/bin/sh\n",
        "torquebox-2.0.3/jboss/bin/standalone.conf": "JAVA_OPTS=stock\n",
        "torquebox-2.0.3/jboss/standalone/configuration/standalone.xml": "<server>stock</server>\n",
        "torquebox-2.0.3/jruby/bin/jruby": "#!/bin/sh\n",
    }, dirs=["torquebox-2.0.3/jboss/standalone/deployments"])
    make_zip(install_dir / SETUP_TEMPLATES_PACKAGE, {
        "astroboa-setup-templates/standalone.conf": "JAVA_OPTS=astroboa\n",
        "astroboa-setup-templates/standalone.xml": standalone_xml,
        "astroboa-setup-templates/jdbc-drivers/derby/org/apache/derby/main/module.xml": "<module name=\"derby\"/>",
        "astroboa-setup-templates/jdbc-drivers/postgres-9.1/org/postgresql/main/module.xml": "<module name=\"pg91\"/>",
        "astroboa-setup-templates/jdbc-drivers/postgres-8.4/org/postgresql/main/module.xml": "<module name=\"pg84\"/>",
        "astroboa-setup-templates/jboss-modules/org/springframework/spring/main/module.xml": "<module name=\"spring\"/>",
    })
    (install_dir / ASTROBOA_EAR_PACKAGE).write_bytes(b"PK-ear")
    (install_dir / TORQUEBOX_VERSION_FILE).write_text("2.0.3\n")
    (install_dir / ASTROBOA_VERSION_FILE).write_text("3.2.0-SNAPSHOT\n")

    return [
        PackageSpec(name=name, url=f"http://releases.example.org/latest/{name}",
                    destination=install_dir / name, expected_size=(install_dir / name).stat().st_size)
        for name in (TORQUEBOX_PACKAGE, TORQUEBOX_VERSION_FILE, ASTROBOA_EAR_PACKAGE,
                     ASTROBOA_VERSION_FILE, SETUP_TEMPLATES_PACKAGE)
    ]


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    return path


@pytest.fixture
def install_dir(tmp_path):
    return tmp_path / "opt" / "astroboa"


@pytest.fixture
def installer(settings, mac_host, runner):
    return Installer(settings, mac_host, runner=runner)


def _staged(specs):
    return patch("astroboa_server.installer.default_packages", return_value=specs)


class TestInstall:

    def test_derby_install(self, installer, install_dir, settings, home):
        specs = stage_packages(install_dir)
        plan = build_plan(install_dir=str(install_dir))
        with _staged(specs), patch("astroboa_server.packages.urllib.request.urlopen") as urlopen:
            record = installer.install(plan)
        urlopen.assert_not_called()

        layout = build_layout(install_dir)
        assert layout.torquebox.is_symlink()
        assert layout.torquebox.resolve() == (install_dir / "torquebox-2.0.3").resolve()
        assert (layout.deployments / ASTROBOA_EAR_PACKAGE).read_bytes() == b"PK-ear"
        assert (layout.jboss_modules / "org" / "apache" / "derby" / "main" / "module.xml").exists()
        assert "pg91" in (layout.jboss_modules / "org" / "postgresql" / "main" / "module.xml").read_text()
        assert (layout.jboss_modules / "org" / "springframework" / "spring" / "main" / "module.xml").exists()

        assert layout.standalone_conf.read_text() == "JAVA_OPTS=astroboa\n"
        assert layout.standalone_conf.with_name("standalone.conf.original").read_text() == "JAVA_OPTS=stock\n"
        xml = layout.standalone_xml.read_text()
        assert 'value="%s"' % (install_dir / "repositories") in xml
        assert 'user="sa"' in xml
        assert 'bind="${jboss.bind.address:127.0.0.1}"' in xml
        assert layout.standalone_xml.with_name("standalone.xml.original").read_text() == "<server>stock</server>\n"
        assert (install_dir / "repositories").is_dir()

        saved = json.loads(settings.conf_file.read_text())
        assert saved["install_dir"] == str(install_dir)
        assert saved["repos_dir"] == str(install_dir / "repositories")
        assert saved["database"] == "derby"
        assert saved["database_admin"] == "sa"
        assert saved["repositories"] == {}
        assert record.install_dir == str(install_dir)

        for name in (TORQUEBOX_PACKAGE, ASTROBOA_EAR_PACKAGE, SETUP_TEMPLATES_PACKAGE):
            assert not (install_dir / name).exists()
        assert (install_dir / TORQUEBOX_VERSION_FILE).exists()
        assert (install_dir / ASTROBOA_VERSION_FILE).exists()

        profile = (home / ".bash_profile").read_text().splitlines()
        assert f"export ASTROBOA_HOME={install_dir}" in profile
        assert f"export ASTROBOA_REPOSITORIES_HOME={install_dir / 'repositories'}" in profile
        assert "export JBOSS_HOME=$TORQUEBOX_HOME/jboss" in profile

    def test_postgres_driver_selected(self, installer, install_dir, settings):
        specs = stage_packages(install_dir)
        plan = build_plan(install_dir=str(install_dir), database="postgres-8.4",
                          database_server="db.example.org", database_admin="astro")
        with _staged(specs):
            installer.install(plan)
        layout = build_layout(install_dir)
        assert "pg84" in (layout.jboss_modules / "org" / "postgresql" / "main" / "module.xml").read_text()
        xml = layout.standalone_xml.read_text()
        assert 'user="astro"' in xml
        assert 'host="db.example.org"' in xml
        assert json.loads(settings.conf_file.read_text())["database_server"] == "db.example.org"

    def test_linux_account_and_ownership(self, settings, linux_host, runner, install_dir, tmp_path):
        specs = stage_packages(install_dir)
        installer = Installer(settings, linux_host, runner=runner)
        profile = tmp_path / "home" / "astroboa" / ".bash_profile"
        with _staged(specs), \
                patch.object(LinuxHost, "profile_path", return_value=profile), \
                patch("astroboa_server.host.ensure_service_account") as ensure, \
                patch("astroboa_server.host.chown_recursive") as chown:
            installer.install(build_plan(install_dir=str(install_dir)))
        ensure.assert_called_once_with("astroboa", runner)
        assert chown.call_args_list == [
            call(profile, "astroboa", "astroboa"),
            call(install_dir, "astroboa", "astroboa"),
        ]
        assert "export PATH=$TORQUEBOX_HOME/jruby/bin:$PATH" in profile.read_text()

    def test_already_installed_touches_nothing(self, installer, install_dir, settings):
        (install_dir / "torquebox").mkdir(parents=True)
        with patch("astroboa_server.installer.fetch") as fetch:
            with pytest.raises(PreconditionError, match="already installed"):
                installer.install(build_plan(install_dir=str(install_dir)))
        fetch.assert_not_called()
        assert not settings.conf_file.exists()
        assert [p.name for p in install_dir.iterdir()] == ["torquebox"]

    def test_unsupported_java_stops_before_download(self, settings, mac_host, install_dir):
        runner = Mock()
        runner.run.return_value = CommandResult(returncode=0, output='java version "1.8.0_292"\n')
        installer = Installer(settings, mac_host, runner=runner)
        with pytest.raises(PreconditionError, match="Unsupported java version"):
            installer.install(build_plan(install_dir=str(install_dir)))
        assert not install_dir.exists()

    def test_torquebox_alias_collision(self, installer, install_dir, settings):
        specs = stage_packages(install_dir)
        # check_not_installed looks for a directory; a dangling link passes it
        (install_dir / "torquebox").symlink_to(install_dir / "missing")
        with _staged(specs):
            with pytest.raises(SymlinkError, match="already links to"):
                installer.install(build_plan(install_dir=str(install_dir)))
        assert not settings.conf_file.exists()

    def test_corrupt_package(self, installer, install_dir, settings):
        specs = stage_packages(install_dir)
        (install_dir / TORQUEBOX_PACKAGE).write_bytes(b"not a zip")
        with _staged(specs), patch("astroboa_server.installer.fetch"):
            with pytest.raises(ExtractionError):
                installer.install(build_plan(install_dir=str(install_dir)))
        assert not settings.conf_file.exists()

    def test_template_error_leaves_stock_config(self, installer, install_dir, settings):
        specs = stage_packages(install_dir, standalone_xml="<server>\n  <%= @no_such_key %>\n</server>\n")
        with _staged(specs):
            with pytest.raises(TemplateRenderError) as exc:
                installer.install(build_plan(install_dir=str(install_dir)))
        assert exc.value.line_number == 2
        layout = build_layout(install_dir)
        assert layout.standalone_xml.read_text() == "<server>stock</server>\n"
        assert not settings.conf_file.exists()


class TestDryRun:

    def test_fresh_host(self, installer, install_dir, settings):
        specs = stage_packages(install_dir)
        specs[0] = specs[0].model_copy(update={"expected_size": specs[0].expected_size + 1})
        with _staged(specs):
            plan = installer.plan(build_plan(install_dir=str(install_dir))).to_dict()

        assert plan["ok"] is True
        downloads = {a["target"]: a for a in plan["actions"] if a["action"] == "download"}
        assert downloads[TORQUEBOX_PACKAGE]["will_change"] is True
        assert downloads[ASTROBOA_EAR_PACKAGE]["will_change"] is False
        actions = [a["action"] for a in plan["actions"]]
        assert "ensure_account" not in actions
        assert actions[-2:] == ["save_settings", "write_profile"]
        assert plan["actions"][-2]["paths"]["file"] == str(settings.conf_file)
        assert not (install_dir / "torquebox").exists()

    def test_linux_plan_includes_account_steps(self, settings, linux_host, runner, install_dir):
        installer = Installer(settings, linux_host, runner=runner)
        plan = installer.plan(build_plan(install_dir=str(install_dir))).to_dict()
        actions = [a["action"] for a in plan["actions"]]
        assert "ensure_account" in actions
        assert actions[-1] == "chown"

    def test_existing_installation(self, installer, install_dir):
        (install_dir / "torquebox").mkdir(parents=True)
        plan = installer.plan(build_plan(install_dir=str(install_dir))).to_dict()
        assert plan["ok"] is False
        assert any("already installed" in n for n in plan["notes"])
