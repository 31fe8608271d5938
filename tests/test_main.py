"""
Tests for the alpine-pm command line.
"""

import io
import json

import pytest

from alpine_pm import __version__
from alpine_pm import main as cli_main
from alpine_pm.errors import PrerequisiteError
from alpine_pm.main import main, validate_catalog

from conftest import FakePackages, FakeServices


@pytest.fixture
def cli(monkeypatch, tmp_path, catalog_file, adapters, records):
    """Run main() against the sample catalog with fake backends."""
    monkeypatch.setattr(cli_main, "build_registry", lambda: adapters)
    monkeypatch.setattr(cli_main, "ApkBackend", FakePackages)
    monkeypatch.setattr(cli_main, "OpenRCBackend", FakeServices)
    monkeypatch.setattr("sys.stdin", io.StringIO(""))

    def run(*args, config=catalog_file):
        return main(
            [
                "--config",
                config,
                "--log",
                str(tmp_path / "pm.log"),
                "--records-dir",
                str(records.root),
                "--no-color",
                *args,
            ]
        )

    return run


class TestListing:
    """Tests for list / installed / stats / export."""

    def test_list(self, cli, capsys):
        assert cli("list") == 0
        out = capsys.readouterr().out
        assert "NETWORK" in out
        assert "Web Server (web-server)" in out
        assert "Not installed" in out

    def test_installed_empty(self, cli, capsys):
        assert cli("installed") == 0
        assert "No components installed yet" in capsys.readouterr().out

    def test_installed(self, cli, capsys, records, catalog):
        records.write(catalog.get("editor"), os_version="3.19.1")
        assert cli("installed") == 0
        out = capsys.readouterr().out
        assert "editor" in out
        assert "3.19.1" in out

    def test_export_json_stdout(self, cli, capsys):
        assert cli("export", "json") == 0
        data = json.loads(capsys.readouterr().out)
        assert sorted(data["components"]) == ["base-tools", "editor", "web-app", "web-server"]

    def test_export_env_file(self, cli, tmp_path):
        target = tmp_path / "catalog.env"
        assert cli("export", "env", "-o", str(target)) == 0
        assert 'COMPONENT_EDITOR_NAME="Editor"' in target.read_text(encoding="utf-8")

    def test_stats(self, cli, capsys):
        assert cli("stats") == 0
        out = capsys.readouterr().out
        assert "Available" in out
        assert "Installed packages" in out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_missing_config(self, cli, tmp_path, capsys):
        assert cli("list", config=str(tmp_path / "missing.yaml")) == 1
        assert "Configuration file not found" in capsys.readouterr().err

    def test_list_bracketed_description(self, cli, tmp_path, capsys):
        config = tmp_path / "brackets.yaml"
        config.write_text(
            "components:\n  tools:\n    description: \"Installs into [/usr/local]\"\n",
            encoding="utf-8",
        )
        assert cli("list", config=str(config)) == 0
        assert "Installs into [/usr/local]" in capsys.readouterr().out


class TestValidate:
    """Tests for the validate command."""

    def test_valid(self, cli, capsys):
        assert cli("validate") == 0
        assert "All components validated successfully" in capsys.readouterr().out

    def test_missing_installer(self, cli, adapters, capsys):
        del adapters["editor"]
        assert cli("validate") == 1
        assert "editor: no installer registered" in capsys.readouterr().out

    def test_cycle(self, cli, tmp_path, capsys):
        cyclic = tmp_path / "cyclic.yaml"
        cyclic.write_text(
            "components:\n  a:\n    dependencies: [b]\n  b:\n    dependencies: [a]\n",
            encoding="utf-8",
        )
        assert cli("validate", config=str(cyclic)) == 1
        assert "circular dependency: a -> b -> a" in capsys.readouterr().out

    def test_validate_catalog(self, catalog, adapters):
        results = validate_catalog(catalog, adapters)
        assert [cid for cid, _, _ in results] == catalog.ids()
        assert all(ok for _, ok, _ in results)


class TestUninstall:
    """Tests for the uninstall command."""

    def test_uninstall(self, cli, records, catalog, call_log):
        records.write(catalog.get("editor"), os_version="x")
        assert cli("uninstall", "editor") == 0
        assert call_log == ["uninstall editor"]
        assert not records.exists("editor")

    def test_uninstall_not_installed(self, cli, capsys, call_log):
        assert cli("uninstall", "editor") == 1
        assert "no installation record found" in capsys.readouterr().err
        assert call_log == []

    def test_uninstall_bracketed_argument(self, cli, capsys, call_log):
        assert cli("uninstall", "[/]") == 1
        captured = capsys.readouterr()
        assert "Uninstalling component: [/]" in captured.out
        assert "invalid component id" in captured.err
        assert call_log == []


class TestInstall:
    """Tests for non-interactive installation runs."""

    def test_components(self, cli, records, call_log, capsys):
        assert cli("install", "--components", "web-server", "--skip-checks") == 0
        assert call_log == ["install base-tools", "install web-server"]
        assert records.exists("base-tools")
        assert records.exists("web-server")
        assert "Installation Completed Successfully" in capsys.readouterr().out

    def test_already_installed(self, cli, records, catalog, call_log, capsys):
        records.write(catalog.get("editor"), os_version="x")
        assert cli("install", "--components", "editor", "--skip-checks") == 0
        assert call_log == []
        assert "Already installed (skipped)" in capsys.readouterr().out

    def test_failure_aborts_without_terminal(self, cli, adapters, call_log, capsys):
        adapters["base-tools"].fail = True
        assert cli("install", "--components", "web-server,editor", "--skip-checks") == 1
        assert call_log == ["install base-tools"]
        out = capsys.readouterr().out
        assert "Not attempted" in out

    def test_failure_continues_with_yes(self, cli, adapters, call_log):
        adapters["base-tools"].fail = True
        assert cli("install", "--components", "web-server,editor", "--skip-checks", "--yes") == 1
        assert call_log == ["install base-tools", "install editor", "install web-server"]

    def test_selection_file(self, cli, tmp_path, records):
        selection = tmp_path / "selection.txt"
        selection.write_text("# mine\neditor\n", encoding="utf-8")
        assert cli("install", "--selection", str(selection), "--skip-checks") == 0
        assert records.exists("editor")

    def test_save_selection(self, cli, tmp_path):
        target = tmp_path / "saved.txt"
        assert cli("install", "--components", "editor", "--skip-checks", "--save-selection", str(target)) == 0
        assert "editor  # Editor" in target.read_text(encoding="utf-8")

    def test_unknown_component(self, cli, capsys, call_log):
        assert cli("install", "--components", "ghost", "--skip-checks") == 1
        assert "Unknown component(s): ghost" in capsys.readouterr().err
        assert call_log == []

    def test_no_terminal_no_selection(self, cli, capsys):
        assert cli("install", "--skip-checks") == 1
        assert "No terminal" in capsys.readouterr().err

    def test_dry_run_leaves_no_records(self, cli, records):
        assert cli("--dry-run", "install", "--components", "editor", "--skip-checks") == 0
        assert records.all() == []

    def test_prerequisites_run_first(self, cli, monkeypatch, call_log, capsys):
        class OfflineChecker:
            def __init__(self, **kwargs):
                pass

            def check_environment(self):
                pass

            def verify(self):
                raise PrerequisiteError(["no internet connectivity"])

        monkeypatch.setattr(cli_main, "PrerequisiteChecker", OfflineChecker)
        assert cli("install", "--components", "editor") == 1
        assert call_log == []
        assert "no internet connectivity" in capsys.readouterr().err

    def test_environment_checked_before_selection(self, cli, monkeypatch, call_log, capsys):
        class NotRootChecker:
            def __init__(self, **kwargs):
                pass

            def check_environment(self):
                raise PrerequisiteError(["must be run as root"])

        monkeypatch.setattr(cli_main, "PrerequisiteChecker", NotRootChecker)
        # No terminal and no --components: the selection step would fail too.
        assert cli("install") == 1
        err = capsys.readouterr().err
        assert "must be run as root" in err
        assert "No terminal" not in err
        assert call_log == []
