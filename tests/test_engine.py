"""
Tests for InstallEngine: skip, abort/continue, records and uninstall.
"""

import pytest

from alpine_pm.catalog import parse_catalog
from alpine_pm.engine import EngineState, InstallEngine, ItemStatus
from alpine_pm.errors import CycleError, PrerequisiteError, RecordError, SelectionError

from conftest import FakeAdapter


ABC = """\
components:
  A:
    priority: 1
  B:
    priority: 2
  C:
    priority: 3
"""


def make_engine(catalog, adapters, records, packages, services, **kwargs):
    return InstallEngine(
        catalog=catalog,
        adapters=adapters,
        records=records,
        packages=packages,
        services=services,
        os_version="3.19.1",
        **kwargs,
    )


@pytest.fixture
def abc_catalog():
    return parse_catalog(ABC)


@pytest.fixture
def abc_adapters(call_log):
    return {
        "A": FakeAdapter("A", log=call_log),
        "B": FakeAdapter("B", fail=True, log=call_log),
        "C": FakeAdapter("C", log=call_log),
    }


class TestRun:
    """Tests for InstallEngine.run()."""

    def test_installs_in_queue_order(self, catalog, adapters, records, packages, services, call_log):
        engine = make_engine(catalog, adapters, records, packages, services)
        outcome = engine.run(["web-app"])
        assert call_log == ["install base-tools", "install web-server", "install web-app"]
        assert outcome.succeeded == ["base-tools", "web-server", "web-app"]
        assert outcome.ok
        assert engine.state is EngineState.DONE
        assert [r.component_id for r in records.all()] == ["base-tools", "web-app", "web-server"]

    def test_recorded_component_is_skipped(self, catalog, adapters, records, packages, services, call_log):
        records.write(catalog.get("editor"), os_version="x")
        outcome = make_engine(catalog, adapters, records, packages, services).run(["editor"])
        assert call_log == []
        assert outcome.skipped == ["editor"]
        assert outcome.succeeded == []
        assert outcome.failed == []
        assert outcome.ok

    def test_probe_installed_is_skipped_without_record(self, catalog, adapters, records, packages, services, call_log):
        adapters["editor"].installed = True
        outcome = make_engine(catalog, adapters, records, packages, services).run(["editor"])
        assert outcome.skipped == ["editor"]
        assert call_log == []
        assert not records.exists("editor")

    def test_abort_after_failure(self, abc_catalog, abc_adapters, records, packages, services, call_log):
        engine = make_engine(abc_catalog, abc_adapters, records, packages, services, on_failure=lambda cid, e: False)
        outcome = engine.run(["A", "B", "C"])
        assert call_log == ["install A", "install B"]
        assert outcome.succeeded == ["A"]
        assert outcome.failed == ["B"]
        assert "C" not in outcome.succeeded + outcome.failed + outcome.skipped
        assert outcome.not_attempted == ["C"]
        assert outcome.aborted
        assert engine.state is EngineState.ABORTED
        assert not records.exists("B")

    def test_default_policy_aborts(self, abc_catalog, abc_adapters, records, packages, services, call_log):
        outcome = make_engine(abc_catalog, abc_adapters, records, packages, services).run(["A", "B", "C"])
        assert outcome.aborted
        assert "install C" not in call_log

    def test_continue_after_failure(self, abc_catalog, abc_adapters, records, packages, services, call_log):
        asked = []

        def on_failure(cid, error):
            asked.append((cid, str(error)))
            return True

        engine = make_engine(abc_catalog, abc_adapters, records, packages, services, on_failure=on_failure)
        outcome = engine.run(["A", "B", "C"])
        assert call_log == ["install A", "install B", "install C"]
        assert outcome.succeeded == ["A", "C"]
        assert outcome.failed == ["B"]
        assert "simulated failure" in outcome.errors["B"]
        assert asked[0][0] == "B"
        assert not outcome.ok
        assert not outcome.aborted
        assert engine.state is EngineState.DONE

    def test_missing_adapter_fails_item(self, catalog, records, packages, services):
        engine = make_engine(catalog, {}, records, packages, services, on_failure=lambda cid, e: True)
        outcome = engine.run(["editor"])
        assert outcome.failed == ["editor"]
        assert "no installer registered" in outcome.errors["editor"]

    def test_os_error_fails_item(self, catalog, adapters, records, packages, services):
        def boom(ctx):
            raise OSError("disk full")

        adapters["editor"].install = boom
        outcome = make_engine(catalog, adapters, records, packages, services).run(["editor"])
        assert outcome.failed == ["editor"]

    def test_undecodable_config_fails_item(self, catalog, adapters, records, packages, services, call_log):
        def bad_bytes(ctx):
            b"# caf\xe9".decode("utf-8")

        adapters["base-tools"].install = bad_bytes
        engine = make_engine(catalog, adapters, records, packages, services, on_failure=lambda cid, e: True)
        outcome = engine.run(["base-tools", "editor"])
        assert outcome.failed == ["base-tools"]
        assert "can't decode" in outcome.errors["base-tools"]
        assert outcome.succeeded == ["editor"]
        assert engine.state is EngineState.DONE

    def test_status_probe_error_means_not_installed(self, catalog, adapters, records, packages, services, call_log):
        def bad_probe(ctx):
            raise ValueError("unreadable /etc/apk/repositories")

        adapters["editor"].status = bad_probe
        outcome = make_engine(catalog, adapters, records, packages, services).run(["editor"])
        assert call_log == ["install editor"]
        assert outcome.succeeded == ["editor"]

    def test_progress_events(self, catalog, adapters, records, packages, services):
        events = []
        records.write(catalog.get("base-tools"), os_version="x")
        engine = make_engine(
            catalog, adapters, records, packages, services, on_progress=lambda *a: events.append(a)
        )
        engine.run(["web-server"])
        assert events == [
            (1, 2, "base-tools", ItemStatus.SKIPPED),
            (2, 2, "web-server", ItemStatus.SUCCEEDED),
        ]

    def test_record_failure_keeps_success(self, catalog, adapters, records, packages, services, monkeypatch):
        def fail_write(component, *, os_version):
            raise RecordError(component.id, "read-only file system")

        monkeypatch.setattr(records, "write", fail_write)
        outcome = make_engine(catalog, adapters, records, packages, services).run(["editor"])
        assert outcome.succeeded == ["editor"]
        assert outcome.unrecorded == ["editor"]
        assert outcome.ok

    def test_dry_run_writes_no_records(self, catalog, adapters, records, packages, services):
        outcome = make_engine(catalog, adapters, records, packages, services, dry_run=True).run(["editor"])
        assert outcome.succeeded == ["editor"]
        assert records.all() == []

    def test_prerequisite_failure_before_any_install(self, catalog, adapters, records, packages, services, call_log):
        def prerequisites():
            raise PrerequisiteError(["must be run as root"])

        engine = make_engine(catalog, adapters, records, packages, services, prerequisites=prerequisites)
        with pytest.raises(PrerequisiteError, match="must be run as root"):
            engine.run(["editor"])
        assert call_log == []
        assert engine.state is EngineState.INITIALIZING

    def test_cycle_is_fatal(self, records, packages, services, call_log):
        cat = parse_catalog("components:\n  a:\n    dependencies: [b]\n  b:\n    dependencies: [a]\n")
        adapters = {cid: FakeAdapter(cid, log=call_log) for cid in ("a", "b")}
        with pytest.raises(CycleError):
            make_engine(cat, adapters, records, packages, services).run(["a"])
        assert call_log == []

    def test_empty_selection(self, catalog, adapters, records, packages, services):
        with pytest.raises(SelectionError):
            make_engine(catalog, adapters, records, packages, services).run([])

    def test_second_run_skips_everything(self, catalog, adapters, records, packages, services, call_log):
        make_engine(catalog, adapters, records, packages, services).run(["web-server"])
        call_log.clear()
        outcome = make_engine(catalog, adapters, records, packages, services).run(["web-server"])
        assert call_log == []
        assert outcome.skipped == ["base-tools", "web-server"]


class TestUninstall:
    """Tests for InstallEngine.uninstall()."""

    def test_uninstall(self, catalog, adapters, records, packages, services, call_log):
        records.write(catalog.get("editor"), os_version="x")
        make_engine(catalog, adapters, records, packages, services).uninstall("editor")
        assert call_log == ["uninstall editor"]
        assert not records.exists("editor")

    def test_uninstall_without_record(self, catalog, adapters, records, packages, services, call_log):
        with pytest.raises(RecordError, match="not installed"):
            make_engine(catalog, adapters, records, packages, services).uninstall("editor")
        assert call_log == []

    def test_uninstall_without_adapter_removes_record(self, catalog, records, packages, services):
        records.write(catalog.get("editor"), os_version="x")
        make_engine(catalog, {}, records, packages, services).uninstall("editor")
        assert not records.exists("editor")

    def test_uninstall_dry_run_keeps_record(self, catalog, adapters, records, packages, services):
        records.write(catalog.get("editor"), os_version="x")
        make_engine(catalog, adapters, records, packages, services, dry_run=True).uninstall("editor")
        assert records.exists("editor")
