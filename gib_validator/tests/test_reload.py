# Path: gib_validator/tests/test_reload.py
"""Reload orchestration: ordering, scoping, failure isolation and exclusivity."""

import threading

import pytest

from gib_validator.engine.reload import ReloadOrchestrator
from gib_validator.exceptions import AssetError, ReloadInProgressError
from gib_validator.models.reload import AssetKind, ReloadResult, ReloadStatus


class RecordingComponent:

    def __init__(self, name, calls, fail=False, gate=None):
        self.name = name
        self.calls = calls
        self.fail = fail
        self.gate = gate

    def reload(self):
        self.calls.append(self.name)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise AssetError(f"{self.name} is broken")
        return ReloadResult.from_counts(self.name, 1, [], 0)


def _orchestrator(calls, failing=(), gate=None):
    return ReloadOrchestrator({
        kind: RecordingComponent(kind.value, calls, fail=kind in failing,
                                 gate=gate if kind is AssetKind.PROFILES else None)
        for kind in (AssetKind.TEMPLATES, AssetKind.SCHEMATRON, AssetKind.PROFILES, AssetKind.SCHEMA)
    })


def test_reload_all_in_dependency_order():
    calls = []
    report = _orchestrator(calls).reload_all()
    assert calls == ['PROFILES', 'SCHEMA', 'SCHEMATRON', 'TEMPLATES']
    assert report.status is ReloadStatus.SUCCESS


def test_scoped_reload_touches_only_named_kinds():
    calls = []
    report = _orchestrator(calls).reload([AssetKind.SCHEMATRON])
    assert calls == ['SCHEMATRON']
    assert [c.component_name for c in report.components] == ['SCHEMATRON']


def test_failing_component_does_not_stop_others():
    calls = []
    report = _orchestrator(calls, failing={AssetKind.SCHEMA}).reload_all()
    assert calls == ['PROFILES', 'SCHEMA', 'SCHEMATRON', 'TEMPLATES']
    assert report.status is ReloadStatus.PARTIAL
    statuses = {c.component_name: c.status for c in report.components}
    assert statuses['SCHEMA'] is ReloadStatus.FAILED
    assert statuses['TEMPLATES'] is ReloadStatus.OK
    assert 'SCHEMA is broken' in report.components[1].errors[0]


def test_second_reload_while_busy():
    calls = []
    gate = threading.Event()
    orchestrator = _orchestrator(calls, gate=gate)
    worker = threading.Thread(target=orchestrator.reload_all)
    worker.start()
    try:
        while not calls:
            pass
        assert orchestrator.in_progress
        busy = orchestrator.reload()
        assert busy.status is ReloadStatus.PARTIAL
        assert busy.components[0].errors == ['Reload already in progress']
        with pytest.raises(ReloadInProgressError):
            orchestrator.reload(raise_if_busy=True)
    finally:
        gate.set()
        worker.join(timeout=5)
    assert not orchestrator.in_progress


def test_real_components_report_generation(store, cache, registry):
    from gib_validator.engine.schema_validator import SchemaValidator
    from gib_validator.engine.transformer import XsltTransformer

    schema_validator = SchemaValidator(store, cache)
    orchestrator = ReloadOrchestrator({
        AssetKind.PROFILES: registry,
        AssetKind.SCHEMA: schema_validator,
        AssetKind.TEMPLATES: XsltTransformer(store),
    })
    first = orchestrator.reload_all()
    second = orchestrator.reload([AssetKind.SCHEMA])
    assert first.status is ReloadStatus.SUCCESS
    assert second.generation > first.generation
    assert schema_validator.pointer.current().number == second.generation


def test_waiting_reload_runs_after_busy_one():
    calls = []
    gate = threading.Event()
    orchestrator = _orchestrator(calls, gate=gate)
    worker = threading.Thread(target=orchestrator.reload_all)
    worker.start()
    reports = []
    waiter = threading.Thread(target=lambda: reports.append(orchestrator.reload([AssetKind.SCHEMATRON], wait=True)))
    try:
        while not calls:
            pass
        waiter.start()
        waiter.join(timeout=0.2)
        assert waiter.is_alive()
        assert reports == []
    finally:
        gate.set()
        worker.join(timeout=5)
        waiter.join(timeout=5)

    [report] = reports
    assert report.status is ReloadStatus.SUCCESS
    assert calls == ['PROFILES', 'SCHEMA', 'SCHEMATRON', 'TEMPLATES', 'SCHEMATRON']
