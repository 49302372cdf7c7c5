from __future__ import annotations

import logging

from vmfworld.common.diagnostics import DIAG_GEOMETRY, DIAG_PARSE, DiagnosticLog, LoadFailure


def test_diagnostic_log_folds_consecutive_duplicates() -> None:
    log = DiagnosticLog()
    log.geometry(context="solid 4", message="degenerate")
    log.geometry(context="solid 4", message="degenerate")
    log.parse(context="line 3", message="stray brace")
    log.geometry(context="solid 4", message="degenerate")

    items = log.items()
    assert len(items) == 3
    assert items[0].count == 2
    assert items[0].summary_line() == "[geometry] solid 4: degenerate (x2)"
    assert log.counts_by_kind() == {DIAG_GEOMETRY: 3, DIAG_PARSE: 1}
    assert [d.context for d in log.of_kind(DIAG_PARSE)] == ["line 3"]


def test_diagnostic_log_is_bounded() -> None:
    log = DiagnosticLog(max_items=2)
    for i in range(5):
        log.parse(context=f"c{i}", message="m")
    assert [d.context for d in log] == ["c0", "c1"]
    assert log.dropped == 3

    log.clear()
    assert len(log) == 0
    assert log.dropped == 0


def test_diagnostics_are_logged_as_warnings(caplog) -> None:
    log = DiagnosticLog()
    with caplog.at_level(logging.WARNING, logger="vmfworld.common.diagnostics"):
        log.parse(context="solid 1 side 2", message="malformed texture axis")
    assert "malformed texture axis" in caplog.text


def test_extend_preserves_counts() -> None:
    a = DiagnosticLog()
    a.parse(context="x", message="y")
    a.parse(context="x", message="y")
    b = DiagnosticLog()
    b.extend(a)
    assert b.items()[0].count == 2


def test_load_failure_carries_source() -> None:
    exc = LoadFailure("bad", source="maps/x.vmf")
    assert isinstance(exc, RuntimeError)
    assert exc.source == "maps/x.vmf"
    assert str(exc) == "bad"
