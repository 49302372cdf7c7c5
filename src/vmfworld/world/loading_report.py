from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

LOAD_STAGE_READ_SOURCE = "read_source"
LOAD_STAGE_PARSE_VMF = "parse_vmf"
LOAD_STAGE_BUILD_WORLD = "build_world"
LOAD_STAGE_TOTAL = "total"

LOAD_STAGE_ORDER: tuple[str, ...] = (
    LOAD_STAGE_READ_SOURCE,
    LOAD_STAGE_PARSE_VMF,
    LOAD_STAGE_BUILD_WORLD,
    LOAD_STAGE_TOTAL,
)

# Soft budgets for perf tracking; a miss is reported, never enforced.
LOAD_STAGE_BUDGET_MS: dict[str, float] = {
    LOAD_STAGE_READ_SOURCE: 100.0,
    LOAD_STAGE_PARSE_VMF: 700.0,
    LOAD_STAGE_BUILD_WORLD: 1600.0,
    LOAD_STAGE_TOTAL: 2400.0,
}

LOAD_REPORT_SCHEMA = "vmfworld.load_report.v1"


def _now_iso_utc() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class LoadReportState:
    run_started_s: float = 0.0
    map_ref: str = ""
    stage_ms: dict[str, float] = field(default_factory=lambda: {name: 0.0 for name in LOAD_STAGE_ORDER})
    counts: dict[str, int] = field(default_factory=dict)
    finished: bool = False
    failed: str | None = None


class LoadReporter:
    def __init__(self, *, time_fn: Callable[[], float] | None = None) -> None:
        self._time_fn = time_fn if callable(time_fn) else time.perf_counter
        self._state = LoadReportState()

    def begin(self, *, map_ref: str | Path | None) -> None:
        self._state = LoadReportState(
            run_started_s=float(self._time_fn()),
            map_ref=str(map_ref) if map_ref is not None else "",
        )

    @contextmanager
    def stage(self, stage_name: str) -> Iterator[None]:
        if stage_name not in self._state.stage_ms:
            self._state.stage_ms[stage_name] = 0.0
        t0 = float(self._time_fn())
        try:
            yield
        finally:
            elapsed_ms = max(0.0, (float(self._time_fn()) - t0) * 1000.0)
            self._state.stage_ms[stage_name] = float(self._state.stage_ms.get(stage_name, 0.0)) + elapsed_ms

    def stage_ms(self, stage_name: str) -> float:
        return float(self._state.stage_ms.get(stage_name, 0.0))

    def set_counts(self, **counts: int) -> None:
        for k, v in counts.items():
            self._state.counts[str(k)] = int(v)

    def mark_failed(self, reason: str) -> None:
        self._state.failed = str(reason)

    def finish(self) -> None:
        if self._state.finished:
            return
        total_ms = max(0.0, (float(self._time_fn()) - float(self._state.run_started_s)) * 1000.0)
        self._state.stage_ms[LOAD_STAGE_TOTAL] = total_ms
        self._state.finished = True

    def as_payload(self) -> dict[str, object]:
        stage_ms = {name: float(self._state.stage_ms.get(name, 0.0)) for name in LOAD_STAGE_ORDER}
        budgets_ms = {name: float(LOAD_STAGE_BUDGET_MS[name]) for name in LOAD_STAGE_ORDER}
        budget_pass = all(float(stage_ms[name]) <= float(budgets_ms[name]) for name in LOAD_STAGE_ORDER)

        payload: dict[str, object] = {
            "event": "world_load_report",
            "schema": LOAD_REPORT_SCHEMA,
            "timestamp_utc": _now_iso_utc(),
            "map_ref": str(self._state.map_ref),
            "stage_order": list(LOAD_STAGE_ORDER),
            "stages_ms": stage_ms,
            "total_ms": float(stage_ms[LOAD_STAGE_TOTAL]),
            "budgets_ms": budgets_ms,
            "budget_pass": bool(budget_pass),
            "counts": dict(self._state.counts),
            "ok": self._state.failed is None,
        }
        if self._state.failed is not None:
            payload["error"] = self._state.failed
        return payload
