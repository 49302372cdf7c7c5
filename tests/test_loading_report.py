from __future__ import annotations

from vmfworld.world.loading_report import (
    LOAD_REPORT_SCHEMA,
    LOAD_STAGE_BUILD_WORLD,
    LOAD_STAGE_ORDER,
    LOAD_STAGE_PARSE_VMF,
    LOAD_STAGE_READ_SOURCE,
    LOAD_STAGE_TOTAL,
    LoadReporter,
)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def tick(self, dt: float) -> None:
        self.now += float(dt)

    def __call__(self) -> float:
        return float(self.now)


def test_load_report_times_each_stage_and_total() -> None:
    clock = _Clock()
    rep = LoadReporter(time_fn=clock)
    rep.begin(map_ref="maps/de_test.vmf")

    with rep.stage(LOAD_STAGE_READ_SOURCE):
        clock.tick(0.010)
    with rep.stage(LOAD_STAGE_PARSE_VMF):
        clock.tick(0.050)
    with rep.stage(LOAD_STAGE_BUILD_WORLD):
        clock.tick(0.200)
    clock.tick(0.005)
    rep.set_counts(visual_meshes=3, collision_meshes=2)
    rep.finish()
    payload = rep.as_payload()

    assert payload["schema"] == LOAD_REPORT_SCHEMA
    assert payload["stage_order"] == list(LOAD_STAGE_ORDER)
    stages = payload["stages_ms"]
    assert isinstance(stages, dict)
    assert abs(float(stages[LOAD_STAGE_READ_SOURCE]) - 10.0) < 1e-6
    assert abs(float(stages[LOAD_STAGE_PARSE_VMF]) - 50.0) < 1e-6
    assert abs(float(stages[LOAD_STAGE_BUILD_WORLD]) - 200.0) < 1e-6
    assert abs(float(stages[LOAD_STAGE_TOTAL]) - 265.0) < 1e-6
    assert payload["total_ms"] == stages[LOAD_STAGE_TOTAL]
    assert payload["counts"] == {"visual_meshes": 3, "collision_meshes": 2}
    assert payload["budget_pass"] is True
    assert payload["ok"] is True
    assert "error" not in payload
    assert payload["map_ref"] == "maps/de_test.vmf"


def test_stage_time_is_recorded_when_the_stage_raises() -> None:
    clock = _Clock()
    rep = LoadReporter(time_fn=clock)
    rep.begin(map_ref=None)
    try:
        with rep.stage(LOAD_STAGE_PARSE_VMF):
            clock.tick(1.0)
            raise ValueError("boom")
    except ValueError:
        pass
    rep.mark_failed("ValueError: boom")
    rep.finish()

    payload = rep.as_payload()
    assert rep.stage_ms(LOAD_STAGE_PARSE_VMF) == 1000.0
    assert payload["budget_pass"] is False
    assert payload["ok"] is False
    assert payload["error"] == "ValueError: boom"


def test_finish_is_idempotent() -> None:
    clock = _Clock()
    rep = LoadReporter(time_fn=clock)
    rep.begin(map_ref="m")
    clock.tick(0.1)
    rep.finish()
    clock.tick(5.0)
    rep.finish()
    assert abs(rep.stage_ms(LOAD_STAGE_TOTAL) - 100.0) < 1e-6
