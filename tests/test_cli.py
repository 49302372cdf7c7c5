from __future__ import annotations

import json
from pathlib import Path

from vmfworld.__main__ import main


def test_cli_prints_summary_and_writes_json(tmp_path: Path, capsys, make_vmf, box_solid, entity) -> None:
    src = tmp_path / "de_box.vmf"
    src.write_text(
        make_vmf(
            world_solids=(box_solid(),),
            entities=(entity("info_player_start", origin="32 32 0"),),
        ),
        encoding="utf-8",
    )
    out = tmp_path / "out" / "de_box.json"

    code = main([str(src), "--out", str(out)])
    assert code == 0

    text = capsys.readouterr().out
    assert "visual: 1 meshes / 12 tris" in text
    assert "spawn: info_player_start" in text

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["load_report"]["ok"] is True
    assert payload["collision_meshes"][0]["name"] == "Collision_0,0,-1"


def test_cli_navmesh_and_z_up_flags(tmp_path: Path, capsys, make_vmf, box_solid) -> None:
    src = tmp_path / "clip.vmf"
    src.write_text(make_vmf(world_solids=(box_solid(material="TOOLS/TOOLSNODRAW"),)), encoding="utf-8")

    assert main([str(src), "--navmesh", "--z-up", "--chunk-size", "5"]) == 0
    text = capsys.readouterr().out
    assert "visual: 1 meshes / 12 tris" in text
    assert "spawn: none" in text


def test_cli_reports_load_failure(tmp_path: Path, capsys) -> None:
    code = main([str(tmp_path / "missing.vmf")])
    assert code == 1
    assert "error:" in capsys.readouterr().err
