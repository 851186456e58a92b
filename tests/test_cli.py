"""
CLI tests (validate / plan-check / prompts).
"""
import sys
import os
import json

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from cli.clipscript_cli import main
from conftest import make_body, make_clip, scene


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestCli:

    def test_validate_ok(self, tmp_path, capsys):
        assert main(["validate", _write(tmp_path, "p.json", make_body())]) == 0
        assert "[OK]" in capsys.readouterr().out

    def test_validate_errors(self, tmp_path, capsys):
        assert main(["validate", _write(tmp_path, "p.json", make_body(prompt=""))]) == 1
        assert "REQUIRED_FIELD_MISSING" in capsys.readouterr().out

    def test_plan_check(self, tmp_path, capsys):
        clip = make_clip(duration=5.0)
        clips = _write(tmp_path, "clips.json", [clip.model_dump()])
        fits = _write(tmp_path, "fits.json", {"scenes": [scene(1, 4, clip)]})
        too_long = _write(tmp_path, "long.json", {"scenes": [scene(1, 20, clip)]})
        assert main(["plan-check", fits, clips]) == 0
        assert main(["plan-check", too_long, clips]) == 1
        assert "Scene 1: Text 14.0s" in capsys.readouterr().out

    def test_missing_file(self, tmp_path):
        assert main(["validate", str(tmp_path / "missing.json")]) == 2

    def test_prompts(self, capsys):
        assert main(["prompts", "--tag", "planning"]) == 0
        assert "video-scene-planner-v5" in capsys.readouterr().out
