"""Tests for artifacts module: project layout, invalidation, status, previews."""

import os
from unittest.mock import MagicMock

from drama_producer.artifacts import (
    init_output_dir,
    slug_from_path,
    write_artifact,
    load_artifact,
    invalidate_downstream,
    get_project_status,
    list_projects,
    generate_voice_previews,
)


# --- Directory and file management ---

def test_init_output_dir(tmp_path):
    """Creates the project directory with all subdirs."""
    project_dir = init_output_dir(str(tmp_path / "noir.txt"), output_base=str(tmp_path / "output"))
    assert project_dir == str(tmp_path / "output" / "noir")
    for subdir in ["segments", "previews", "final"]:
        assert os.path.isdir(os.path.join(project_dir, subdir))


def test_init_output_dir_existing(tmp_path):
    """Re-running keeps existing files."""
    script = str(tmp_path / "noir.txt")
    project_dir = init_output_dir(script, output_base=str(tmp_path / "output"))
    marker = os.path.join(project_dir, "segments", "000_narrator.pcm")
    with open(marker, "wb") as f:
        f.write(b"\x00\x00")
    assert init_output_dir(script, output_base=str(tmp_path / "output")) == project_dir
    assert os.path.exists(marker)


def test_slug_from_path():
    assert slug_from_path("/path/to/Neon Rain.txt") == "neon_rain"
    assert slug_from_path("Tappu's Day.txt") == "tappu_s_day"
    assert slug_from_path("plain") == "plain"


def test_write_and_load_artifact(tmp_path):
    data = {"speaker": "जेठालाल", "segments": [1, 2]}
    path = write_artifact(str(tmp_path), "script.json", data)
    with open(path, encoding="utf-8") as f:
        raw = f.read()
    assert "जेठालाल" in raw
    assert load_artifact(str(tmp_path), "script.json") == data


def test_load_artifact_missing(tmp_path):
    assert load_artifact(str(tmp_path), "cast.json") is None


# --- Invalidation ---

def _project_with_files(tmp_path):
    project_dir = init_output_dir("noir.txt", output_base=str(tmp_path))
    for subdir in ["segments", "previews", "final"]:
        with open(os.path.join(project_dir, subdir, "file"), "w") as f:
            f.write("x")
    return project_dir


def test_invalidate_voice_clears_everything_downstream(tmp_path):
    project_dir = _project_with_files(tmp_path)
    assert invalidate_downstream(project_dir, "voice") == ["previews", "segments", "final"]
    for subdir in ["segments", "previews", "final"]:
        assert os.listdir(os.path.join(project_dir, subdir)) == []


def test_invalidate_pitch_keeps_segments(tmp_path):
    project_dir = _project_with_files(tmp_path)
    assert invalidate_downstream(project_dir, "pitch") == ["previews", "final"]
    assert os.listdir(os.path.join(project_dir, "segments")) == ["file"]


def test_invalidate_script_keeps_previews(tmp_path):
    project_dir = _project_with_files(tmp_path)
    assert invalidate_downstream(project_dir, "script") == ["segments", "final"]
    assert os.listdir(os.path.join(project_dir, "previews")) == ["file"]


def test_invalidate_skips_empty_dirs(tmp_path):
    project_dir = init_output_dir("noir.txt", output_base=str(tmp_path))
    assert invalidate_downstream(project_dir, "voice") == []
    assert invalidate_downstream(project_dir, "unknown") == []


# --- Status ---

def test_status_new_project(tmp_path):
    project_dir = init_output_dir("noir.txt", output_base=str(tmp_path))
    status = get_project_status(project_dir)
    assert {step: s["state"] for step, s in status.items()} == {
        "parse": "pending", "cast": "pending", "tts": "pending", "export": "pending",
    }


def test_status_partial_then_done(tmp_path):
    project_dir = init_output_dir("noir.txt", output_base=str(tmp_path))
    write_artifact(project_dir, "script.json", {"segments": [
        {"speaker": "Hero", "text": "Hi."},
        {"speaker": "Hero", "text": "Bye."},
    ]})
    write_artifact(project_dir, "cast.json", {"characters": {"Hero": {}}})
    with open(os.path.join(project_dir, "segments", "000_hero.pcm"), "wb") as f:
        f.write(b"\x00\x00")

    status = get_project_status(project_dir)
    assert status["parse"] == {"state": "done", "segments": 2}
    assert status["cast"] == {"state": "done", "characters": 1}
    assert status["tts"] == {"state": "partial", "files": 1, "expected": 2}

    with open(os.path.join(project_dir, "segments", "001_hero.pcm"), "wb") as f:
        f.write(b"\x00\x00")
    with open(os.path.join(project_dir, "final", "noir.wav"), "wb") as f:
        f.write(b"RIFF")

    status = get_project_status(project_dir)
    assert status["tts"] == {"state": "done", "files": 2}
    assert status["export"]["state"] == "done"


def test_status_done_when_silent_segments_have_no_file(tmp_path):
    project_dir = init_output_dir("noir.txt", output_base=str(tmp_path))
    write_artifact(project_dir, "script.json", {"segments": [
        {"speaker": "Hero", "text": "Hi."},
        {"speaker": "Villain", "text": "(sighs)"},
    ]})
    with open(os.path.join(project_dir, "segments", "000_hero.pcm"), "wb") as f:
        f.write(b"\x00\x00")

    status = get_project_status(project_dir)
    assert status["parse"]["segments"] == 2
    assert status["tts"] == {"state": "done", "files": 1}


def test_list_projects(tmp_path):
    base = str(tmp_path)
    for name in ["zeta", "alpha"]:
        write_artifact(init_output_dir(f"{name}.txt", output_base=base), "script.json", {})
    init_output_dir("empty.txt", output_base=base)
    assert list_projects(base) == ["alpha", "zeta"]


def test_list_projects_missing_dir(tmp_path):
    assert list_projects(str(tmp_path / "nope")) == []


# --- Voice previews ---

def test_generate_voice_previews(tmp_path, sample_characters, make_pcm):
    provider = MagicMock()
    provider.synthesize.return_value = make_pcm([1000] * 4800)

    paths = generate_voice_previews(str(tmp_path), sample_characters, provider, text="Hi.")

    assert [os.path.basename(p) for p in paths] == [
        "narrator_charon.wav", "detective_fenrir.wav", "robot_puck.wav",
    ]
    # Robot pitch 1.2 shortens 4800 samples to 4000
    assert os.path.getsize(paths[2]) == 44 + 4000 * 2
    assert os.path.getsize(paths[1]) == 44 + round(4800 / 0.9) * 2
    provider.synthesize.assert_any_call("Hi.", "Puck", "")


def test_generate_voice_previews_keeps_existing(tmp_path, sample_characters, make_pcm):
    provider = MagicMock()
    provider.synthesize.return_value = make_pcm([0] * 10)
    generate_voice_previews(str(tmp_path), sample_characters, provider)
    generate_voice_previews(str(tmp_path), sample_characters, provider)
    assert provider.synthesize.call_count == 3
