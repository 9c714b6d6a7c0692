"""Project directory management, intermediate artifacts, and voice previews."""

import json
import os
import re
import shutil

from drama_producer.constants import OUTPUT_DIR, PREVIEW_TEXT
from drama_producer.assembly import decode_pcm, resample
from drama_producer.exporter import encode_wav
from drama_producer.models import Character
from drama_producer.tts import clean_segment_text


# Invalidation map: setting key → list of subdirs to delete.
# Pitch is applied after synthesis, so cached segments survive a pitch change.
INVALIDATION_MAP = {
    "voice": ["previews", "segments", "final"],
    "pitch": ["previews", "final"],
    "script": ["segments", "final"],
}

PROJECT_SUBDIRS = ["segments", "previews", "final"]


def slug_from_path(script_path: str) -> str:
    """Convert script filename to output directory slug.

    "Neon Rain.txt" → "neon_rain"
    "/path/to/Tappu's Day.txt" → "tappu_s_day"
    """
    basename = os.path.splitext(os.path.basename(script_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug


def init_output_dir(script_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ and all subdirectories.

    Returns the project directory path.
    """
    slug = slug_from_path(script_path)
    project_dir = os.path.join(output_base, slug)
    for subdir in PROJECT_SUBDIRS:
        os.makedirs(os.path.join(project_dir, subdir), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data: dict) -> str:
    """Write JSON artifact to project_dir/filename.

    Returns path to the written file.
    """
    path = os.path.join(project_dir, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def load_artifact(project_dir: str, filename: str) -> dict | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def invalidate_downstream(project_dir: str, setting_key: str) -> list[str]:
    """Empty the subdirectories that depend on a changed setting.

    Returns list of cleared subdirectory names.
    """
    deleted = []
    for subdir in INVALIDATION_MAP.get(setting_key, []):
        path = os.path.join(project_dir, subdir)
        if os.path.exists(path) and os.listdir(path):
            shutil.rmtree(path)
            os.makedirs(path, exist_ok=True)
            deleted.append(subdir)
    return deleted


def get_project_status(project_dir: str) -> dict:
    """Return dict describing current state of each pipeline step."""
    status = {}

    script = load_artifact(project_dir, "script.json")
    if script is not None:
        status["parse"] = {"state": "done", "segments": len(script.get("segments", []))}
    else:
        status["parse"] = {"state": "pending"}
        script = {}

    cast = load_artifact(project_dir, "cast.json")
    if cast is not None:
        status["cast"] = {"state": "done", "characters": len(cast.get("characters", {}))}
    else:
        status["cast"] = {"state": "pending"}

    seg_dir = os.path.join(project_dir, "segments")
    pcms = [f for f in os.listdir(seg_dir) if f.endswith(".pcm")] if os.path.isdir(seg_dir) else []
    # Segments with nothing to say never get a .pcm file
    expected = sum(1 for s in script.get("segments", []) if clean_segment_text(s.get("text", "")))
    if not pcms:
        status["tts"] = {"state": "pending"}
    elif len(pcms) >= expected:
        status["tts"] = {"state": "done", "files": len(pcms)}
    else:
        status["tts"] = {"state": "partial", "files": len(pcms), "expected": expected}

    final_dir = os.path.join(project_dir, "final")
    exported = []
    if os.path.isdir(final_dir):
        exported = [f for f in os.listdir(final_dir) if f.endswith((".wav", ".mp3"))]
    status["export"] = {"state": "done" if exported else "pending"}

    return status


def list_projects(output_base: str = OUTPUT_DIR) -> list[str]:
    """List all project slugs under the output directory.

    Returns sorted list of directory names that contain a script.json.
    """
    if not os.path.exists(output_base):
        return []
    projects = []
    for name in os.listdir(output_base):
        project_dir = os.path.join(output_base, name)
        if os.path.isdir(project_dir) and os.path.exists(os.path.join(project_dir, "script.json")):
            projects.append(name)
    return sorted(projects)


def generate_voice_previews(
    project_dir: str,
    characters: list[Character],
    provider,
    text: str = PREVIEW_TEXT,
) -> list[str]:
    """Render a short WAV per character in its voice and pitch.

    Existing previews are kept. Returns list of preview file paths.
    """
    preview_dir = os.path.join(project_dir, "previews")
    os.makedirs(preview_dir, exist_ok=True)

    paths = []
    for character in characters:
        speaker_slug = re.sub(r"[^a-z0-9]+", "_", character.name.lower()).strip("_")
        path = os.path.join(preview_dir, f"{speaker_slug}_{character.voice.lower()}.wav")
        if not os.path.exists(path):
            audio = provider.synthesize(text, character.voice, "")
            buffer = resample(decode_pcm(audio), character.pitch)
            with open(path, "wb") as f:
                f.write(encode_wav(buffer))
        paths.append(path)

    return paths
