"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import logging
import os
import shutil
import sys
from dataclasses import asdict

from drama_producer.constants import (
    OUTPUT_DIR,
    REGISTRY_FILENAME,
    VOICE_POOL,
    VOICE_META,
    SUPPORTED_LANGUAGES,
    VERSION,
)
from drama_producer.errors import DramaProducerError
from drama_producer.models import DialogueSegment
from drama_producer.parser import parse_script, group_segments
from drama_producer.voices import (
    VoiceRegistry,
    cast_characters,
    set_voice,
    set_pitch,
    apply_cast_suggestions,
    characters_to_cast_data,
    characters_from_cast_data,
    pitch_label,
)
from drama_producer.tts import (
    GeminiSpeechProvider,
    EdgeSpeechProvider,
    generate_drama_audio,
    get_api_key,
)
from drama_producer.assembly import assemble_drama, format_time
from drama_producer.exporter import export
from drama_producer.writer import generate_script, humanize_script, suggest_character_mapping
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


def _registry() -> VoiceRegistry:
    return VoiceRegistry(os.path.join(OUTPUT_DIR, REGISTRY_FILENAME))


def _get_project_dir(slug: str) -> str:
    """Get project directory path, verify it exists."""
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if not os.path.isdir(project_dir):
        print(f"Error: Project '{slug}' not found.", file=sys.stderr)
        print("Run 'drama-producer new <file>' to create a project.", file=sys.stderr)
        raise SystemExit(1)
    if not os.path.exists(os.path.join(project_dir, "script.json")):
        print(f"Error: Project '{slug}' is incomplete (no script.json).", file=sys.stderr)
        raise SystemExit(1)
    return project_dir


def _read_text_file(file_path: str) -> str:
    if not os.path.exists(file_path):
        print(f"Error: File not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    with open(file_path, encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        print(f"Error: File is empty: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return text


def _make_provider(name: str):
    """Pick a speech provider; "auto" prefers Gemini when a key is set."""
    if name == "auto":
        name = "gemini" if get_api_key() else "edge"
    if name == "gemini":
        return GeminiSpeechProvider()
    return EdgeSpeechProvider()


def cmd_new(args):
    """Create (or re-parse) a project from a script file."""
    file_path = args.file
    text = _read_text_file(file_path)

    lines = parse_script(text)
    if not lines:
        print(f"Error: No speaker lines found in: {file_path}", file=sys.stderr)
        print("Use the format 'Name: Dialogue', one speaker per line.", file=sys.stderr)
        raise SystemExit(1)
    segments = group_segments(lines)

    slug = slug_from_path(file_path)
    existed = os.path.exists(os.path.join(OUTPUT_DIR, slug, "script.json"))
    project_dir = init_output_dir(file_path, output_base=OUTPUT_DIR)

    previous = characters_from_cast_data(load_artifact(project_dir, "cast.json"))
    characters = cast_characters(lines, previous=previous, registry=_registry())

    write_artifact(project_dir, "script.json", {
        "source": os.path.abspath(file_path),
        "text": text,
        "lines": [asdict(line) for line in lines],
        "segments": [asdict(seg) for seg in segments],
    })
    write_artifact(project_dir, "cast.json", characters_to_cast_data(characters))

    if existed:
        invalidate_downstream(project_dir, "script")
        print(f"Updated project: {slug}")
    else:
        print(f"Created project: {slug}")
    print(f"Parsed {len(lines)} lines into {len(segments)} segments, {len(characters)} characters")
    for character in characters:
        print(f"  {character.name:<20} → {character.voice} @ {character.pitch:.2f}")
    print(f"Run 'drama-producer run {slug}' to generate audio.")


def cmd_write(args):
    """Write a new script from a prompt."""
    if args.language not in SUPPORTED_LANGUAGES:
        print(f"Error: Unsupported language: {args.language}", file=sys.stderr)
        print(f"Supported: {', '.join(SUPPORTED_LANGUAGES)}", file=sys.stderr)
        raise SystemExit(1)
    script = generate_script(args.prompt, language=args.language)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(script)
        print(f"Script written to {args.output}")
    else:
        print(script)


def cmd_humanize(args):
    """Rewrite a script file with natural hesitations."""
    text = _read_text_file(args.file)
    script = humanize_script(text)
    output = args.output or args.file
    with open(output, "w", encoding="utf-8") as f:
        f.write(script)
    print(f"Humanized script written to {output}")


def cmd_status(args):
    """Show project status."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json")
    status = get_project_status(project_dir)

    print(f"Project: {slug}")
    print(f"Source:  {script.get('source', 'unknown')}")
    print(f"Lines: {len(script.get('lines', []))}, segments: {len(script.get('segments', []))}")

    if cast_data:
        print("Cast:")
        for character in characters_from_cast_data(cast_data):
            print(f"  {character.name:<20} → {character.voice:<8} "
                  f"pitch {character.pitch:.2f} ({pitch_label(character.pitch)})")

    print("Steps:")
    for step in ["parse", "cast", "tts", "export"]:
        info = status.get(step, {"state": "pending"})
        state = info["state"]
        marker = "[done]" if state == "done" else "[part]" if state == "partial" else "[----]"
        details = ""
        if state == "partial":
            details = f" ({info['files']}/{info.get('expected', '?')} files)"
        elif state == "done" and "files" in info:
            details = f" ({info['files']} files)"
        print(f"  {marker} {step:<8}{details}")


def cmd_set(args):
    """Change a character's voice or pitch."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    key = args.key
    values = args.values
    if key not in ("voice", "pitch"):
        print(f"Error: Invalid setting key: {key}", file=sys.stderr)
        print("Valid keys: pitch, voice", file=sys.stderr)
        raise SystemExit(1)
    if len(values) < 2:
        print(f"Error: 'set {key}' requires <speaker> and <value>", file=sys.stderr)
        raise SystemExit(1)

    speaker, value = values[0], values[1]
    characters = characters_from_cast_data(load_artifact(project_dir, "cast.json"))
    registry = _registry()

    try:
        if key == "voice":
            character = set_voice(characters, speaker, value, registry=registry)
            print(f"Updated: {character.name} → {character.voice}")
        else:
            character = set_pitch(characters, speaker, float(value), registry=registry)
            print(f"Updated: {character.name} pitch → {character.pitch:.2f} ({pitch_label(character.pitch)})")
    except (KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    write_artifact(project_dir, "cast.json", characters_to_cast_data(characters))

    deleted = invalidate_downstream(project_dir, key)
    if deleted:
        print(f"Invalidated: {', '.join(deleted)} (will regenerate on next run)")


def cmd_autocast(args):
    """Let the model pick voices and pitches for the cast."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    characters = characters_from_cast_data(load_artifact(project_dir, "cast.json"))
    if not characters:
        print("Error: Project has no characters to cast.", file=sys.stderr)
        raise SystemExit(1)

    mapping = suggest_character_mapping(script.get("text", ""), [c.name for c in characters])
    updated = apply_cast_suggestions(characters, mapping, registry=_registry())
    write_artifact(project_dir, "cast.json", characters_to_cast_data(characters))

    print(f"Auto-cast {len(updated)}/{len(characters)} characters")
    for character in characters:
        print(f"  {character.name:<20} → {character.voice} @ {character.pitch:.2f}")
    if updated:
        invalidate_downstream(project_dir, "voice")


def cmd_preview(args):
    """Render a short voice preview per character."""
    project_dir = _get_project_dir(args.slug)
    characters = characters_from_cast_data(load_artifact(project_dir, "cast.json"))
    if args.speaker:
        characters = [c for c in characters if c.name.lower() == args.speaker.lower()]
        if not characters:
            print(f"Error: No character named '{args.speaker}'.", file=sys.stderr)
            raise SystemExit(1)

    paths = generate_voice_previews(project_dir, characters, _make_provider(args.provider))
    for path in paths:
        print(f"  {path}")


def cmd_run(args):
    """Synthesize every segment, assemble the timeline and export it."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json")
    segments = [DialogueSegment(**s) for s in script.get("segments", [])]
    characters = characters_from_cast_data(cast_data)

    seg_dir = os.path.join(project_dir, "segments")
    if args.force and os.path.exists(seg_dir):
        shutil.rmtree(seg_dir)
    os.makedirs(seg_dir, exist_ok=True)

    synthesized = generate_drama_audio(
        segments,
        characters,
        _make_provider(args.provider),
        on_progress=lambda status: print(f"  {status}"),
        cache_dir=seg_dir,
    )
    if not synthesized:
        print("Error: No audio generated. Check the script has speakable dialogue.", file=sys.stderr)
        raise SystemExit(1)

    print("Assembling timeline...")
    assembled = assemble_drama(synthesized, characters)

    output_path = export(
        assembled, project_dir, slug,
        {"title": slug.replace("_", " ").title(), "source": script.get("source", "")},
        cast_data or {},
        len(synthesized),
        fmt=args.format,
    )
    print(f"Done: {output_path} ({format_time(assembled.duration)})")


def cmd_list(args):
    """List all projects."""
    projects = list_projects(output_base=OUTPUT_DIR)
    if not projects:
        print("No projects found.")
        return
    print("Projects:")
    for name in projects:
        status = get_project_status(os.path.join(OUTPUT_DIR, name))
        marker = "[done]" if status["export"]["state"] == "done" else "[----]"
        print(f"  {marker} {name}")


def cmd_voices(args):
    """List available voices."""
    filter_str = args.filter.lower() if args.filter else None
    voices = VOICE_POOL
    if filter_str:
        voices = [
            v for v in voices
            if filter_str in v.lower() or filter_str in VOICE_META[v]["gender"].lower()
        ]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v:<8} {VOICE_META[v]['gender']:<7} {VOICE_META[v]['traits']}")


def cmd_forget(args):
    """Forget all remembered voice choices."""
    registry = _registry()
    count = len(registry)
    registry.clear()
    print(f"Forgot {count} saved voice settings.")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="drama-producer",
        description="Drama Producer: turn 'Speaker: Dialogue' scripts into multi-voice audio dramas",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline details")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    new_parser = subparsers.add_parser("new", help="Create or re-parse a project from a script file")
    new_parser.add_argument("file", help="Path to the script text file")
    new_parser.set_defaults(func=cmd_new)

    write_parser = subparsers.add_parser("write", help="Write a new script from a prompt")
    write_parser.add_argument("prompt", help="What the scene is about")
    write_parser.add_argument("--language", default="English", help="Script language")
    write_parser.add_argument("-o", "--output", help="Write the script to this file")
    write_parser.set_defaults(func=cmd_write)

    humanize_parser = subparsers.add_parser("humanize", help="Add natural hesitations to a script")
    humanize_parser.add_argument("file", help="Path to the script text file")
    humanize_parser.add_argument("-o", "--output", help="Write to this file instead of in place")
    humanize_parser.set_defaults(func=cmd_humanize)

    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("slug", help="Project slug")
    status_parser.set_defaults(func=cmd_status)

    set_parser = subparsers.add_parser("set", help="Change a character's voice or pitch")
    set_parser.add_argument("slug", help="Project slug")
    set_parser.add_argument("key", help="voice or pitch")
    set_parser.add_argument("values", nargs="*", help="<speaker> <value>")
    set_parser.set_defaults(func=cmd_set)

    autocast_parser = subparsers.add_parser("autocast", help="Auto-assign voices and pitches")
    autocast_parser.add_argument("slug", help="Project slug")
    autocast_parser.set_defaults(func=cmd_autocast)

    preview_parser = subparsers.add_parser("preview", help="Render voice previews")
    preview_parser.add_argument("slug", help="Project slug")
    preview_parser.add_argument("speaker", nargs="?", help="Only this character")
    preview_parser.add_argument("--provider", choices=["auto", "gemini", "edge"], default="auto")
    preview_parser.set_defaults(func=cmd_preview)

    run_parser = subparsers.add_parser("run", help="Generate the audio drama")
    run_parser.add_argument("slug", help="Project slug")
    run_parser.add_argument("--provider", choices=["auto", "gemini", "edge"], default="auto")
    run_parser.add_argument("--format", choices=["wav", "mp3"], default="wav")
    run_parser.add_argument("--force", action="store_true", help="Discard cached segments")
    run_parser.set_defaults(func=cmd_run)

    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.set_defaults(func=cmd_list)

    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by name or gender")
    voices_parser.set_defaults(func=cmd_voices)

    forget_parser = subparsers.add_parser("forget", help="Forget saved voice settings")
    forget_parser.set_defaults(func=cmd_forget)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except DramaProducerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
