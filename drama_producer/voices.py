"""Casting: derive characters from a script and remember their voices."""

import json
import logging
import os
import uuid

from drama_producer.models import Character, ParsedLine
from drama_producer.constants import (
    VOICE_POOL,
    PITCH_MIN,
    PITCH_MAX,
    PITCH_NEUTRAL,
)

logger = logging.getLogger(__name__)


class VoiceRegistry:
    """Persisted mapping of character name → {"voice", "pitch"}.

    Read once at construction and written back on every change. With no
    path the registry lives in memory only.
    """

    def __init__(self, path: str | None = None):
        self.path = path
        self._entries = self._load()

    def _load(self) -> dict:
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Malformed voice registry: %s, starting empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Voice registry %s is not an object, starting empty", self.path)
            return {}

        entries = {}
        for name, entry in data.items():
            voice = entry.get("voice") if isinstance(entry, dict) else None
            pitch = entry.get("pitch") if isinstance(entry, dict) else None
            if voice not in VOICE_POOL or isinstance(pitch, bool) or not isinstance(pitch, (int, float)):
                logger.warning("Dropping invalid voice registry entry for %s: %r", name, entry)
                continue
            entries[name] = {"voice": voice, "pitch": clamp_pitch(float(pitch))}
        return entries

    def _save(self) -> None:
        if not self.path:
            return
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._entries, f, indent=2)

    def get(self, name: str) -> dict | None:
        """Exact lookup first, then case-insensitive."""
        if name in self._entries:
            return self._entries[name]
        lower = name.lower()
        for key, entry in self._entries.items():
            if key.lower() == lower:
                return entry
        return None

    def set(self, name: str, voice: str, pitch: float) -> None:
        self._entries[name] = {"voice": voice, "pitch": pitch}
        self._save()

    def clear(self) -> None:
        self._entries = {}
        if self.path and os.path.exists(self.path):
            os.remove(self.path)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None


def clamp_pitch(pitch: float) -> float:
    return max(PITCH_MIN, min(PITCH_MAX, pitch))


def find_speakers(parsed_lines: list[ParsedLine]) -> list[str]:
    """Distinct speakers in order of first appearance.

    Names that differ only in case merge; "SHAKTIMAAN" then "Shaktimaan"
    displays as "Shaktimaan".
    """
    unique = {}  # lowercase -> display name
    for line in parsed_lines:
        name = line.speaker_clean
        lower = name.lower()
        stored = unique.get(lower)
        if stored is None:
            unique[lower] = name
        elif stored == stored.upper() and name != name.upper():
            unique[lower] = name
    return list(unique.values())


def cast_characters(
    parsed_lines: list[ParsedLine],
    previous: list[Character] | None = None,
    registry: VoiceRegistry | None = None,
) -> list[Character]:
    """Rebuild the cast for the current script.

    Priority per speaker: registry entry → previous character → next
    default voice from the pool at neutral pitch. Speakers no longer in the
    script are dropped; their registry entries stay.
    """
    if registry is None:
        registry = VoiceRegistry()
    previous_map = {c.name.lower(): c for c in previous or []}

    cast = []
    voice_index = 0
    for name in find_speakers(parsed_lines):
        entry = registry.get(name)
        existing = previous_map.get(name.lower())

        if existing is not None:
            character = Character(
                id=existing.id,
                name=name,
                voice=entry["voice"] if entry else existing.voice,
                pitch=entry["pitch"] if entry else existing.pitch,
            )
        elif entry is not None:
            character = Character(
                id=str(uuid.uuid4()),
                name=name,
                voice=entry["voice"],
                pitch=entry["pitch"],
            )
        else:
            voice = VOICE_POOL[voice_index % len(VOICE_POOL)]
            voice_index += 1
            character = Character(id=str(uuid.uuid4()), name=name, voice=voice, pitch=PITCH_NEUTRAL)
            registry.set(name, voice, PITCH_NEUTRAL)

        cast.append(character)

    return cast


def _find_character(characters: list[Character], name: str) -> Character:
    for character in characters:
        if character.name.lower() == name.lower():
            return character
    raise KeyError(f"No character named '{name}' in the cast")


def set_voice(
    characters: list[Character],
    name: str,
    voice: str,
    registry: VoiceRegistry | None = None,
) -> Character:
    """Change a character's voice and remember it."""
    if voice not in VOICE_POOL:
        raise ValueError(f"Unknown voice '{voice}'. Available: {', '.join(VOICE_POOL)}")
    character = _find_character(characters, name)
    character.voice = voice
    if registry is not None:
        registry.set(character.name, character.voice, character.pitch)
    return character


def set_pitch(
    characters: list[Character],
    name: str,
    pitch: float,
    registry: VoiceRegistry | None = None,
) -> Character:
    """Change a character's pitch (clamped to the allowed range) and remember it."""
    character = _find_character(characters, name)
    character.pitch = clamp_pitch(pitch)
    if registry is not None:
        registry.set(character.name, character.voice, character.pitch)
    return character


def apply_cast_suggestions(
    characters: list[Character],
    mapping: dict,
    registry: VoiceRegistry | None = None,
) -> list[str]:
    """Apply an auto-cast mapping of name → {"voice", "pitch"}.

    Suggestions with unknown voices are ignored. Returns the names updated.
    """
    lowered = {key.lower(): value for key, value in mapping.items()}
    updated = []
    for character in characters:
        suggestion = mapping.get(character.name) or lowered.get(character.name.lower())
        if not isinstance(suggestion, dict) or suggestion.get("voice") not in VOICE_POOL:
            continue
        try:
            pitch = float(suggestion.get("pitch", PITCH_NEUTRAL))
        except (TypeError, ValueError):
            pitch = PITCH_NEUTRAL
        character.voice = suggestion["voice"]
        character.pitch = clamp_pitch(pitch)
        if registry is not None:
            registry.set(character.name, character.voice, character.pitch)
        updated.append(character.name)
    return updated


def build_voice_map(characters: list[Character]) -> dict[str, str]:
    return {c.name.lower(): c.voice for c in characters}


def build_pitch_map(characters: list[Character]) -> dict[str, float]:
    return {c.name.lower(): c.pitch for c in characters}


def pitch_label(pitch: float) -> str:
    """Human label for a pitch multiplier."""
    if pitch < 0.85:
        return "Giant/Villain"
    if pitch < 0.95:
        return "Deep/Serious"
    if pitch > 1.15:
        return "Child/Sidekick"
    if pitch > 1.05:
        return "Young/Energetic"
    return "Natural"


def characters_to_cast_data(characters: list[Character]) -> dict:
    """Serialize the cast for cast.json."""
    return {
        "characters": {
            c.name: {"id": c.id, "voice": c.voice, "pitch": c.pitch}
            for c in characters
        },
    }


def characters_from_cast_data(cast_data: dict | None) -> list[Character]:
    """Inverse of characters_to_cast_data()."""
    if not cast_data:
        return []
    return [
        Character(
            id=info.get("id") or str(uuid.uuid4()),
            name=name,
            voice=info.get("voice", ""),
            pitch=info.get("pitch", PITCH_NEUTRAL),
        )
        for name, info in cast_data.get("characters", {}).items()
    ]
