"""Gemini text calls: write a script, humanize it, and suggest a cast."""

import json
import logging
import time
from typing import Callable

from google.genai import types

from drama_producer.constants import (
    GEMINI_TEXT_MODEL,
    TEXT_RETRY_COUNT,
    TEXT_RETRY_BASE_DELAY,
    SCRIPT_MAX_LINES,
    MAPPING_EXCERPT_CHARS,
    VOICE_META,
    PITCH_MIN,
    PITCH_MAX,
)
from drama_producer.tts import RetryPolicy, call_with_retry, create_client

logger = logging.getLogger(__name__)

TEXT_RETRY_POLICY = RetryPolicy(max_retries=TEXT_RETRY_COUNT, base_delay=TEXT_RETRY_BASE_DELAY)

SCREENWRITER_INSTRUCTION = """You are an expert screenwriter for audio dramas.
Task: Write a short, emotionally engaging scene based on the user's prompt.

Critical Rules for "Natural Human" Dialogue:
1. Language: {language}.
2. Format: "Speaker Name: Dialogue".
3. Style: HIGHLY CONVERSATIONAL. Use:
   - Stutters/Hesitations ("Um...", "I... I don't know")
   - Interjections ("Oh!", "Pfft.", "Aha!")
   - Emphasis (Use CAPS for loud parts)
4. Length: Keep it under {max_lines} lines.
5. Characters: Use distinct names.
6. Emotions: Write the dialogue so the emotion is obvious in the words themselves.
"""

DIALOGUE_DOCTOR_INSTRUCTION = """You are a Dialogue Doctor. Take a script and make it sound like REAL people talking.

Instructions:
1. Keep the exact same plot and speakers.
2. Add natural fillers like: "Um...", "Uh", "You know", "I mean".
3. Add micro-actions in text: "(laughs)", "(sighs)", "(whispers)".
4. Add stutters for nervousness: "W-what do you mean?"
5. Add interjections: "Pfft!", "Ugh.", "Whoa!"
6. Keep the format "Speaker: Dialogue".
7. Do NOT make it much longer, just rewrite the existing lines.
"""

PITCH_RULES = f"""PITCH RULES (Range {PITCH_MIN} to {PITCH_MAX}):
- 0.80 - 0.85: Giants, Monsters, Very Deep Villains.
- 0.90 - 0.95: Serious Adults, Tough Guys, Authority Figures.
- 1.00: Normal / Natural Adult.
- 1.05 - 1.10: Young Adults, Energetic, High Energy.
- 1.15 - 1.20: Children, Small Creatures, Nervous/Sidekicks."""


def _generate_text(client, contents: str, config: types.GenerateContentConfig) -> str:
    response = client.models.generate_content(
        model=GEMINI_TEXT_MODEL,
        contents=contents,
        config=config,
    )
    return response.text or ""


def generate_script(
    prompt: str,
    language: str = "English",
    client=None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Write a short "Speaker: Dialogue" scene from a prompt."""
    client = client or create_client()
    config = types.GenerateContentConfig(
        system_instruction=SCREENWRITER_INSTRUCTION.format(language=language, max_lines=SCRIPT_MAX_LINES),
    )
    return call_with_retry(
        "Generate Script",
        lambda: _generate_text(client, prompt, config),
        policy=TEXT_RETRY_POLICY,
        sleep=sleep,
    )


def humanize_script(
    script: str,
    client=None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Rewrite a script with fillers and stutters; returns the input if the model is silent."""
    client = client or create_client()
    config = types.GenerateContentConfig(system_instruction=DIALOGUE_DOCTOR_INSTRUCTION)
    text = call_with_retry(
        "Humanize Script",
        lambda: _generate_text(client, f"Humanize this script:\n\n{script}", config),
        policy=TEXT_RETRY_POLICY,
        sleep=sleep,
    )
    return text or script


def _strip_code_fences(text: str) -> str:
    return text.replace("```json", "").replace("```", "").strip()


def suggest_character_mapping(
    script: str,
    character_names: list[str],
    client=None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Ask the model for a {name: {"voice", "pitch"}} casting suggestion."""
    client = client or create_client()
    voice_lines = "\n".join(
        f"- {name}: {meta['gender']}, {meta['traits']}." for name, meta in VOICE_META.items()
    )
    prompt = (
        "Analyze the provided script and character names to determine the likely archetype, "
        "gender, age, and personality of each character.\n"
        "Then, map each character to the best available Voice AND a specific Pitch multiplier.\n\n"
        f'Script Excerpt: "{script[:MAPPING_EXCERPT_CHARS]}..."\n\n'
        f"Characters to Map: {', '.join(character_names)}\n\n"
        f"Available Voices:\n{voice_lines}\n\n"
        f"{PITCH_RULES}\n\n"
        'Return JSON only:\n{ "CharacterName": { "voice": "VoiceName", "pitch": 0.95 } }'
    )
    config = types.GenerateContentConfig(response_mime_type="application/json")
    text = call_with_retry(
        "Auto Cast",
        lambda: _generate_text(client, prompt, config),
        policy=TEXT_RETRY_POLICY,
        sleep=sleep,
    )
    try:
        mapping = json.loads(_strip_code_fences(text) or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Auto cast reply is not valid JSON (%s), ignoring it", e)
        return {}
    if not isinstance(mapping, dict):
        logger.warning("Auto cast returned %s, expected an object", type(mapping).__name__)
        return {}
    return mapping
