"""Per-segment speech synthesis with rate-limit backoff.

Two providers return the same contract, mono 16-bit PCM at 24 kHz:
Gemini TTS via google-genai, and edge-tts converted through pydub.
"""

import asyncio
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass
from typing import Callable, Protocol

import edge_tts
from google import genai
from google.genai import types
from pydub import AudioSegment

from drama_producer.constants import (
    GEMINI_TTS_MODEL,
    TTS_RETRY_COUNT,
    TTS_RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    REQUEST_DELAY,
    THROTTLED_REQUEST_DELAY,
    RATE_LIMIT_MARKERS,
    TTS_RATE,
    EDGE_VOICE_MAP,
    VOICE_META,
    PROVIDER_SAMPLE_RATE,
    PROVIDER_CHANNELS,
    PROVIDER_SAMPLE_WIDTH,
)
from drama_producer.errors import GenerationCancelled, SynthesisError, UnassignedVoiceError
from drama_producer.models import Character, DialogueSegment, SynthesizedSegment
from drama_producer.voices import build_voice_map

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str], None]


class SpeechProvider(Protocol):
    def synthesize(self, text: str, voice: str, instruction: str) -> bytes:
        """Return mono 16-bit little-endian PCM at PROVIDER_SAMPLE_RATE."""
        ...


def get_api_key() -> str | None:
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


def create_client(api_key: str | None = None) -> genai.Client:
    """Create a google-genai client, failing clearly without a key."""
    api_key = api_key or get_api_key()
    if not api_key:
        raise SynthesisError("GEMINI_API_KEY or GOOGLE_API_KEY environment variable not set")
    return genai.Client(api_key=api_key)


class GeminiSpeechProvider:
    def __init__(self, api_key: str | None = None, model: str = GEMINI_TTS_MODEL, client=None):
        self.model = model
        self.client = client or create_client(api_key)

    def synthesize(self, text: str, voice: str, instruction: str) -> bytes:
        response = self.client.models.generate_content(
            model=self.model,
            contents=text,
            config=types.GenerateContentConfig(
                system_instruction=instruction or None,
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                    )
                ),
            ),
        )
        try:
            data = response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError):
            data = None
        if not data:
            raise SynthesisError("API returned empty audio data")
        return data


class EdgeSpeechProvider:
    """edge-tts fallback; the persona instruction has no edge-tts equivalent."""

    def __init__(self, rate: str = TTS_RATE, voice_map: dict | None = None):
        self.rate = rate
        self.voice_map = voice_map or EDGE_VOICE_MAP

    def synthesize(self, text: str, voice: str, instruction: str) -> bytes:
        edge_voice = self.voice_map.get(voice, voice)
        fd, path = tempfile.mkstemp(suffix=".mp3")
        os.close(fd)
        try:
            communicate = edge_tts.Communicate(text, edge_voice, rate=self.rate)
            asyncio.run(communicate.save(path))
            if os.path.getsize(path) == 0:
                raise SynthesisError(f"TTS produced 0-byte file for: {text[:50]}...")
            audio = AudioSegment.from_file(path, format="mp3")
        finally:
            os.remove(path)

        audio = (
            audio.set_frame_rate(PROVIDER_SAMPLE_RATE)
            .set_channels(PROVIDER_CHANNELS)
            .set_sample_width(PROVIDER_SAMPLE_WIDTH)
        )
        return audio.raw_data


@dataclass
class RetryPolicy:
    """Exponential backoff for rate-limited requests, capped per wait."""

    max_retries: int = TTS_RETRY_COUNT
    base_delay: float = TTS_RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY

    def delay(self, attempt: int) -> float:
        """Wait before retry number `attempt` (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


def is_rate_limit_error(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def call_with_retry(
    operation_name: str,
    fn: Callable,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: ProgressSink | None = None,
    on_rate_limit: Callable[[Exception], None] | None = None,
    cancel=None,
):
    """Call fn(), retrying only rate-limit errors.

    Other errors propagate at once; the last rate-limit error propagates
    once retries run out. `on_rate_limit` sees every rate-limit error that
    will be retried. `cancel` (anything with is_set()) is checked before
    each backoff wait.
    """
    if policy is None:
        policy = RetryPolicy()

    retries = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_rate_limit_error(e):
                raise
            retries += 1
            if retries >= policy.max_retries:
                raise
            if on_rate_limit:
                on_rate_limit(e)
            wait = policy.delay(retries)
            message = (
                f"[{operation_name}] Rate limited. Waiting {wait:g}s for quota "
                f"(attempt {retries}/{policy.max_retries})..."
            )
            logger.warning(message)
            if on_progress:
                on_progress(message)
            if cancel is not None and cancel.is_set():
                raise GenerationCancelled(f"[{operation_name}] Cancelled while waiting for quota") from e
            sleep(wait)


def build_persona_instruction(speaker: str, voice: str) -> str:
    """Director's note sent with every segment."""
    traits = VOICE_META.get(voice, {}).get("traits", "Natural")
    return (
        f"You are a professional voice actor playing the character: {speaker}.\n"
        f"Your voice persona is: {traits}.\n\n"
        "DIRECTION:\n"
        "- This is an Audio Drama. Do not just read the text, ACT IT OUT.\n"
        '- Pay close attention to punctuation: "..." means hesitation, "!" means shouting/excitement.\n'
        "- If the text says \"I... I don't know\", perform the stutter naturally.\n"
        "- If the text implies sarcasm, be sarcastic.\n"
        "- DO NOT read the speaker name. Speak ONLY the dialogue.\n"
    )


def clean_segment_text(text: str) -> str:
    """Drop stage directions in parentheses, keep the punctuation that drives delivery."""
    text = re.sub(r"\(.*?\)", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _cache_path(cache_dir: str, index: int, segment: DialogueSegment) -> str:
    speaker_slug = re.sub(r"[^a-z0-9]+", "_", segment.speaker.lower()).strip("_") or "speaker"
    return os.path.join(cache_dir, f"{index:03d}_{speaker_slug}.pcm")


def generate_drama_audio(
    segments: list[DialogueSegment],
    characters: list[Character],
    provider: SpeechProvider,
    on_progress: ProgressSink | None = None,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    cancel=None,
    cache_dir: str | None = None,
) -> list[SynthesizedSegment]:
    """Synthesize every segment, one request at a time, in script order.

    Every speaker must have a voice before any request is made. Rate limits
    are retried with backoff and slow all later requests down; any other
    error, or running out of retries, aborts the run. `cancel` is any object
    with is_set(), checked between segments and before each backoff wait.
    With `cache_dir`, finished segments are stored and reused on the next run.
    """
    if policy is None:
        policy = RetryPolicy()

    def report(message: str) -> None:
        logger.info(message)
        if on_progress:
            on_progress(message)

    voice_map = build_voice_map(characters)
    for segment in segments:
        if segment.speaker.lower() not in voice_map:
            raise UnassignedVoiceError(segment.speaker)

    total = len(segments)
    report(f"Starting generation for {total} segments...")

    results = []
    request_delay = REQUEST_DELAY
    requested = False

    def throttle(error: Exception) -> None:
        nonlocal request_delay
        if request_delay < THROTTLED_REQUEST_DELAY:
            request_delay = THROTTLED_REQUEST_DELAY
            logger.warning("Rate limit detected: slowing to one request every %gs", request_delay)

    for i, segment in enumerate(segments):
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled(f"Generation cancelled at segment {i + 1}/{total}")

        text = clean_segment_text(segment.text)
        if not text:
            logger.warning("Skipping segment %d/%d for %s: no speakable text", i + 1, total, segment.speaker)
            continue

        path = _cache_path(cache_dir, i, segment) if cache_dir else None
        if path and os.path.exists(path) and os.path.getsize(path) > 0:
            report(f"[skip] Segment {i + 1}/{total} for {segment.speaker}: cached")
            with open(path, "rb") as f:
                results.append(SynthesizedSegment(speaker=segment.speaker, audio=f.read()))
            continue

        voice = voice_map[segment.speaker.lower()]
        instruction = build_persona_instruction(segment.speaker, voice)

        # Pace only between requests that actually go out
        if requested:
            sleep(request_delay)
        requested = True

        def attempt():
            report(f"Directing actor for {segment.speaker} (Part {i + 1}/{total})...")
            return provider.synthesize(text, voice, instruction)

        try:
            audio = call_with_retry(
                segment.speaker, attempt,
                policy=policy, sleep=sleep, on_progress=on_progress,
                on_rate_limit=throttle, cancel=cancel,
            )
        except GenerationCancelled:
            raise
        except Exception as e:
            if not is_rate_limit_error(e):
                raise
            raise SynthesisError(
                f"Failed to generate audio for {segment.speaker}. Rate limit persistently "
                f"exceeded after {policy.max_retries} attempts. Try again in a few minutes."
            ) from e

        if path:
            os.makedirs(cache_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(audio)
        results.append(SynthesizedSegment(speaker=segment.speaker, audio=audio))

    return results
