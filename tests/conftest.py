"""Shared fixtures for drama producer tests."""

import numpy as np
import pytest

from drama_producer.models import Character, DecodedBuffer, ParsedLine


@pytest.fixture
def make_pcm():
    """Encode int16 sample values as little-endian PCM bytes."""
    def _make_pcm(values) -> bytes:
        return np.asarray(values, dtype="<i2").tobytes()
    return _make_pcm


@pytest.fixture
def make_buffer():
    """Build a DecodedBuffer with a ramp (or a constant fill) per channel."""
    def _make_buffer(length=4800, channels=1, sample_rate=24000, fill=None) -> DecodedBuffer:
        if fill is None:
            ramp = np.linspace(-0.5, 0.5, length, dtype=np.float32)
            samples = np.tile(ramp, (channels, 1))
        else:
            samples = np.full((channels, length), fill, dtype=np.float32)
        return DecodedBuffer(samples=samples, sample_rate=sample_rate)
    return _make_buffer


@pytest.fixture
def make_line():
    """ParsedLine with only the fields grouping cares about."""
    def _make_line(speaker, dialogue):
        return ParsedLine(
            original=f"{speaker}: {dialogue}",
            speaker_raw=speaker,
            speaker_clean=speaker,
            metadata="",
            dialogue=dialogue,
        )
    return _make_line


@pytest.fixture
def sample_script():
    return (
        "Narrator: The year is 2085. A neon light flickers in the rain.\n"
        "Detective: (Sighs) Another night, another mystery.\n"
        "Robot: Greeting unit online. How may I assist you, Detective?\n"
        "Detective: Just find me a coffee, Bolt. A hot one.\n"
        "Robot: Processing request... Coffee capability not found."
    )


@pytest.fixture
def sample_characters():
    return [
        Character(id="1", name="Narrator", voice="Charon", pitch=1.0),
        Character(id="2", name="Detective", voice="Fenrir", pitch=0.9),
        Character(id="3", name="Robot", voice="Puck", pitch=1.2),
    ]
