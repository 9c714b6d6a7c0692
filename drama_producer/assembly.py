"""Decode synthesized clips, apply per-character pitch, and stitch one timeline."""

import base64
import logging
import math

import numpy as np

from drama_producer.constants import (
    PROVIDER_SAMPLE_RATE,
    PROVIDER_CHANNELS,
    PROVIDER_SAMPLE_WIDTH,
    PCM_SCALE,
    PITCH_NEUTRAL,
)
from drama_producer.models import Character, DecodedBuffer, SynthesizedSegment
from drama_producer.voices import build_pitch_map

logger = logging.getLogger(__name__)


def decode_pcm(payload: bytes | str, sample_rate: int = PROVIDER_SAMPLE_RATE) -> DecodedBuffer:
    """Decode mono 16-bit little-endian PCM into a float buffer.

    A str payload is treated as base64. An odd trailing byte is dropped.
    """
    if isinstance(payload, str):
        payload = base64.b64decode(payload)

    frame_count = len(payload) // PROVIDER_SAMPLE_WIDTH
    pcm = np.frombuffer(payload[:frame_count * PROVIDER_SAMPLE_WIDTH], dtype="<i2")
    samples = (pcm.astype(np.float32) / PCM_SCALE).reshape((PROVIDER_CHANNELS, -1))
    return DecodedBuffer(samples=samples, sample_rate=sample_rate)


def resample(buffer: DecodedBuffer, rate: float) -> DecodedBuffer:
    """Time-scale a buffer by linear interpolation to approximate a pitch change.

    rate > 1.0 shortens (higher, faster), rate < 1.0 lengthens (deeper,
    slower). Duration and pitch move together. A rate of exactly 1.0
    returns the input object itself.
    """
    if rate == 1.0:
        return buffer
    if not rate > 0:
        raise ValueError(f"Resample rate must be positive, got {rate}")

    source_length = buffer.length
    new_length = int(math.floor(source_length / rate + 0.5))
    if source_length == 0 or new_length == 0:
        empty = np.zeros((buffer.num_channels, new_length), dtype=np.float32)
        return DecodedBuffer(samples=empty, sample_rate=buffer.sample_rate)

    position = np.arange(new_length, dtype=np.float64) * rate
    index = np.floor(position).astype(np.int64)
    fraction = (position - index).astype(np.float32)

    # Positions at or past the last sample hold it
    tail = index >= source_length - 1
    index = np.minimum(index, source_length - 1)
    next_index = np.minimum(index + 1, source_length - 1)

    output = np.empty((buffer.num_channels, new_length), dtype=np.float32)
    for channel in range(buffer.num_channels):
        source = buffer.samples[channel]
        interpolated = source[index] * (1 - fraction) + source[next_index] * fraction
        output[channel] = np.where(tail, source[-1], interpolated)

    return DecodedBuffer(samples=output, sample_rate=buffer.sample_rate)


def concatenate(buffers: list[DecodedBuffer]) -> DecodedBuffer:
    """Join buffers end to end with no gaps, overlap or fades.

    The result takes its channel count from the first buffer; a later mono
    buffer is copied into every channel. Empty input gives one sample of
    silence.
    """
    if not buffers:
        return DecodedBuffer(
            samples=np.zeros((1, 1), dtype=np.float32),
            sample_rate=PROVIDER_SAMPLE_RATE,
        )

    sample_rate = buffers[0].sample_rate
    for buffer in buffers[1:]:
        if buffer.sample_rate != sample_rate:
            raise ValueError(
                f"Cannot concatenate buffers at {buffer.sample_rate} Hz "
                f"onto a {sample_rate} Hz timeline"
            )

    num_channels = buffers[0].num_channels
    total_length = sum(buffer.length for buffer in buffers)
    result = np.zeros((num_channels, total_length), dtype=np.float32)

    offset = 0
    for buffer in buffers:
        end = offset + buffer.length
        for channel in range(num_channels):
            if channel < buffer.num_channels:
                result[channel, offset:end] = buffer.samples[channel]
            elif buffer.num_channels == 1:
                result[channel, offset:end] = buffer.samples[0]
        offset = end

    return DecodedBuffer(samples=result, sample_rate=sample_rate)


def assemble_drama(
    segments: list[SynthesizedSegment],
    characters: list[Character],
    sample_rate: int = PROVIDER_SAMPLE_RATE,
) -> DecodedBuffer:
    """Decode, pitch and join synthesized segments in script order."""
    pitch_map = build_pitch_map(characters)

    processed = []
    for segment in segments:
        buffer = decode_pcm(segment.audio, sample_rate=sample_rate)
        pitch = pitch_map.get(segment.speaker.lower()) or PITCH_NEUTRAL
        processed.append(resample(buffer, pitch))

    logger.info("Assembled %d segments", len(processed))
    return concatenate(processed)


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"
