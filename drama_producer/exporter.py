"""Export the assembled drama as WAV or MP3 with a provenance manifest."""

import io
import json
import os
from datetime import datetime, timezone

import numpy as np
from pydub import AudioSegment

from drama_producer.constants import OUTPUT_BITRATE, VERSION
from drama_producer.models import DecodedBuffer

BITS_PER_SAMPLE = 16


def _to_int16(buffer: DecodedBuffer) -> np.ndarray:
    """Clamp, scale and truncate toward zero; returns interleaved samples."""
    clamped = np.clip(buffer.samples.astype(np.float64), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768, clamped * 32767)
    return np.trunc(scaled).astype("<i2").T.reshape(-1)


def encode_wav(buffer: DecodedBuffer) -> bytes:
    """Serialize a buffer as a 16-bit PCM WAV file (44-byte header)."""
    out = io.BytesIO()
    to_audio_segment(buffer).export(out, format="wav")
    return out.getvalue()


def to_audio_segment(buffer: DecodedBuffer) -> AudioSegment:
    """Wrap a buffer as a pydub AudioSegment for playback or MP3 export."""
    return AudioSegment(
        data=_to_int16(buffer).tobytes(),
        sample_width=BITS_PER_SAMPLE // 8,
        frame_rate=buffer.sample_rate,
        channels=buffer.num_channels,
    )


def export(
    assembled: DecodedBuffer,
    project_dir: str,
    slug: str,
    metadata: dict,
    cast_data: dict,
    segment_count: int,
    fmt: str = "wav",
) -> str:
    """Export assembled audio and its manifest.

    Creates:
      - output/<slug>/final/<slug>.wav (or .mp3)
      - output/<slug>/final/output.json (provenance manifest)

    Returns path to the audio file.
    """
    if fmt not in ("wav", "mp3"):
        raise ValueError(f"Unsupported export format: {fmt}")

    final_dir = os.path.join(project_dir, "final")
    os.makedirs(final_dir, exist_ok=True)
    output_path = os.path.join(final_dir, f"{slug}.{fmt}")

    if fmt == "wav":
        with open(output_path, "wb") as f:
            f.write(encode_wav(assembled))
    else:
        tags = {}
        if metadata.get("title"):
            tags["title"] = metadata["title"]
        to_audio_segment(assembled).export(
            output_path,
            format="mp3",
            bitrate=OUTPUT_BITRATE,
            tags=tags,
        )

    manifest = {
        "project": slug,
        "source": metadata.get("source", ""),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "format": fmt,
        "cast": cast_data,
        "stats": {
            "segments": segment_count,
            "duration_seconds": round(assembled.duration, 1),
            "sample_rate": assembled.sample_rate,
            "characters": len(cast_data.get("characters", {})),
        },
    }

    manifest_path = os.path.join(final_dir, "output.json")
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    return output_path
