"""Data models for script parsing, casting and audio assembly."""

from dataclasses import dataclass

import numpy as np


@dataclass
class ParsedLine:
    original: str        # source line as written
    speaker_raw: str     # label before the separator, untouched
    speaker_clean: str   # display name after sanitizing
    metadata: str        # parenthetical annotations from the label
    dialogue: str        # grows as continuation lines are appended


@dataclass
class DialogueSegment:
    speaker: str
    text: str


@dataclass
class Character:
    id: str
    name: str
    voice: str
    pitch: float = 1.0


@dataclass
class SynthesizedSegment:
    speaker: str
    audio: bytes         # raw provider PCM, not yet decoded


@dataclass
class DecodedBuffer:
    """Float PCM shaped (channels, frames), values in [-1.0, 1.0]."""

    samples: np.ndarray
    sample_rate: int

    @property
    def num_channels(self) -> int:
        return self.samples.shape[0]

    @property
    def length(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def __len__(self) -> int:
        return self.length
