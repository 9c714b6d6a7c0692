"""Exceptions raised by the drama producer pipeline."""


class DramaProducerError(Exception):
    pass


class UnassignedVoiceError(DramaProducerError):
    """A script speaker has no voice in the cast."""

    def __init__(self, speaker: str):
        self.speaker = speaker
        super().__init__(
            f'Speaker "{speaker}" is in the script but not assigned a voice. '
            f"Assign voices to the cast (or run 'autocast') first."
        )


class SynthesisError(DramaProducerError):
    pass


class GenerationCancelled(DramaProducerError):
    pass
