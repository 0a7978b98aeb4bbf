"""
Audio admission gate.

Short or near-silent recordings are the main trigger for speech-to-text
hallucinations, so they are dropped here before any network call is made.
A measured duration is preferred; the encoded byte size is only a fallback
(about 1 second of compressed speech is a few kilobytes).
"""

import math
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

MIN_AUDIO_BYTES = 1000
MIN_DURATION_MS = 500

MIME_TYPES = {
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".oga": "audio/ogg",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
}


@dataclass
class AudioClip:
    data: bytes
    mime_type: str = "audio/wav"
    duration_ms: Optional[float] = None


def _usable_duration(duration_ms) -> Optional[float]:
    if duration_ms is None or isinstance(duration_ms, bool):
        return None
    try:
        value = float(duration_ms)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


def admit_clip(
    clip: Optional[AudioClip],
    min_bytes: int = MIN_AUDIO_BYTES,
    min_duration_ms: float = MIN_DURATION_MS,
) -> bool:
    """
    Decide whether a recording is worth sending for transcription.

    Args:
        clip: The finished recording (may be None)
        min_bytes: Byte-size floor used when no duration is known
        min_duration_ms: Duration floor used when a duration is known

    Returns:
        True to transcribe, False to drop the clip silently
    """
    data = getattr(clip, "data", None)
    if not isinstance(data, (bytes, bytearray, memoryview)):
        logger.info("Audio rejected: no audio buffer")
        return False

    size = len(data)
    if size == 0:
        logger.info("Audio rejected: empty buffer")
        return False

    duration = _usable_duration(getattr(clip, "duration_ms", None))
    if duration is not None:
        if duration < min_duration_ms:
            logger.info(f"Audio rejected: {duration:.0f}ms < {min_duration_ms}ms ({size} bytes)")
            return False
        logger.debug(f"Audio admitted: {duration:.0f}ms, {size} bytes")
        return True

    if size < min_bytes:
        logger.info(f"Audio rejected: {size} bytes < {min_bytes} bytes (no duration)")
        return False

    logger.debug(f"Audio admitted: {size} bytes, {size / 1024:.2f} KB (no duration)")
    return True


def mime_type_for(path: Union[str, Path]) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), "audio/webm")


def clip_from_file(path: Union[str, Path]) -> AudioClip:
    """Load an audio file, reading its duration from the header when soundfile can parse it."""
    import soundfile as sf

    path = Path(path)
    data = path.read_bytes()

    duration_ms = None
    try:
        info = sf.info(str(path))
        if info.samplerate > 0:
            duration_ms = info.frames / info.samplerate * 1000.0
    except RuntimeError:
        logger.debug(f"No duration available for {path.name}, falling back to byte size")

    return AudioClip(data=data, mime_type=mime_type_for(path), duration_ms=duration_ms)
