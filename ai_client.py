"""
Groq speech-to-text and chat calls used by the dictation pipeline.

Both calls are blocking; callers run them off the hotkey thread.
Provider errors (network, auth, quota) are not handled here.
"""

import logging
import threading
from typing import Dict, Optional

from audio_gate import AudioClip

try:
    from groq import Groq
except Exception:
    Groq = None

logger = logging.getLogger(__name__)

_CLIENTS: Dict[str, "Groq"] = {}
_CLIENTS_LOCK = threading.Lock()

# Short in-language examples steer Whisper away from inventing text on silence.
TRANSCRIPTION_PROMPTS = {
    "pt": "Olá, como está? Está tudo bem. Obrigado, até logo.",
    "en": "Hello, how are you? Everything is fine. Thank you, see you later.",
}

LANGUAGE_NAMES = {
    "pt": "Portuguese",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
}

CORRECT_SYSTEM_PROMPT = (
    "You are a text corrector specialised in European Portuguese (Portugal). "
    "Rules: "
    "1. Do not answer questions or interact with the content. "
    "2. Only fix grammar, spelling and punctuation errors. "
    "3. Remove ANY description of audio or noise (e.g. 'background chatter', 'music', '[noise]'). "
    "4. Keep the meaning and intent EXACTLY as in the original text. "
    "5. Use the European Portuguese norm exclusively. "
    "6. Return ONLY the corrected spoken text, without comments, explanations or descriptions of the surroundings."
)


def _audio_filename(mime_type: Optional[str]) -> str:
    audio_type = (mime_type or "").split(";")[0].strip().lower()
    extension = "webm"
    if "webm" in audio_type:
        extension = "webm"
    elif "mp4" in audio_type or "m4a" in audio_type:
        extension = "m4a"
    elif "ogg" in audio_type:
        extension = "ogg"
    elif "wav" in audio_type:
        extension = "wav"
    elif "mpeg" in audio_type or "mp3" in audio_type:
        extension = "mp3"
    elif "flac" in audio_type:
        extension = "flac"
    return f"audio.{extension}"


def _get_client(api_key: Optional[str]):
    if Groq is None:
        raise RuntimeError("Groq package not installed or failed to import")
    if not api_key:
        raise RuntimeError("Set GROQ_API_KEY environment variable first")
    with _CLIENTS_LOCK:
        client = _CLIENTS.get(api_key)
        if client is None:
            client = Groq(api_key=api_key)
            _CLIENTS[api_key] = client
    return client


def transcribe_audio(
    clip: AudioClip,
    api_key: Optional[str],
    model: str = "whisper-large-v3-turbo",
    language: str = "pt",
    prompt: Optional[str] = None,
) -> str:
    """Send an admitted clip to the speech-to-text endpoint and return the raw text."""
    client = _get_client(api_key)
    filename = _audio_filename(clip.mime_type)
    if prompt is None:
        prompt = TRANSCRIPTION_PROMPTS.get(language, "")

    logger.info(f"Transcribing audio: {len(clip.data)} bytes, type: {clip.mime_type}, file: {filename}")

    request = dict(
        file=(filename, bytes(clip.data)),
        model=model,
        temperature=0,
        response_format="verbose_json",
    )
    if language:
        request["language"] = language
    if prompt:
        request["prompt"] = prompt

    resp = client.audio.transcriptions.create(**request)
    # object shape depends on SDK; try common access patterns
    if hasattr(resp, "text"):
        return resp.text or ""
    if isinstance(resp, dict):
        return resp.get("text") or resp.get("transcription") or ""
    return str(resp)


def build_messages(text: str, mode: str, target_language: str) -> list:
    if mode == "correct":
        system_prompt = CORRECT_SYSTEM_PROMPT
        user_prompt = f"Correct only the errors in this text and remove any audio/ambient description:\n\n{text}"
    elif mode == "translate":
        target_name = LANGUAGE_NAMES.get(target_language, target_language)
        system_prompt = (
            "You are a professional translator. "
            f"Translate the provided text into {target_name} naturally and fluently. "
            "Return ONLY the translation, without explanations or additional comments."
        )
        user_prompt = f"Translate this text into {target_name}:\n\n{text}"
    else:
        raise ValueError(f"Unknown processing mode '{mode}' (expected 'correct' or 'translate')")

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def process_text(
    text: str,
    mode: str,
    target_language: str,
    api_key: Optional[str],
    model: str = "openai/gpt-oss-120b",
) -> str:
    """Correct or translate a clean transcript; an empty completion falls back to the input."""
    messages = build_messages(text, mode, target_language)
    client = _get_client(api_key)

    resp = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=0.1,
    )
    content = ""
    if resp.choices:
        content = (resp.choices[0].message.content or "").strip()
    if not content:
        logger.warning("Empty completion from text processor, keeping transcript as is")
        return text
    return content
