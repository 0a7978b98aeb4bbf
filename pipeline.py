"""
Dictation pipeline: admission gate -> transcription -> sanitizer ->
correction/translation -> history.

Rejections from the gate and the sanitizer come back the same way
(ok=False, empty final_text) so callers handle a single "nothing to
deliver" case. Provider exceptions are raised to the caller untouched.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import ai_client
import transcription_store
from audio_gate import AudioClip, admit_clip
from config import WishperProConfig, get_api_key
from transcript_filter import HallucinationRule, load_hallucination_rules, sanitize_transcript

logger = logging.getLogger(__name__)

REASON_OK = "ok"
REASON_AUDIO_REJECTED = "audio_rejected"
REASON_NO_SPEECH = "no_speech"


@dataclass
class DictationResult:
    reason: str
    raw_text: str = ""
    clean_text: str = ""
    final_text: str = ""

    @property
    def ok(self) -> bool:
        return self.reason == REASON_OK and bool(self.final_text)


class DictationPipeline:
    def __init__(
        self,
        config: WishperProConfig,
        transcriber: Optional[Callable[[AudioClip], str]] = None,
        processor: Optional[Callable[[str, str, str], str]] = None,
        store: Optional[Callable[[str, str, str, str], object]] = None,
        rules: Optional[List[HallucinationRule]] = None,
    ):
        self.config = config
        self.transcriber = transcriber or self._transcribe_with_groq
        self.processor = processor or self._process_with_groq
        if store is None and config.save_history:
            store = transcription_store.add_transcription
        self.store = store
        self.rules = rules if rules is not None else load_hallucination_rules(config.hallucination_rules_path)

    def _transcribe_with_groq(self, clip: AudioClip) -> str:
        return ai_client.transcribe_audio(
            clip,
            api_key=get_api_key(),
            model=self.config.whisper_model,
            language=self.config.language,
        )

    def _process_with_groq(self, text: str, mode: str, target_language: str) -> str:
        return ai_client.process_text(
            text,
            mode,
            target_language,
            api_key=get_api_key(),
            model=self.config.chat_model,
        )

    def run(
        self,
        clip: Optional[AudioClip],
        mode: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> DictationResult:
        mode = mode or self.config.mode
        target_language = target_language or self.config.target_language

        if not admit_clip(clip, self.config.min_audio_bytes, self.config.min_duration_ms):
            return DictationResult(REASON_AUDIO_REJECTED)

        raw_text = self.transcriber(clip)
        clean_text = sanitize_transcript(raw_text, self.rules)
        if not clean_text:
            return DictationResult(REASON_NO_SPEECH, raw_text=raw_text or "")

        final_text = self.processor(clean_text, mode, target_language)
        logger.info(f"Dictation processed ({mode}): {len(clean_text)} -> {len(final_text)} chars")

        if self.store is not None:
            try:
                self.store(clean_text, final_text, target_language, mode)
            except Exception as ex:
                logger.error(f"Failed to save transcription to history: {ex}")

        return DictationResult(REASON_OK, raw_text=raw_text, clean_text=clean_text, final_text=final_text)
