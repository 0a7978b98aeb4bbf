import sqlite3

import pytest

from audio_gate import AudioClip
from config import WishperProConfig
from pipeline import DictationPipeline, REASON_AUDIO_REJECTED, REASON_NO_SPEECH, REASON_OK


class FakeProviders:
    def __init__(self, transcript="", processed=None):
        self.transcript = transcript
        self.processed = processed
        self.transcribed = []
        self.processed_calls = []
        self.saved = []

    def transcribe(self, clip):
        self.transcribed.append(clip)
        return self.transcript

    def process(self, text, mode, target_language):
        self.processed_calls.append((text, mode, target_language))
        return self.processed if self.processed is not None else text.upper()

    def save(self, original_text, final_text, language, mode):
        self.saved.append((original_text, final_text, language, mode))


def _pipeline(fakes, config=None):
    return DictationPipeline(
        config or WishperProConfig(),
        transcriber=fakes.transcribe,
        processor=fakes.process,
        store=fakes.save,
    )


def _speech_clip():
    return AudioClip(b"\x00" * 4000, "audio/wav", duration_ms=1800)


def test_short_audio_never_reaches_the_provider():
    fakes = FakeProviders("Olá mundo")
    result = _pipeline(fakes).run(AudioClip(b"\x00" * 4000, "audio/wav", duration_ms=300))

    assert result.reason == REASON_AUDIO_REJECTED
    assert not result.ok
    assert result.final_text == ""
    assert fakes.transcribed == []
    assert fakes.saved == []


def test_hallucinated_transcript_stops_before_processing():
    fakes = FakeProviders("Obrigado.")
    result = _pipeline(fakes).run(_speech_clip())

    assert result.reason == REASON_NO_SPEECH
    assert not result.ok
    assert result.raw_text == "Obrigado."
    assert result.final_text == ""
    assert fakes.processed_calls == []
    assert fakes.saved == []


def test_empty_transcript_is_no_speech():
    fakes = FakeProviders(None)
    result = _pipeline(fakes).run(_speech_clip())

    assert result.reason == REASON_NO_SPEECH
    assert result.raw_text == ""


def test_clean_transcript_is_processed_and_saved():
    fakes = FakeProviders("Lembra-te de comprar leite [música] amanhã.")
    result = _pipeline(fakes).run(_speech_clip())

    assert result.ok
    assert result.reason == REASON_OK
    assert result.clean_text == "Lembra-te de comprar leite amanhã."
    assert result.final_text == "LEMBRA-TE DE COMPRAR LEITE AMANHÃ."
    assert fakes.processed_calls == [("Lembra-te de comprar leite amanhã.", "correct", "pt")]
    assert fakes.saved == [
        ("Lembra-te de comprar leite amanhã.", "LEMBRA-TE DE COMPRAR LEITE AMANHÃ.", "pt", "correct")
    ]


def test_mode_and_target_language_overrides():
    fakes = FakeProviders("Preciso de marcar uma reunião para quinta-feira.", processed="I need to book a meeting for Thursday.")
    result = _pipeline(fakes).run(_speech_clip(), mode="translate", target_language="en")

    assert result.final_text == "I need to book a meeting for Thursday."
    assert fakes.processed_calls[0][1:] == ("translate", "en")
    assert fakes.saved[0][2:] == ("en", "translate")


def test_config_thresholds_drive_the_gate():
    config = WishperProConfig(min_duration_ms=2000)
    fakes = FakeProviders("Preciso de marcar uma reunião.")

    result = _pipeline(fakes, config).run(_speech_clip())

    assert result.reason == REASON_AUDIO_REJECTED


def test_provider_errors_propagate():
    def failing_transcriber(clip):
        raise RuntimeError("quota exceeded")

    pipeline = DictationPipeline(
        WishperProConfig(save_history=False),
        transcriber=failing_transcriber,
        processor=lambda text, mode, lang: text,
    )

    with pytest.raises(RuntimeError, match="quota exceeded"):
        pipeline.run(_speech_clip())


def test_history_failure_does_not_lose_the_result():
    def broken_store(*args):
        raise sqlite3.OperationalError("database is locked")

    pipeline = DictationPipeline(
        WishperProConfig(),
        transcriber=lambda clip: "Envia o contrato ao cliente hoje.",
        processor=lambda text, mode, lang: text,
        store=broken_store,
    )
    result = pipeline.run(_speech_clip())

    assert result.ok
    assert result.final_text == "Envia o contrato ao cliente hoje."


def test_history_disabled_by_config():
    pipeline = DictationPipeline(
        WishperProConfig(save_history=False),
        transcriber=lambda clip: "",
        processor=lambda text, mode, lang: text,
    )

    assert pipeline.store is None


def test_rules_file_from_config(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text('[{"label": "sign_off", "pattern": "^fim de ditado\\\\.?$"}]', encoding="utf-8")
    config = WishperProConfig(hallucination_rules_path=str(path))
    fakes = FakeProviders("Fim de ditado.")

    result = _pipeline(fakes, config).run(_speech_clip())

    assert [rule.label for rule in _pipeline(fakes, config).rules] == ["sign_off"]
    assert result.reason == REASON_NO_SPEECH
