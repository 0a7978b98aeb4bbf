from types import SimpleNamespace

import pytest

import ai_client
from audio_gate import AudioClip


class FakeGroq:
    instances = 0

    def __init__(self, api_key=None, transcript="Olá mundo", completion="Texto corrigido."):
        FakeGroq.instances += 1
        self.api_key = api_key
        self.requests = []
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._transcribe))
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._complete))
        self._transcript = transcript
        self._completion = completion

    def _transcribe(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(text=self._transcript)

    def _complete(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self._completion)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _use_fake(monkeypatch, fake):
    monkeypatch.setattr(ai_client, "_get_client", lambda api_key: fake)


def test_transcription_request(monkeypatch):
    fake = FakeGroq()
    _use_fake(monkeypatch, fake)

    text = ai_client.transcribe_audio(AudioClip(b"abc", "audio/webm;codecs=opus"), api_key="k", model="whisper-large-v3")

    request = fake.requests[0]
    assert text == "Olá mundo"
    assert request["file"] == ("audio.webm", b"abc")
    assert request["model"] == "whisper-large-v3"
    assert request["language"] == "pt"
    assert request["prompt"] == ai_client.TRANSCRIPTION_PROMPTS["pt"]
    assert request["temperature"] == 0
    assert request["response_format"] == "verbose_json"


def test_transcription_without_prompt_for_other_languages(monkeypatch):
    fake = FakeGroq()
    _use_fake(monkeypatch, fake)

    ai_client.transcribe_audio(AudioClip(b"abc", "audio/ogg"), api_key="k", language="fr")

    assert "prompt" not in fake.requests[0]
    assert fake.requests[0]["file"][0] == "audio.ogg"


def test_audio_filename_from_mime_type():
    assert ai_client._audio_filename("audio/webm;codecs=opus") == "audio.webm"
    assert ai_client._audio_filename("audio/mp4") == "audio.m4a"
    assert ai_client._audio_filename("audio/x-m4a") == "audio.m4a"
    assert ai_client._audio_filename("audio/wav") == "audio.wav"
    assert ai_client._audio_filename(None) == "audio.webm"


def test_correct_mode_prompt(monkeypatch):
    fake = FakeGroq(completion="  Amanhã vou à praia.  ")
    _use_fake(monkeypatch, fake)

    result = ai_client.process_text("amanha vou a praia", "correct", "pt", api_key="k", model="m")

    messages = fake.requests[0]["messages"]
    assert result == "Amanhã vou à praia."
    assert "European Portuguese" in messages[0]["content"]
    assert messages[1]["content"].endswith("amanha vou a praia")
    assert fake.requests[0]["temperature"] == 0.1


def test_translate_mode_uses_language_name():
    messages = ai_client.build_messages("olá", "translate", "en")
    assert "English" in messages[0]["content"]
    assert "English" in messages[1]["content"]

    messages = ai_client.build_messages("olá", "translate", "ja")
    assert "into ja" in messages[1]["content"]


def test_empty_completion_keeps_input(monkeypatch):
    _use_fake(monkeypatch, FakeGroq(completion=None))

    assert ai_client.process_text("texto original", "correct", "pt", api_key="k") == "texto original"


def test_unknown_mode_rejected_before_any_call(monkeypatch):
    fake = FakeGroq()
    _use_fake(monkeypatch, fake)

    with pytest.raises(ValueError):
        ai_client.process_text("texto", "summarise", "pt", api_key="k")
    assert fake.requests == []


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.setattr(ai_client, "Groq", FakeGroq)

    with pytest.raises(RuntimeError):
        ai_client.transcribe_audio(AudioClip(b"abc"), api_key=None)


def test_client_cached_per_api_key(monkeypatch):
    monkeypatch.setattr(ai_client, "Groq", FakeGroq)
    monkeypatch.setattr(ai_client, "_CLIENTS", {})

    first = ai_client._get_client("key-1")

    assert ai_client._get_client("key-1") is first
    assert ai_client._get_client("key-2") is not first
    assert first.api_key == "key-1"
