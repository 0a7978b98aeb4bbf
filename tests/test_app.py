import numpy as np
import pytest

try:
    import app
except OSError:  # sounddevice raises when the PortAudio library is missing
    app = None

from config import WishperProConfig
from pipeline import REASON_AUDIO_REJECTED, REASON_NO_SPEECH, REASON_OK, DictationResult

pytestmark = pytest.mark.skipif(app is None, reason="PortAudio library not available")


def test_banner_states_license_without_pointing_at_missing_files(monkeypatch, capsys):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")

    app.print_banner(WishperProConfig(save_history=False))

    out = capsys.readouterr().out
    assert "License: MIT" in out
    assert "LICENSE" not in out


def test_rejections_print_gentle_notices(capsys):
    config = WishperProConfig(copy_to_clipboard=False)

    app.deliver(DictationResult(REASON_AUDIO_REJECTED), config)
    app.deliver(DictationResult(REASON_NO_SPEECH, raw_text="Obrigado."), config)
    app.deliver(DictationResult(REASON_OK, "olá mundo", "olá mundo", "Olá, mundo."), config)

    out = capsys.readouterr().out
    assert app.SHORT_AUDIO_NOTICE in out
    assert app.NO_SPEECH_NOTICE in out
    assert "Olá, mundo." in out


def test_encode_wav_measures_duration():
    clip = app.encode_wav(np.zeros((8000, 1), dtype=np.float32), 16000)

    assert clip.mime_type == "audio/wav"
    assert clip.duration_ms == 500.0
    assert clip.data[:4] == b"RIFF"


def test_silent_recording_trims_to_empty_clip():
    data = app._trim_silence(np.zeros((4000, 1), dtype=np.float32), 0.02)
    clip = app.encode_wav(data, 16000)

    assert clip.data == b""
    assert clip.duration_ms == 0.0
