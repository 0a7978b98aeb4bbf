"""
WishperPro - Hotkey dictation with transcript cleanup, correction and translation.

MIT License
Copyright (c) 2026 Rohan Sharvesh
Copyright (c) 2026 Rehan

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

import io
import sys
import time
import logging
import argparse
import threading
from pathlib import Path
import numpy as np
import sounddevice as sd
import soundfile as sf
from dotenv import load_dotenv

import transcription_store
from audio_gate import AudioClip, clip_from_file
from config import WishperProConfig, load_config, get_api_key, get_config_dir
from hotkeys import HotkeyManager
from pipeline import DictationPipeline, DictationResult, REASON_AUDIO_REJECTED
from transcript_filter import save_hallucination_rules

logger = logging.getLogger(__name__)

NO_SPEECH_NOTICE = "Couldn't catch that, try again."
SHORT_AUDIO_NOTICE = "Audio too short. Please record at least one second."


def _trim_silence(data: np.ndarray, threshold: float) -> np.ndarray:
    if data.size == 0:
        return data
    mono = np.abs(data.mean(axis=1)) if data.ndim > 1 else np.abs(data)
    peak = float(mono.max())
    if peak <= 0:
        return data[:0]
    cutoff = peak * max(threshold, 0.0)
    idx = np.where(mono > cutoff)[0]
    if idx.size == 0:
        return data[:0]
    return data[idx[0] : idx[-1] + 1]


def encode_wav(data: np.ndarray, samplerate: int) -> AudioClip:
    """Encode recorded frames as an in-memory WAV clip with its measured duration."""
    frames = int(data.shape[0]) if data.ndim else 0
    if frames == 0:
        return AudioClip(data=b"", mime_type="audio/wav", duration_ms=0.0)
    buffer = io.BytesIO()
    sf.write(buffer, data, samplerate, format="WAV", subtype="PCM_16")
    return AudioClip(
        data=buffer.getvalue(),
        mime_type="audio/wav",
        duration_ms=frames / float(samplerate) * 1000.0,
    )


class Recorder:
    def __init__(self, samplerate=16000, channels=1, trim_silence=True, silence_threshold=0.02):
        self.sr = samplerate
        self.channels = channels
        self.trim_silence = trim_silence
        self.silence_threshold = silence_threshold
        self._active_sr = samplerate
        self._frames = []
        self._rec_thread = None
        self._running = threading.Event()
        self.last_error = None
        self._started_event = threading.Event()

    @property
    def is_recording(self) -> bool:
        return self._running.is_set()

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.warning(f"Recording status: {status}")
        # copy because indata is reused by sounddevice
        self._frames.append(indata.copy())

    def start(self):
        self._frames = []
        self.last_error = None
        self._started_event.clear()
        self._running.set()

        def _run():
            errors = []
            candidates = []
            for candidate in (self.sr, 16000, 44100, 48000):
                if candidate not in candidates:
                    candidates.append(candidate)

            for candidate in candidates:
                try:
                    with sd.InputStream(samplerate=candidate, channels=self.channels, callback=self._callback):
                        self._active_sr = candidate
                        # signal that the input stream opened successfully
                        self._started_event.set()
                        while self._running.is_set():
                            sd.sleep(50)
                        return
                except Exception as e:
                    errors.append(f"{candidate}Hz: {e}")
                    self._frames = []
                    continue

            self.last_error = " | ".join(errors) or "No input device"
            self._running.clear()
            self._started_event.set()

        self._rec_thread = threading.Thread(target=_run, daemon=True)
        self._rec_thread.start()

    def wait_started(self, timeout: float = 1.0) -> bool:
        return self._started_event.wait(timeout=timeout) and self.last_error is None

    def stop(self) -> AudioClip:
        self._running.clear()
        if self._rec_thread is not None:
            self._rec_thread.join()
        if self.last_error:
            raise RuntimeError(self.last_error)
        if not self._frames:
            return encode_wav(np.zeros((0, self.channels), dtype=np.float32), self._active_sr)
        data = np.concatenate(self._frames, axis=0)
        if self.trim_silence:
            data = _trim_silence(data, self.silence_threshold)
        return encode_wav(data, self._active_sr)


def copy_to_clipboard(text: str) -> bool:
    import pyperclip

    try:
        pyperclip.copy(text)
        return True
    except pyperclip.PyperclipException as ex:
        logger.warning(f"Clipboard unavailable: {ex}")
        return False


def deliver(result: DictationResult, config: WishperProConfig) -> None:
    if not result.ok:
        print(SHORT_AUDIO_NOTICE if result.reason == REASON_AUDIO_REJECTED else NO_SPEECH_NOTICE)
        return

    print("Transcription:\n", result.clean_text)
    print("Final text:\n", result.final_text)
    if config.copy_to_clipboard and copy_to_clipboard(result.final_text):
        print("Copied to clipboard")


def run_hotkey_loop(config: WishperProConfig, pipeline: DictationPipeline, mode=None, target_language=None):
    recorder = Recorder(
        samplerate=config.sample_rate,
        channels=config.channels,
        trim_silence=config.trim_silence,
        silence_threshold=config.silence_threshold,
    )
    busy = threading.Lock()

    def _process(clip: AudioClip):
        with busy:
            try:
                result = pipeline.run(clip, mode=mode, target_language=target_language)
                deliver(result, config)
            except Exception as ex:
                logger.error(f"Transcription error: {ex}")
                print("Transcription error:", ex, file=sys.stderr)

    def start_recording() -> bool:
        if recorder.is_recording:
            return True
        print("Start recording")
        recorder.start()
        if not recorder.wait_started():
            msg = recorder.last_error or "Timeout opening audio input device"
            print(f"Recording error: {msg}", file=sys.stderr)
            return False
        return True

    def stop_recording():
        if not recorder.is_recording:
            return
        print("Stop recording")
        try:
            clip = recorder.stop()
        except RuntimeError as ex:
            print("Recording error:", ex, file=sys.stderr)
            return
        threading.Thread(target=_process, args=(clip,), daemon=True).start()

    hotkey_manager = HotkeyManager(
        config.hotkey,
        on_start=start_recording,
        on_stop=stop_recording,
        mode=config.hotkey_mode,
        backend=config.hotkey_backend,
    )
    try:
        active_backend = hotkey_manager.start()
        print(f"Hotkey listener active: {active_backend}")
    except RuntimeError as ex:
        print(f"Failed to register hotkey '{config.hotkey}': {ex}", file=sys.stderr)
        return 1

    if config.hotkey_mode == "toggle":
        print(f"Press '{config.hotkey}' to start recording; press again to stop.")
    else:
        print(f"Hold '{config.hotkey}' to record; release to send audio for transcription.")
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("Exiting")
    finally:
        hotkey_manager.stop()
    return 0


def print_banner(config: WishperProConfig):
    print("WishperPro")
    print("License: MIT")
    print("")
    print(f"Mode: {config.mode} (target language: {config.target_language})")
    print(f"Transcription model: {config.whisper_model} (language hint: {config.language})")
    print(f"Text model: {config.chat_model}")
    print(f"Hotkey: {config.hotkey} ({config.hotkey_mode}, backend preference: {config.hotkey_backend})")
    print(f"Audio: {config.sample_rate}Hz, channels={config.channels}, trim_silence={'on' if config.trim_silence else 'off'}")
    print(f"Admission floor: {config.min_duration_ms}ms or {config.min_audio_bytes} bytes")
    if config.save_history:
        try:
            info = transcription_store.get_storage_info()
            print(f"History: {info['storage_path']} ({info['statistics']['total_transcriptions']} entries)")
        except Exception as ex:
            logger.warning(f"History unavailable: {ex}")
    if not get_api_key():
        print("Warning: GROQ_API_KEY is not set", file=sys.stderr)
    print("")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WishperPro - Hotkey dictation with correction and translation")
    parser.add_argument("--file", type=str, metavar="AUDIO", help="Transcribe an audio file once and exit")
    parser.add_argument("--mode", choices=["correct", "translate"], help="Override the processing mode")
    parser.add_argument("--target-language", type=str, metavar="CODE", help="Override the target language")
    parser.add_argument("--list", action="store_true", help="List recent transcriptions")
    parser.add_argument("--search", type=str, metavar="QUERY", help="Search transcriptions")
    parser.add_argument("--stats", action="store_true", help="Show transcription statistics")
    parser.add_argument("--export", type=str, metavar="FILE", help="Export all transcriptions to a text file")
    parser.add_argument("--delete", type=int, metavar="ID", help="Delete one transcription")
    parser.add_argument("--clear-history", action="store_true", help="Delete all transcriptions")
    parser.add_argument(
        "--dump-rules",
        type=str,
        nargs="?",
        const="",
        metavar="FILE",
        help="Write the default hallucination rules to FILE (default: config dir) for editing",
    )
    return parser


def main(argv=None) -> int:
    # load environment variables from .env (if present)
    load_dotenv()
    args = build_parser().parse_args(argv)
    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.dump_rules is not None:
        path = Path(args.dump_rules) if args.dump_rules else get_config_dir() / "hallucination_rules.json"
        save_hallucination_rules(path)
        print(f"Hallucination rules written to: {path}")
        print("Point HALLUCINATION_RULES (or hallucination_rules_path in config.json) at it to use your edits.")
        return 0

    if args.export:
        path = Path(args.export)
        content = transcription_store.export_all_to_text(path, include_metadata=True)
        print(f"Exported to: {path}")
        print(f"Content preview:\n{content[:500]}...")
        return 0

    if args.list:
        entries = transcription_store.get_transcriptions(config.history_limit)
        print("Recent Transcriptions:")
        print("-" * 60)
        for entry in entries:
            print(f"#{entry.id} [{entry.timestamp[:19]}] ({entry.mode}/{entry.language}) {entry.display_text[:80]}")
            if len(entry.display_text) > 80:
                print(f"   ... ({entry.word_count} words)")
        return 0

    if args.search:
        results = transcription_store.search_transcriptions(args.search, limit=config.history_limit)
        print(f"Search results for '{args.search}':")
        print("-" * 60)
        for entry in results:
            print(f"#{entry.id} [{entry.timestamp[:19]}] {entry.display_text[:100]}")
        print(f"Found {len(results)} matching transcriptions")
        return 0

    if args.stats:
        info = transcription_store.get_storage_info()
        print("Transcription Storage Statistics")
        print("-" * 40)
        print(f"Storage location: {info['storage_path']}")
        stats = info["statistics"]
        print(f"Total transcriptions: {stats['total_transcriptions']}")
        print(f"Total words: {stats['total_words']}")
        print(f"Total characters: {stats['total_characters']}")
        print(f"Mode breakdown: {stats['mode_breakdown']}")
        return 0

    if args.delete is not None:
        if transcription_store.delete_transcription(args.delete):
            print(f"Deleted transcription #{args.delete}")
            return 0
        print(f"No transcription with id {args.delete}", file=sys.stderr)
        return 1

    if args.clear_history:
        removed = transcription_store.clear_transcriptions()
        print(f"Deleted {removed} transcriptions")
        return 0

    pipeline = DictationPipeline(config)

    if args.file:
        try:
            clip = clip_from_file(args.file)
            result = pipeline.run(clip, mode=args.mode, target_language=args.target_language)
        except Exception as ex:
            logger.error(f"Transcription error: {ex}")
            print("Transcription error:", ex, file=sys.stderr)
            return 1
        deliver(result, config)
        return 0

    print_banner(config)
    return run_hotkey_loop(config, pipeline, mode=args.mode, target_language=args.target_language)


if __name__ == "__main__":
    sys.exit(main())
