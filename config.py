"""
WishperPro configuration module
Handles config.json persistence and environment variable overrides

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

import os
import json
import math
import platform
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict, fields


def get_config_path() -> Path:
    """Get platform-specific config file path"""
    system = platform.system()

    if system == "Windows":
        config_dir = Path(os.environ.get("APPDATA", ""))
        return config_dir / "WishperPro" / "config.json"
    else:
        config_dir = Path(os.path.expanduser("~/.config"))
        return config_dir / "wishperpro" / "config.json"


def get_config_dir() -> Path:
    """Create and return config directory"""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    return config_path.parent


VALID_MODES = {"correct", "translate"}
VALID_HOTKEY_MODES = {"hold", "toggle"}
VALID_HOTKEY_BACKENDS = {"auto", "keyboard", "pynput"}
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass
class WishperProConfig:
    hotkey: str = "f9"
    hotkey_mode: str = "hold"
    hotkey_backend: str = "auto"
    whisper_model: str = "whisper-large-v3-turbo"
    chat_model: str = "openai/gpt-oss-120b"
    language: str = "pt"
    mode: str = "correct"
    target_language: str = "pt"
    min_audio_bytes: int = 1000
    min_duration_ms: int = 500
    hallucination_rules_path: str = ""
    copy_to_clipboard: bool = True
    save_history: bool = True
    history_limit: int = 50
    sample_rate: int = 16000
    trim_silence: bool = True
    silence_threshold: float = 0.02
    channels: int = 1
    log_level: str = "info"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WishperProConfig":
        if data is None:
            return cls()
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def save(self, path: Optional[Path] = None) -> None:
        """Save config to JSON file"""
        path = path or get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "WishperProConfig":
        """Load config from JSON file, return defaults if not exists"""
        path = path or get_config_path()
        if not path.exists():
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.from_dict(data).validated()
        except (json.JSONDecodeError, KeyError, TypeError, OSError):
            return cls()

    def validated(self) -> "WishperProConfig":
        """Reset fields holding values of the wrong type or unknown choices to their defaults"""
        defaults = WishperProConfig()
        for field in fields(self):
            value = getattr(self, field.name)
            default = getattr(defaults, field.name)
            if isinstance(default, bool):
                value = value if isinstance(value, bool) else default
            elif isinstance(default, int):
                value = _as_number(value, int, default)
            elif isinstance(default, float):
                value = _as_number(value, float, default)
            elif not isinstance(value, str):
                value = default
            setattr(self, field.name, value)

        if self.mode not in VALID_MODES:
            self.mode = defaults.mode
        if self.hotkey_mode not in VALID_HOTKEY_MODES:
            self.hotkey_mode = defaults.hotkey_mode
        if self.hotkey_backend not in VALID_HOTKEY_BACKENDS:
            self.hotkey_backend = defaults.hotkey_backend
        if self.log_level not in VALID_LOG_LEVELS:
            self.log_level = defaults.log_level
        return self


def _as_number(value, kind, default):
    # "500" from a hand-edited config.json still counts; true/false and garbage do not
    if isinstance(value, bool):
        return default
    try:
        number = kind(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if kind is float and not math.isfinite(number):
        return default
    return number


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(value: str, current: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return current


def _env_float(value: str, current: float) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return current


def get_api_key() -> Optional[str]:
    """The Groq API key is read from the environment only, never from config.json"""
    key = (os.getenv("GROQ_API_KEY") or "").strip()
    return key or None


def load_config(path: Optional[Path] = None) -> WishperProConfig:
    """
    Load configuration with environment variable overrides
    Priority: CLI args > env vars > config file > defaults
    """
    config = WishperProConfig.load(path)

    text_overrides = {
        "HOTKEY": "hotkey",
        "GROQ_WHISPER_MODEL": "whisper_model",
        "GROQ_CHAT_MODEL": "chat_model",
        "DICTATION_LANGUAGE": "language",
        "TARGET_LANGUAGE": "target_language",
        "HALLUCINATION_RULES": "hallucination_rules_path",
    }
    lower_overrides = {
        "HOTKEY_MODE": "hotkey_mode",
        "HOTKEY_BACKEND": "hotkey_backend",
        "DICTATION_MODE": "mode",
        "LOG_LEVEL": "log_level",
    }
    int_overrides = {
        "MIN_AUDIO_BYTES": "min_audio_bytes",
        "MIN_DURATION_MS": "min_duration_ms",
        "SAMPLE_RATE": "sample_rate",
        "CHANNELS": "channels",
    }
    flag_overrides = {
        "COPY_TO_CLIPBOARD": "copy_to_clipboard",
        "SAVE_HISTORY": "save_history",
        "TRIM_SILENCE": "trim_silence",
    }

    for key, attr in text_overrides.items():
        value = os.getenv(key)
        if value is not None and value.strip():
            setattr(config, attr, value.strip())
    for key, attr in lower_overrides.items():
        value = os.getenv(key)
        if value is not None:
            setattr(config, attr, value.strip().lower())
    for key, attr in int_overrides.items():
        value = os.getenv(key)
        if value is not None:
            setattr(config, attr, _env_int(value, getattr(config, attr)))
    for key, attr in flag_overrides.items():
        value = os.getenv(key)
        if value is not None:
            setattr(config, attr, _env_flag(value))

    threshold = os.getenv("SILENCE_THRESHOLD")
    if threshold is not None:
        config.silence_threshold = _env_float(threshold, config.silence_threshold)

    return config.validated()
