"""
WishperPro hotkeys - global push-to-talk and toggle listener

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

import sys
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

_PYNPUT_ALIASES = {"control": "ctrl", "return": "enter", "escape": "esc"}


def pynput_key(hotkey: str, pynput_keyboard):
    """Resolve a hotkey name ("f9", "ctrl", "x") to a pynput Key or KeyCode, or None."""
    name = (hotkey or "").strip().lower()
    name = _PYNPUT_ALIASES.get(name, name)
    if len(name) == 1:
        return pynput_keyboard.KeyCode.from_char(name)
    if not name or name.startswith("_"):
        return None
    return getattr(pynput_keyboard.Key, name, None)


def backend_order(preference: str, platform: Optional[str] = None) -> List[str]:
    if preference != "auto":
        return [preference]
    platform = platform or sys.platform
    # the keyboard backend needs root on Linux
    if platform.startswith("linux") or platform == "darwin":
        return ["pynput", "keyboard"]
    return ["keyboard", "pynput"]


class HotkeyManager:
    """
    Turn raw key down/up events into start/stop recording calls.

    In "hold" mode key down starts and key up stops. In "toggle" mode each
    key down flips between the two and key up is ignored. Auto-repeated key
    downs while the key is held are dropped. on_start may return False when
    recording could not begin; the manager then stays idle.
    """

    def __init__(
        self,
        hotkey: str,
        on_start: Callable[[], Optional[bool]],
        on_stop: Callable[[], None],
        mode: str = "hold",
        backend: str = "auto",
    ):
        self.hotkey = (hotkey or "").strip()
        self.on_start = on_start
        self.on_stop = on_stop
        self.mode = mode
        self.backend = (backend or "auto").strip().lower()
        self.active_backend = None
        self.active = False
        self._held = False
        self._unhook = None

    def key_down(self):
        if self._held:
            return
        self._held = True
        if not self.active:
            self.active = self.on_start() is not False
        elif self.mode == "toggle":
            self._finish()

    def key_up(self):
        if not self._held:
            return
        self._held = False
        if self.mode == "hold" and self.active:
            self._finish()

    def _finish(self):
        self.active = False
        self.on_stop()

    def _listen_keyboard(self):
        import keyboard

        hooks = [
            keyboard.on_press_key(self.hotkey, lambda _: self.key_down()),
            keyboard.on_release_key(self.hotkey, lambda _: self.key_up()),
        ]

        def _unhook():
            for hook in hooks:
                try:
                    keyboard.unhook(hook)
                except (KeyError, ValueError):
                    pass

        return _unhook

    def _listen_pynput(self):
        from pynput import keyboard as pynput_keyboard

        target = pynput_key(self.hotkey, pynput_keyboard)
        if target is None:
            raise ValueError(f"Unsupported hotkey for pynput backend: '{self.hotkey}'")

        def _is_target(key):
            if isinstance(target, pynput_keyboard.KeyCode):
                char = getattr(key, "char", None)
                return bool(char) and char.lower() == target.char
            return key == target

        # pynput stops the listener when a callback returns False
        def _on_press(key):
            if _is_target(key):
                self.key_down()

        def _on_release(key):
            if _is_target(key):
                self.key_up()

        listener = pynput_keyboard.Listener(on_press=_on_press, on_release=_on_release)
        listener.daemon = True
        listener.start()
        return listener.stop

    def start(self) -> str:
        """Start the first backend that works; returns its name."""
        listeners = {"keyboard": self._listen_keyboard, "pynput": self._listen_pynput}
        errors = []
        for candidate in backend_order(self.backend):
            listen = listeners.get(candidate)
            if listen is None:
                errors.append(f"{candidate}: unsupported backend")
                continue
            try:
                self._unhook = listen()
            except Exception as ex:
                errors.append(f"{candidate}: {ex}")
                continue
            self.active_backend = candidate
            logger.info(f"Hotkey '{self.hotkey}' registered with {candidate} ({self.mode} mode)")
            return candidate

        raise RuntimeError("Unable to start hotkey listener. " + " | ".join(errors))

    def stop(self):
        if self._unhook is not None:
            self._unhook()
            self._unhook = None
