from types import SimpleNamespace

import pytest

from hotkeys import HotkeyManager, backend_order, pynput_key


class FakeKeyCode:
    def __init__(self, char):
        self.char = char

    @classmethod
    def from_char(cls, char):
        return cls(char)


FAKE_PYNPUT = SimpleNamespace(
    Key=SimpleNamespace(f9="<f9>", ctrl="<ctrl>", enter="<enter>", esc="<esc>", pause="<pause>"),
    KeyCode=FakeKeyCode,
)


def _manager(mode, start_result=True):
    calls = []

    def on_start():
        calls.append("start")
        return start_result

    def on_stop():
        calls.append("stop")

    return HotkeyManager("f9", on_start, on_stop, mode=mode), calls


def test_hold_records_while_key_is_down():
    manager, calls = _manager("hold")

    manager.key_down()
    manager.key_down()  # auto-repeat
    assert manager.active
    manager.key_up()

    assert calls == ["start", "stop"]
    assert not manager.active


def test_toggle_flips_on_each_press_and_ignores_release():
    manager, calls = _manager("toggle")

    manager.key_down()
    manager.key_up()
    assert calls == ["start"]
    manager.key_down()
    manager.key_down()
    manager.key_up()

    assert calls == ["start", "stop"]
    assert not manager.active


def test_failed_start_leaves_manager_idle():
    manager, calls = _manager("toggle", start_result=False)

    manager.key_down()
    manager.key_up()
    manager.key_down()

    assert calls == ["start", "start"]
    assert not manager.active


def test_release_without_press_does_nothing():
    manager, calls = _manager("hold")

    manager.key_up()

    assert calls == []


def test_pynput_key_names():
    assert pynput_key("F9", FAKE_PYNPUT) == "<f9>"
    assert pynput_key("control", FAKE_PYNPUT) == "<ctrl>"
    assert pynput_key("Return", FAKE_PYNPUT) == "<enter>"
    assert pynput_key("x", FAKE_PYNPUT).char == "x"
    assert pynput_key("hyper", FAKE_PYNPUT) is None
    assert pynput_key("", FAKE_PYNPUT) is None
    assert pynput_key("__class__", FAKE_PYNPUT) is None


def test_backend_order():
    assert backend_order("auto", "linux") == ["pynput", "keyboard"]
    assert backend_order("auto", "darwin") == ["pynput", "keyboard"]
    assert backend_order("auto", "win32") == ["keyboard", "pynput"]
    assert backend_order("keyboard", "linux") == ["keyboard"]


def test_start_falls_back_to_next_backend(monkeypatch):
    manager = HotkeyManager("f9", lambda: True, lambda: None, backend="auto")
    stopped = []

    def broken():
        raise OSError("needs root")

    monkeypatch.setattr(manager, "_listen_pynput", broken)
    monkeypatch.setattr(manager, "_listen_keyboard", lambda: lambda: stopped.append(True))
    monkeypatch.setattr("hotkeys.sys.platform", "linux")

    assert manager.start() == "keyboard"
    assert manager.active_backend == "keyboard"
    manager.stop()
    manager.stop()
    assert stopped == [True]


def test_start_reports_every_backend_error():
    manager = HotkeyManager("f9", lambda: True, lambda: None, backend="x11")

    with pytest.raises(RuntimeError) as err:
        manager.start()

    assert "x11: unsupported backend" in str(err.value)
