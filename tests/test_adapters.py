"""Tests for the notification and speech adapters."""

import subprocess

import httpx
import pytest

from nextcall import notifications, speech
from nextcall.notifications import Notifier
from nextcall.speech import Speaker


class TestNotifier:

    def test_send_before_startup(self):
        with pytest.raises(RuntimeError):
            Notifier().send("Title")

    def test_no_backend(self, monkeypatch):
        monkeypatch.setattr(notifications.shutil, "which", lambda name: None)
        with pytest.raises(RuntimeError):
            Notifier().startup()

    def test_terminal_notifier_opens_link(self, monkeypatch):
        monkeypatch.setattr(notifications.shutil, "which",
                            lambda name: "/opt/bin/terminal-notifier" if name == "terminal-notifier" else None)
        calls = []
        monkeypatch.setattr(notifications.subprocess, "run",
                            lambda cmd, **kw: calls.append(cmd) or subprocess.CompletedProcess(cmd, 0, "", ""))

        notifier = Notifier()
        notifier.startup()
        notifier.startup()
        notifier.send("Call has just started", "Standup", "", "https://zoom.us/j/1")

        (cmd,) = calls
        assert cmd[0] == "/opt/bin/terminal-notifier"
        assert cmd[cmd.index("-open") + 1] == "https://zoom.us/j/1"
        assert cmd[cmd.index("-subtitle") + 1] == "Standup"

    def test_osascript_quotes_text(self, monkeypatch):
        monkeypatch.setattr(notifications.shutil, "which",
                            lambda name: "/usr/bin/osascript" if name == "osascript" else None)
        calls = []
        monkeypatch.setattr(notifications.subprocess, "run",
                            lambda cmd, **kw: calls.append(cmd) or subprocess.CompletedProcess(cmd, 0, "", ""))

        notifier = Notifier()
        notifier.startup()
        notifier.send("Call started 2 minutes ago", 'The "big" one', "")

        (cmd,) = calls
        assert cmd[:2] == ["osascript", "-e"]
        assert 'subtitle "The \\"big\\" one"' in cmd[2]

    def test_delivery_failure_is_logged(self, monkeypatch, caplog):
        monkeypatch.setattr(notifications.shutil, "which", lambda name: "/usr/bin/osascript")

        def boom(cmd, **kw):
            raise subprocess.TimeoutExpired(cmd, 10)

        monkeypatch.setattr(notifications.subprocess, "run", boom)
        notifier = Notifier()
        notifier.startup()
        notifier.send("Title")
        assert "Notification failed" in caplog.text


class TestSpeaker:

    def test_builtin_without_key(self, monkeypatch):
        spoken = []
        monkeypatch.setattr(speech, "say_builtin", lambda text, voice: spoken.append((text, voice)))

        Speaker(voice="Daniel")._speak("hello")
        assert spoken == [("hello", "Daniel")]

    def test_eleven_labs(self, monkeypatch):
        played = []
        monkeypatch.setattr(speech, "eleven_labs_request", lambda text, key: b"\x00\x01")
        monkeypatch.setattr(speech, "play_pcm", played.append)
        monkeypatch.setattr(speech, "say_builtin", lambda text, voice: pytest.fail("fell back"))

        Speaker(eleven_labs_key="sk-1")._speak("hello")
        assert played == [b"\x00\x01"]

    def test_eleven_labs_failure_falls_back(self, monkeypatch):
        def fail(text, key):
            raise httpx.ConnectError("offline")

        spoken = []
        monkeypatch.setattr(speech, "eleven_labs_request", fail)
        monkeypatch.setattr(speech, "say_builtin", lambda text, voice: spoken.append(text))

        Speaker(eleven_labs_key="sk-1")._speak("hello")
        assert spoken == ["hello"]

    def test_builtin_failure_is_contained(self, monkeypatch):
        def missing(text, voice):
            raise FileNotFoundError("say")

        monkeypatch.setattr(speech, "say_builtin", missing)
        Speaker()._speak("hello")
