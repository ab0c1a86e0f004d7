"""Spoken call alerts."""

import logging
import subprocess
import threading
from typing import Optional

import httpx

from .config import DEFAULT_VOICE

logger = logging.getLogger(__name__)

ELEVEN_LABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
# Male British voice
ELEVEN_LABS_VOICE_ID = "JBFqnCBsd6RMkjVDRZzb"
ELEVEN_LABS_MODEL = "eleven_multilingual_v2"
PCM_SAMPLE_RATE = 44100
REQUEST_TIMEOUT_SECS = 10


def eleven_labs_request(text: str, api_key: str) -> bytes:
    """
    Synthesize speech with ElevenLabs.

    Returns:
        Raw 16-bit mono PCM at 44.1kHz
    """
    with httpx.Client(timeout=REQUEST_TIMEOUT_SECS) as client:
        resp = client.post(
            ELEVEN_LABS_URL.format(voice_id=ELEVEN_LABS_VOICE_ID),
            params={"output_format": f"pcm_{PCM_SAMPLE_RATE}"},
            headers={"xi-api-key": api_key},
            json={"text": text, "model_id": ELEVEN_LABS_MODEL},
        )
        resp.raise_for_status()
        return resp.content


def play_pcm(pcm: bytes):
    """Play 16-bit PCM through the default output device and wait for it."""
    # pylint: disable=import-outside-toplevel
    import numpy as np
    import sounddevice as sd

    audio = np.frombuffer(pcm, dtype=np.int16)
    sd.play(audio, PCM_SAMPLE_RATE)
    sd.wait()


def say_builtin(text: str, voice: str = DEFAULT_VOICE):
    """Speak with the macOS `say` command without waiting for it."""
    subprocess.Popen(
        ["say", "-v", voice, text],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


class Speaker:
    """
    Speaks alerts in the background.

    Uses ElevenLabs when an API key is configured, falling back to the
    built-in voice if the request or playback fails.
    """

    def __init__(self, eleven_labs_key: Optional[str] = None, voice: str = DEFAULT_VOICE):
        self.eleven_labs_key = eleven_labs_key
        self.voice = voice

    def say(self, text: str):
        thread = threading.Thread(target=self._speak, args=(text,), daemon=True)
        thread.start()

    def _speak(self, text: str):
        if self.eleven_labs_key:
            try:
                play_pcm(eleven_labs_request(text, self.eleven_labs_key))
                return
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("ElevenLabs speech failed, falling back to built-in: %s", e)

        try:
            say_builtin(text, self.voice)
        except OSError as e:
            logger.warning("Built-in speech failed: %s", e)
