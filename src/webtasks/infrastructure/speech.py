"""
Narration collaborators.

``Narrator.speak`` resolves when the narration has finished (or was
stopped); ``stop`` halts whatever is being spoken. ``SilentNarrator``
covers headless use, ``Pyttsx3Narrator`` speaks through the OS engine.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import pyttsx3

logger = logging.getLogger(__name__)


class Narrator(ABC):
    """Speech collaborator used by the orchestrator."""

    @abstractmethod
    async def speak(self, text: str) -> None:
        """Speak ``text``, interrupting any ongoing narration."""

    @abstractmethod
    async def stop(self) -> None:
        """Halt ongoing narration. Safe to call when idle."""

    def close(self) -> None:
        """Release engine resources."""


class SilentNarrator(Narrator):
    """Completes immediately without producing audio."""

    async def speak(self, text: str) -> None:
        logger.debug(f"Narration skipped ({len(text)} chars)")

    async def stop(self) -> None:
        return None


class Pyttsx3Narrator(Narrator):
    """
    Speaks through the platform TTS engine (SAPI5, NSSpeechSynthesizer or
    eSpeak) via pyttsx3.

    The engine is created lazily. Creation, ``say`` and the blocking
    ``runAndWait`` all run on one worker thread. ``stop`` is called from the
    event loop and interrupts the running ``runAndWait``, which makes the
    pending ``speak`` return.
    """

    def __init__(self, words_per_minute: Optional[int] = None):
        self.words_per_minute = words_per_minute
        self._engine = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="webtasks-tts")

    def _get_engine(self):
        if self._engine is None:
            engine = pyttsx3.init()
            if self.words_per_minute:
                engine.setProperty("rate", self.words_per_minute)
            self._engine = engine
        return self._engine

    def _speak_blocking(self, text: str) -> None:
        engine = self._get_engine()
        engine.say(text)
        engine.runAndWait()

    async def speak(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        await self.stop()
        logger.info(f"🔊 {text}")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self._speak_blocking, text)
        except asyncio.CancelledError:
            await self.stop()
            raise

    async def stop(self) -> None:
        if self._engine is not None:
            self._engine.stop()

    def close(self) -> None:
        """Stop speaking and release the worker thread."""
        if self._engine is not None:
            self._engine.stop()
        self._executor.shutdown(wait=False, cancel_futures=True)
