# tts.py
# Speech surface: a background pyttsx3 worker fed through a queue.
# say() never blocks and never raises; speech is best-effort.

import logging
import queue
import threading
from typing import Any, Callable, Optional

import pyttsx3

logger = logging.getLogger(__name__)


def _voice_matches(voice: Any, lang: str) -> bool:
    """True if a pyttsx3 voice advertises the language ("ja-JP" → "ja")."""
    short = lang.split("-")[0].lower()
    for code in getattr(voice, "languages", None) or []:
        if isinstance(code, bytes):
            code = code.decode("ascii", errors="ignore")
        code = code.lstrip("\x05").lower().replace("_", "-")
        if code == lang.lower() or code.split("-")[0] == short:
            return True
    ident = f"{getattr(voice, 'id', '')} {getattr(voice, 'name', '')}".lower()
    return f"{short}-" in ident or f"{short}_" in ident or (short == "ja" and "japan" in ident)


def init_tts(rate: int = 165, lang: Optional[str] = None, engine_factory: Callable[[], Any] = pyttsx3.init):
    """Create a pyttsx3 engine, picking a voice for lang when one is installed."""
    engine = engine_factory()
    engine.setProperty("rate", rate)
    engine.setProperty("volume", 1.0)

    if lang:
        for v in engine.getProperty("voices") or []:
            if _voice_matches(v, lang):
                engine.setProperty("voice", v.id)
                break
        else:
            logger.warning(f"No TTS voice for {lang}; using the default voice.")
    return engine


class SpeechQueue:
    """
    Fire-and-forget speech output.

    One daemon thread owns the pyttsx3 engine (engines are not thread-safe)
    and speaks queued texts in order. Engine failures are logged and the
    worker moves on to the next text.

    Args:
        rate:           Words per minute.
        lang:           Default language tag, e.g. "ja-JP".
        engine_factory: Builds the engine; defaults to pyttsx3.init.
    """

    def __init__(
        self,
        rate: int = 165,
        lang: str = "ja-JP",
        engine_factory: Callable[[], Any] = pyttsx3.init,
    ) -> None:
        self.rate = rate
        self.lang = lang
        self._engine_factory = engine_factory
        self._engine = None
        self._engine_lang: Optional[str] = None
        self._queue: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self._thread = threading.Thread(target=self._worker, name="tts", daemon=True)
        self._thread.start()

    def say(self, text: str, lang: Optional[str] = None) -> None:
        text = (text or "").strip()
        if text:
            self._queue.put((text, lang or self.lang))

    def wait(self) -> None:
        """Block until everything queued so far has been spoken."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        self._queue.put(None)
        self._thread.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    break
                text, lang = item
                self._speak(text, lang)
            finally:
                self._queue.task_done()

    def _speak(self, text: str, lang: str) -> None:
        try:
            if self._engine is None or self._engine_lang != lang:
                self._engine = init_tts(self.rate, lang, self._engine_factory)
                self._engine_lang = lang
            self._engine.say(text)
            self._engine.runAndWait()
        except Exception as e:
            # Drop the engine so the next text gets a fresh one
            logger.warning(f"TTS error, skipping '{text}': {e}")
            self._engine = None
