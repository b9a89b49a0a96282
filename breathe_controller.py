"""
Command glue between the view, the session timer and ambient audio.

Views call these methods instead of poking the timer and audio directly,
which keeps tap/reset/audio rules in one testable place.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from breathe_audio import AmbientAudio
from breathe_config import clamp_settings
from breathe_core import BreathPattern, SessionSnapshot, SessionState, SessionTimer

logger = logging.getLogger(__name__)

COMPLETE_TITLE = "Session complete"
COMPLETE_BODY = "Nice work. Take a moment before you get up."

Notifier = Callable[[str, str], object]


class SessionController:

    def __init__(self, timer: SessionTimer, audio: AmbientAudio,
                 notifier: Optional[Notifier] = None):
        self.timer = timer
        self.audio = audio
        self.notifier = notifier
        self.completed_sessions = 0
        timer.on_complete(self._on_complete)

    # ── Session ──
    def tap(self) -> SessionState:
        """Circle tap: start, pause, resume, or restart a finished session."""
        state = self.timer.state
        if state == SessionState.RUNNING:
            self.timer.pause()
            if self.audio.is_on:
                self.audio.pause()
        else:
            if state == SessionState.FINISHED:
                self.timer.reset()
            self.timer.start()
            if self.audio.is_on:
                self.audio.resume()
        return self.timer.state

    def reset(self) -> None:
        self.timer.reset()
        self.audio.stop()

    def apply_settings(self, minutes: int, pattern: BreathPattern) -> tuple[int, BreathPattern]:
        minutes, pattern = clamp_settings(minutes, pattern)
        self.timer.apply(minutes, pattern)
        return minutes, pattern

    # ── Audio ──
    def set_audio(self, on: bool) -> None:
        if on:
            self.audio.toggle_on()
        else:
            self.audio.toggle_off()

    def toggle_audio(self) -> bool:
        self.set_audio(not self.audio.is_on)
        return self.audio.is_on

    @property
    def can_skip_track(self) -> bool:
        return self.audio.is_on and bool(self.audio.tracks)

    def next_track(self) -> None:
        if not self.can_skip_track:
            return
        self.audio.next_track()

    # ── View helpers ──
    @property
    def primary_label(self) -> str:
        if self.timer.state == SessionState.IDLE:
            return "Start"
        return self.timer.phase.label

    def _on_complete(self, snap: SessionSnapshot) -> None:
        self.completed_sessions += 1
        if self.notifier is None:
            return
        try:
            self.notifier(COMPLETE_TITLE, COMPLETE_BODY)
        except Exception:
            logger.exception("Completion notifier failed")
