"""
Pytest Configuration and Fixtures
=================================

Fixtures:
    - clock: settable wall clock
    - scheduler: manual stand-in for AfterScheduler
    - player_factory: records fake looping players
    - tracks_dir: temp folder holding six empty .mp3 tracks
    - pattern / timer / audio / controller: wired-up components
"""
from __future__ import annotations

import pytest

from breathe_audio import DEFAULT_TRACKS, AmbientAudio, AudioUnavailableError
from breathe_controller import SessionController
from breathe_core import PHASE_STEP, BreathPattern, SessionTimer


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Holds repeating jobs; tests fire them explicitly."""

    def __init__(self):
        self.jobs = []
        self.cancelled = []

    def schedule_repeating(self, interval_ms, callback):
        job = {"interval_ms": interval_ms, "callback": callback, "active": True}
        self.jobs.append(job)
        return job

    def cancel(self, job):
        if job["active"]:
            job["active"] = False
            self.cancelled.append(job)

    @property
    def active(self):
        return [j for j in self.jobs if j["active"]]

    def fire(self) -> None:
        for job in self.active:
            if job["callback"]() is False:
                job["active"] = False


class FakePlayer:
    def __init__(self, path: str):
        self.path = path
        self.calls = []
        self.playing = False
        self.closed = False

    def play(self):
        self.calls.append("play")
        self.playing = True

    def pause(self):
        self.calls.append("pause")
        self.playing = False

    def close(self):
        self.calls.append("close")
        self.playing = False
        self.closed = True


class FakePlayerFactory:
    """Creates FakePlayers; paths listed in `missing` fail to load."""

    def __init__(self):
        self.players = []
        self.missing = set()

    def __call__(self, path: str) -> FakePlayer:
        if path in self.missing:
            raise AudioUnavailableError(f"track not found: {path}")
        player = FakePlayer(path)
        self.players.append(player)
        return player

    @property
    def open_players(self):
        return [p for p in self.players if not p.closed]


def run_for(timer: SessionTimer, clock: FakeClock, seconds: float, step: float = PHASE_STEP) -> int:
    """Tick `timer` as a 60Hz loop would for `seconds` of wall time.

    The clock is set from the tick index rather than accumulated, so it
    lands exactly on `start + seconds` at the last tick.
    """
    ticks = round(seconds / step)
    start = clock.now
    for i in range(1, ticks + 1):
        clock.now = start + seconds * i / ticks
        timer.tick()
    return ticks


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def player_factory():
    return FakePlayerFactory()


@pytest.fixture
def tracks_dir(tmp_path):
    for name in DEFAULT_TRACKS:
        (tmp_path / f"{name}.mp3").write_bytes(b"")
    return tmp_path


@pytest.fixture
def pattern():
    return BreathPattern(inhale=4, hold1=4, exhale=4, hold2=2)


@pytest.fixture
def timer(pattern, scheduler, clock):
    return SessionTimer(1, pattern, scheduler=scheduler, clock=clock)


@pytest.fixture
def audio(tracks_dir, player_factory):
    return AmbientAudio(DEFAULT_TRACKS, str(tracks_dir), player_factory=player_factory)


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def controller(timer, audio, notifications):
    return SessionController(timer, audio, notifier=lambda title, body: notifications.append((title, body)))
