"""
Breathe — sounds and looping ambient audio.

play_sound() fires a one-shot system chime.  AmbientAudio owns the single
looping track player and is the only thing allowed to create or destroy
it; load failures leave it empty so the next play attempt retries.
"""
from __future__ import annotations

import logging
import os
import platform
import signal
import subprocess
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"

DEFAULT_TRACKS = [
    "meditation-music-338902",
    "meditation-music-409195",
    "meditation-yoga-409201",
    "rain-forest-cinematic-223986",
    "ambient-forest-rain-375365",
    "autumn-forest-248158",
]
TRACK_EXT = ".mp3"


class AudioUnavailableError(Exception):
    """A track is missing or no playback backend could be started."""


# ─── Sound System ─────────────────────────────────────────────
def play_sound(sound_type: str = "chime") -> None:
    """Play a short system sound. Silent on failure; sound is optional."""
    try:
        if IS_WIN:
            import winsound
            alias = {"chime": "SystemAsterisk", "complete": "SystemExclamation"}.get(sound_type, "SystemHand")
            winsound.PlaySound(alias, winsound.SND_ALIAS | winsound.SND_ASYNC)
        elif IS_MAC:
            sounds = {"chime": "Blow", "complete": "Glass", "warning": "Basso"}
            subprocess.Popen(["afplay", f"/System/Library/Sounds/{sounds.get(sound_type, 'Blow')}.aiff"])
        else:  # Linux
            for cmd in [["paplay", "/usr/share/sounds/freedesktop/stereo/complete.oga"],
                        ["paplay", "/usr/share/sounds/freedesktop/stereo/message.oga"],
                        ["aplay", "-q", "/usr/share/sounds/sound-icons/prompt.wav"]]:
                try:
                    subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                    break
                except FileNotFoundError:
                    continue
    except Exception as e:
        logger.debug("play_sound(%s) failed: %s", sound_type, e)


# ─── Looping Players ──────────────────────────────────────────
def _loop_commands(path: str) -> list[list[str]]:
    """Command lines that loop a file forever, most capable first."""
    cmds = [
        ["mpv", "--no-terminal", "--no-video", "--loop-file=inf", path],
        ["ffplay", "-nodisp", "-loglevel", "quiet", "-loop", "0", path],
        ["cvlc", "--loop", "--no-video", "-q", path],
    ]
    if IS_MAC:
        cmds.append(["afplay", path])  # no loop flag; restarted by restart_if_ended()
    return cmds


class ProcessLoopPlayer:
    """Loops one file in an external player process.

    Pausing stops the process (SIGSTOP) rather than killing it, so resume
    picks up mid-track.
    """

    def __init__(self, path: str, popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        self.path = path
        self._popen = popen
        self._proc: Optional[subprocess.Popen] = None
        self._stopped = False
        self._warned_no_loop = False

    @property
    def alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def _spawn(self) -> None:
        for cmd in _loop_commands(self.path):
            try:
                self._proc = self._popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                logger.debug("Ambient player: %s", cmd[0])
                if cmd[0] == "afplay" and not self._warned_no_loop:
                    self._warned_no_loop = True
                    logger.warning("afplay cannot loop; install mpv, ffmpeg or vlc for gapless looping")
                return
            except FileNotFoundError:
                continue
        raise AudioUnavailableError("no looping audio player found (install mpv, ffmpeg or vlc)")

    def play(self) -> None:
        if not self.alive:
            self._spawn()
            self._stopped = False
        elif self._stopped:
            self._proc.send_signal(signal.SIGCONT)
            self._stopped = False

    def pause(self) -> None:
        if self.alive and not self._stopped:
            self._proc.send_signal(signal.SIGSTOP)
            self._stopped = True

    def restart_if_ended(self) -> None:
        """Start the track again if the player process exited on its own."""
        if self._proc is not None and not self._stopped and not self.alive:
            self._spawn()

    def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.poll() is not None:
            return
        try:
            if self._stopped:
                proc.send_signal(signal.SIGCONT)  # a stopped process ignores SIGTERM
            proc.terminate()
            proc.wait(timeout=2)
        except subprocess.TimeoutExpired:
            proc.kill()
        except OSError as e:
            logger.debug("Closing player failed: %s", e)
        self._stopped = False


class MciLoopPlayer:
    """Windows MCI (Media Control Interface) looping player."""
    _counter = 0

    def __init__(self, path: str):
        import ctypes
        self._winmm = ctypes.windll.winmm
        MciLoopPlayer._counter += 1
        self.alias = f"ambient_{MciLoopPlayer._counter}"
        if self._send(f'open "{path}" type mpegvideo alias {self.alias}') != 0:
            raise AudioUnavailableError(f"MCI could not open {path}")
        self._opened = True
        self._started = False

    def _send(self, command: str) -> int:
        return self._winmm.mciSendStringW(command, None, 0, None)

    def play(self) -> None:
        if not self._opened:
            return
        if self._started:
            self._send(f"resume {self.alias}")
        else:
            self._send(f"play {self.alias} repeat")
            self._started = True

    def pause(self) -> None:
        if self._opened and self._started:
            self._send(f"pause {self.alias}")

    def restart_if_ended(self) -> None:
        pass  # "repeat" loops inside MCI

    def close(self) -> None:
        if self._opened:
            self._send(f"close {self.alias}")
            self._opened = False


def open_player(path: str):
    """Create a looping player for `path`. Playback starts on play()."""
    if not os.path.exists(path):
        raise AudioUnavailableError(f"track not found: {path}")
    if IS_WIN:
        return MciLoopPlayer(path)
    return ProcessLoopPlayer(path)


# ─── Ambient Audio ────────────────────────────────────────────
class AmbientAudio:
    """Looping background track with an on/off switch and a playlist.

    Knows nothing about the session timer; the controller pauses and
    resumes it in step with the session.
    """

    def __init__(self, tracks: Optional[Sequence[str]] = None, tracks_dir: str = ".",
                 player_factory: Callable[[str], object] = open_player):
        self.tracks = list(DEFAULT_TRACKS if tracks is None else tracks)
        self.tracks_dir = tracks_dir
        self.player_factory = player_factory
        self.is_on = False
        self.current_index = 0
        self.player = None

    @property
    def current_track(self) -> Optional[str]:
        return self.tracks[self.current_index] if self.tracks else None

    def track_path(self, name: str) -> str:
        return os.path.join(os.path.expanduser(self.tracks_dir), name + TRACK_EXT)

    # ── Resource handling ──
    def _release(self) -> None:
        player, self.player = self.player, None
        if player is not None:
            try:
                player.close()
            except Exception as e:
                logger.warning("Releasing ambient player failed: %s", e)

    def _load_named(self, name: str) -> None:
        self._release()
        try:
            self.player = self.player_factory(self.track_path(name))
        except (AudioUnavailableError, OSError, TypeError, ValueError) as e:  # TypeError: non-string tracks_dir
            logger.warning("Ambient track %r unavailable: %s", name, e)
            self.player = None

    def _call(self, method: str) -> None:
        if self.player is None:
            return
        try:
            getattr(self.player, method)()
        except (AudioUnavailableError, OSError) as e:
            logger.warning("Ambient %s failed: %s", method, e)
            self._release()

    def load_current_track(self) -> None:
        if not self.tracks:
            return
        self._load_named(self.tracks[self.current_index])

    # ── Commands ──
    def toggle_on(self) -> None:
        """Switch on: load the current track if needed and play it."""
        self.is_on = True
        if self.player is None:
            self.load_current_track()
        self._call("play")

    def toggle_off(self) -> None:
        """Switch off: pause, keeping the loaded track."""
        self.is_on = False
        self._call("pause")

    def toggle(self) -> bool:
        if self.is_on:
            self.toggle_off()
        else:
            self.toggle_on()
        return self.is_on

    def pause(self) -> None:
        self._call("pause")

    def resume(self) -> None:
        self._call("play")

    def keep_playing(self) -> None:
        """Restart a track whose player stopped by itself while audio is on."""
        if self.is_on and hasattr(self.player, "restart_if_ended"):
            self._call("restart_if_ended")

    def next_track(self) -> None:
        if not self.tracks:
            return
        self.current_index = (self.current_index + 1) % len(self.tracks)
        self._load_named(self.tracks[self.current_index])
        if self.is_on:
            self._call("play")

    def stop(self) -> None:
        self._release()
        self.is_on = False
