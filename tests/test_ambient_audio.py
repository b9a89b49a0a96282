"""Ambient audio: playlist, on/off switch, and single-player ownership."""
import signal
import subprocess
import sys
from unittest.mock import MagicMock

import pytest

from breathe_audio import (DEFAULT_TRACKS, AmbientAudio, AudioUnavailableError,
                           ProcessLoopPlayer, open_player)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="signal-based pause is POSIX only")


# ============================================================================
# Switching on and off
# ============================================================================

def test_starts_off_with_nothing_loaded(audio):
    assert audio.is_on is False
    assert audio.current_index == 0
    assert audio.player is None
    assert audio.tracks == DEFAULT_TRACKS


def test_toggle_on_loads_and_plays_current_track(audio, player_factory, tracks_dir):
    audio.toggle_on()
    assert audio.is_on
    assert len(player_factory.players) == 1
    player = player_factory.players[0]
    assert player.path == str(tracks_dir / f"{DEFAULT_TRACKS[0]}.mp3")
    assert player.playing


def test_toggle_off_pauses_without_teardown(audio, player_factory):
    audio.toggle_on()
    audio.toggle_off()
    player = player_factory.players[0]
    assert not audio.is_on
    assert audio.player is player
    assert player.calls == ["play", "pause"]
    assert not player.closed


def test_toggle_on_again_reuses_the_loaded_track(audio, player_factory):
    audio.toggle_on()
    audio.toggle_off()
    audio.toggle_on()
    assert len(player_factory.players) == 1
    assert player_factory.players[0].calls == ["play", "pause", "play"]


def test_toggle_flips(audio):
    assert audio.toggle() is True
    assert audio.toggle() is False


def test_pause_and_resume_without_player_are_no_ops(audio):
    audio.pause()
    audio.resume()
    assert audio.player is None


def test_stop_tears_down_and_switches_off(audio, player_factory):
    audio.toggle_on()
    audio.stop()
    assert audio.player is None
    assert audio.is_on is False
    assert player_factory.players[0].closed
    audio.stop()  # idempotent


# ============================================================================
# Playlist
# ============================================================================

def test_next_track_wraps_around_the_playlist(audio):
    start = audio.current_index
    for _ in range(len(DEFAULT_TRACKS)):
        audio.next_track()
    assert audio.current_index == start


def test_next_track_keeps_a_single_player(audio, player_factory):
    audio.toggle_on()
    for _ in range(10):
        audio.next_track()
        assert len(player_factory.open_players) == 1
    assert all(p.closed for p in player_factory.players[:-1])


def test_next_track_plays_only_when_on(audio, player_factory):
    audio.next_track()
    assert audio.current_index == 1
    assert player_factory.players[-1].calls == []

    audio.toggle_on()
    audio.next_track()
    assert audio.current_index == 2
    assert player_factory.players[-1].calls == ["play"]


def test_empty_playlist_is_harmless(player_factory):
    audio = AmbientAudio([], ".", player_factory=player_factory)
    audio.toggle_on()
    audio.next_track()
    assert audio.player is None
    assert audio.current_track is None
    assert audio.current_index == 0


# ============================================================================
# Load failures
# ============================================================================

def test_missing_track_fails_silently_then_retries(audio, player_factory, tracks_dir, caplog):
    missing = str(tracks_dir / f"{DEFAULT_TRACKS[0]}.mp3")
    player_factory.missing.add(missing)

    audio.toggle_on()
    assert audio.is_on
    assert audio.player is None
    assert "unavailable" in caplog.text

    player_factory.missing.clear()
    audio.toggle_off()
    audio.toggle_on()
    assert audio.player is not None
    assert audio.player.playing


def test_missing_next_track_leaves_no_stale_handle(audio, player_factory, tracks_dir):
    audio.toggle_on()
    first = audio.player
    player_factory.missing.add(str(tracks_dir / f"{DEFAULT_TRACKS[1]}.mp3"))

    audio.next_track()
    assert first.closed
    assert audio.player is None
    assert audio.current_index == 1

    player_factory.missing.clear()
    audio.next_track()
    assert audio.player is not None and audio.player.playing


def test_playback_error_releases_the_player(audio, player_factory):
    audio.toggle_on()
    player = audio.player
    player.pause = MagicMock(side_effect=AudioUnavailableError("device gone"))
    audio.pause()
    assert audio.player is None
    assert player.closed


def test_real_loader_with_missing_files(tmp_path):
    audio = AmbientAudio(["nope"], str(tmp_path))
    audio.toggle_on()
    assert audio.player is None
    audio.next_track()
    assert audio.player is None


def test_open_player_rejects_missing_file(tmp_path):
    with pytest.raises(AudioUnavailableError):
        open_player(str(tmp_path / "missing.mp3"))


# ============================================================================
# Process player
# ============================================================================

def make_popen(*failures):
    """Popen stand-in failing with FileNotFoundError for the named programs."""
    procs = []

    def popen(cmd, **kwargs):
        if cmd[0] in failures:
            raise FileNotFoundError(cmd[0])
        proc = MagicMock()
        proc.cmd = cmd
        proc.poll.return_value = None
        procs.append(proc)
        return proc
    return popen, procs


@posix_only
def test_process_player_falls_through_missing_programs():
    popen, procs = make_popen("mpv")
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    assert procs[0].cmd[0] == "ffplay"
    assert "-loop" in procs[0].cmd
    assert player.alive


@posix_only
def test_process_player_pause_resume_close():
    popen, procs = make_popen()
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    proc = procs[0]
    assert "--loop-file=inf" in proc.cmd

    player.pause()
    player.pause()
    player.play()
    assert proc.send_signal.call_args_list == [((signal.SIGSTOP,),), ((signal.SIGCONT,),)]
    assert len(procs) == 1

    player.pause()
    player.close()
    proc.terminate.assert_called_once()
    proc.wait.assert_called_once()
    assert proc.send_signal.call_args_list[-1] == ((signal.SIGCONT,),)
    assert not player.alive


@posix_only
def test_process_player_kills_when_terminate_hangs():
    popen, procs = make_popen()
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    procs[0].wait.side_effect = subprocess.TimeoutExpired("mpv", 2)
    player.close()
    procs[0].kill.assert_called_once()


@posix_only
def test_process_player_respawns_after_exit():
    popen, procs = make_popen()
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    procs[0].poll.return_value = 0
    player.play()
    assert len(procs) == 2


@posix_only
def test_process_player_without_backends_raises():
    popen, _ = make_popen("mpv", "ffplay", "cvlc", "afplay")
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    with pytest.raises(AudioUnavailableError):
        player.play()


@posix_only
def test_ambient_audio_survives_missing_backends(tracks_dir):
    popen, _ = make_popen("mpv", "ffplay", "cvlc", "afplay")
    audio = AmbientAudio(DEFAULT_TRACKS, str(tracks_dir),
                         player_factory=lambda path: ProcessLoopPlayer(path, popen=popen))
    audio.toggle_on()
    assert audio.is_on
    assert audio.player is None


def test_non_string_tracks_dir_degrades_silently(player_factory, caplog):
    audio = AmbientAudio(DEFAULT_TRACKS, 5, player_factory=player_factory)
    audio.toggle_on()
    assert audio.is_on
    assert audio.player is None
    assert "unavailable" in caplog.text


# ============================================================================
# Restarting players that do not loop
# ============================================================================

@posix_only
def test_ended_process_is_restarted_while_on():
    popen, procs = make_popen()
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.restart_if_ended()
    assert procs == []  # never started

    player.play()
    procs[0].poll.return_value = 0  # track ran out
    player.restart_if_ended()
    assert len(procs) == 2


@posix_only
def test_paused_or_closed_process_is_not_restarted():
    popen, procs = make_popen()
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    player.pause()
    procs[0].poll.return_value = 0
    player.restart_if_ended()
    assert len(procs) == 1

    player.close()
    player.restart_if_ended()
    assert len(procs) == 1


@posix_only
def test_keep_playing_follows_the_switch(tracks_dir):
    popen, procs = make_popen()
    audio = AmbientAudio(DEFAULT_TRACKS, str(tracks_dir),
                         player_factory=lambda path: ProcessLoopPlayer(path, popen=popen))
    audio.keep_playing()
    assert procs == []

    audio.toggle_on()
    procs[-1].poll.return_value = 0
    audio.keep_playing()
    assert len(procs) == 2

    audio.toggle_off()
    procs[-1].poll.return_value = 0
    audio.keep_playing()
    assert len(procs) == 2


def test_keep_playing_without_restart_support(audio, player_factory):
    audio.toggle_on()
    audio.keep_playing()
    assert player_factory.players[0].calls == ["play"]


@posix_only
def test_afplay_fallback_warns_once(monkeypatch, caplog):
    import breathe_audio
    monkeypatch.setattr(breathe_audio, "IS_MAC", True)
    popen, procs = make_popen("mpv", "ffplay", "cvlc")
    player = ProcessLoopPlayer("/tmp/rain.mp3", popen=popen)
    player.play()
    procs[0].poll.return_value = 0
    player.restart_if_ended()
    assert [p.cmd[0] for p in procs] == ["afplay", "afplay"]
    assert caplog.text.count("afplay cannot loop") == 1
