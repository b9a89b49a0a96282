"""Breathe configuration: defaults, config file, settings limits and CLI."""
from __future__ import annotations

import argparse
import json
import os
from typing import Any, Optional, Sequence

from breathe_audio import DEFAULT_TRACKS
from breathe_core import BreathPattern

# ─── Config ───────────────────────────────────────────────────
CONFIG_FILE = os.path.join(os.path.expanduser("~"), ".breathe_config.json")

DEFAULT_CONFIG = {
    "session_minutes": 5,
    "inhale": 4,
    "hold1": 4,
    "exhale": 4,
    "hold2": 2,
    "ambient_on": False,
    "tracks_dir": os.path.join("~", ".breathe", "tracks"),
    "tracks": list(DEFAULT_TRACKS),
    "sound_enabled": True,            # Chime when a session completes
    "show_tray": True,
    "theme": "nord",
    "circle_size": 260,               # Base circle diameter in px (grows to 1.5x)
}

# (min, max) as offered by the settings form
LIMITS = {
    "session_minutes": (1, 60),
    "inhale": (1, 15),
    "hold1": (0, 15),
    "exhale": (1, 20),
    "hold2": (0, 15),
}

TEST_SETTINGS = {"session_minutes": 1, "inhale": 2, "hold1": 1, "exhale": 2, "hold2": 1}


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def load_config(path: Optional[str] = None) -> dict[str, Any]:
    """Load config from file, falling back to defaults for missing/invalid values.

    The file is only ever read; settings applied in the app last for the
    current run.
    """
    path = path or CONFIG_FILE
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))
    if os.path.exists(path):
        try:
            with open(path, encoding="utf-8") as f:
                user_cfg = json.load(f)
            if isinstance(user_cfg, dict):
                cfg.update(user_cfg)
        except (json.JSONDecodeError, IOError, OSError) as e:
            print(f"  [!] Config load error: {e}. Using defaults.")

    # Validate numeric fields
    for key, (lo, _hi) in LIMITS.items():
        v = cfg.get(key)
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < lo:
            cfg[key] = DEFAULT_CONFIG[key]
    if not isinstance(cfg.get("tracks"), list) or not all(isinstance(t, str) for t in cfg["tracks"]):
        cfg["tracks"] = list(DEFAULT_TRACKS)
    if not isinstance(cfg.get("tracks_dir"), str) or not cfg["tracks_dir"]:
        cfg["tracks_dir"] = DEFAULT_CONFIG["tracks_dir"]
    if not isinstance(cfg.get("circle_size"), int) or cfg["circle_size"] < 80:
        cfg["circle_size"] = DEFAULT_CONFIG["circle_size"]
    return cfg


def clamp_settings(minutes: int, pattern: BreathPattern) -> tuple[int, BreathPattern]:
    """Fit a session length and pattern into the settings form's ranges."""
    minutes = int(_clamp(int(minutes), *LIMITS["session_minutes"]))
    pattern = BreathPattern(
        inhale=float(_clamp(pattern.inhale, *LIMITS["inhale"])),
        hold1=float(_clamp(pattern.hold1, *LIMITS["hold1"])),
        exhale=float(_clamp(pattern.exhale, *LIMITS["exhale"])),
        hold2=float(_clamp(pattern.hold2, *LIMITS["hold2"])),
    )
    return minutes, pattern


def session_settings(cfg: dict[str, Any]) -> tuple[int, BreathPattern]:
    pattern = BreathPattern(cfg["inhale"], cfg["hold1"], cfg["exhale"], cfg["hold2"])
    return clamp_settings(cfg["session_minutes"], pattern)


def format_time(seconds: int) -> str:
    """Seconds as MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


# ─── Parse Args ──────────────────────────────────────────────
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="breathe", description="Guided breathing timer")
    p.add_argument("--test", action="store_true", help="1-minute session with a short pattern")
    p.add_argument("--config", metavar="PATH", help=f"Config file (default: {CONFIG_FILE})")
    p.add_argument("--minutes", type=int, help="Session length in minutes (1-60)")
    p.add_argument("--tracks-dir", metavar="DIR", help="Folder holding the ambient .mp3 tracks")
    p.add_argument("--no-tray", action="store_true", help="Don't create a system tray icon")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    return p


def parse_args(argv: Optional[Sequence[str]] = None) -> tuple[argparse.Namespace, dict[str, Any]]:
    """Parse the command line and return (args, config with CLI overrides applied)."""
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    if args.test:
        cfg.update(TEST_SETTINGS)
    if args.minutes is not None:
        cfg["session_minutes"] = int(_clamp(args.minutes, *LIMITS["session_minutes"]))
    if args.tracks_dir:
        cfg["tracks_dir"] = args.tracks_dir
    if args.no_tray:
        cfg["show_tray"] = False
    return args, cfg
