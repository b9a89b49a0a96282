#!/usr/bin/env python3
"""
Breathe — Guided Breathing Timer
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

A single-window breathing coach.  A circle grows and shrinks through
inhale / hold / exhale / hold while a session countdown runs; ambient
tracks can loop in the background and a chime plus a notification mark
the end of the session.

Features:
  - Configurable session length (1-60 min) and breathing pattern
  - Tap the circle to start, pause and resume
  - Looping ambient tracks with next-track skip
  - System tray menu with the same controls
  - Session-complete chime, toast and tray notification

Usage:
    python breathe.py
    python breathe.py --test          (1-minute session, short pattern)
    python breathe.py --minutes 10 --tracks-dir ~/Music/ambient
"""
from __future__ import annotations
import sys, platform
import logging
import threading
from typing import Any, Optional

# ─── tkinter check ────────────────────────────────────────────
try:
    import tkinter as tk
except ImportError:
    _s = platform.system()
    print("Error: tkinter is required.")
    if _s == "Darwin":
        print("  brew install python-tk@3.12  (or use python.org installer)")
    elif _s == "Linux":
        print("  sudo apt install python3-tk")
    sys.exit(1)

try:
    import pystray
    HAS_TRAY = True
except ImportError:
    HAS_TRAY = False

from breathe_audio import AmbientAudio, play_sound
from breathe_config import LIMITS, format_time, parse_args, session_settings
from breathe_controller import SessionController
from breathe_core import (AfterScheduler, BreathPattern, SessionSnapshot,
                          SessionState, SessionTimer)
from breathe_icons import BreathCircle, create_tray_icon

logger = logging.getLogger("breathe")

# ─── Platform ────────────────────────────────────────────────
IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"
FONT = "Helvetica Neue" if IS_MAC else "Segoe UI" if IS_WIN else "DejaVu Sans"
MONO = "Menlo" if IS_MAC else "Consolas" if IS_WIN else "DejaVu Sans Mono"

TOAST_DISMISS_MS = 30000
AUDIO_WATCH_MS = 1000          # How often a finished non-looping track is restarted

# ─── Themes ──────────────────────────────────────────────────
THEMES = {
    "dark": {
        "bg": "#0f172a", "card": "#1e293b", "accent": "#22c55e",
        "btn_sec": "#334155", "text": "#f1f5f9", "text_dim": "#94a3b8",
    },
    "light": {
        "bg": "#f8fafc", "card": "#ffffff", "accent": "#16a34a",
        "btn_sec": "#e2e8f0", "text": "#1e293b", "text_dim": "#475569",
    },
    "nord": {
        "bg": "#2e3440", "card": "#3b4252", "accent": "#a3be8c",
        "btn_sec": "#4c566a", "text": "#eceff4", "text_dim": "#d8dee9",
    },
}
C_BG = C_CARD = C_ACCENT = C_BTN_SEC = C_TEXT = C_TEXT_DIM = ""


def apply_theme(theme_name: str) -> None:
    """Apply a theme by updating global color constants."""
    global C_BG, C_CARD, C_ACCENT, C_BTN_SEC, C_TEXT, C_TEXT_DIM
    theme = THEMES.get(theme_name, THEMES["nord"])
    C_BG = theme["bg"];  C_CARD = theme["card"];  C_ACCENT = theme["accent"]
    C_BTN_SEC = theme["btn_sec"];  C_TEXT = theme["text"];  C_TEXT_DIM = theme["text_dim"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class BreatheApp:

    def __init__(self, cfg: dict[str, Any]):
        self.config = cfg
        apply_theme(cfg.get("theme", "nord"))

        self.root = tk.Tk()
        self.root.title("Breathe")
        self.root.configure(bg=C_BG)
        self.root.protocol("WM_DELETE_WINDOW", self._quit)

        minutes, pattern = session_settings(cfg)
        self.timer = SessionTimer(minutes, pattern, scheduler=AfterScheduler(self.root))
        self.audio = AmbientAudio(cfg.get("tracks"), cfg.get("tracks_dir", "."))
        self.controller = SessionController(self.timer, self.audio, notifier=self._notify_complete)

        self._view_key = None
        self._tray_key = None
        self._toast = None
        self._settings_win = None
        self.tray = None

        self._build()
        self.timer.subscribe(self._render)
        if cfg.get("ambient_on"):
            self.controller.set_audio(True)
            self._audio_var.set(self.audio.is_on)
        self._render(self.timer.snapshot())

        if HAS_TRAY and cfg.get("show_tray", True):
            threading.Thread(target=self._run_tray, daemon=True).start()

        self.root.after(AUDIO_WATCH_MS, self._watch_audio)
        self._print_banner(minutes, pattern)
        self.root.mainloop()

    # ━━━ Layout ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _btn(self, p: tk.Frame, text: str, cmd, bold: bool = False) -> tk.Button:
        return tk.Button(p, text=text, font=(FONT, 11, "bold" if bold else "normal"),
                         bg=C_BTN_SEC, fg=C_TEXT, activebackground=C_CARD, activeforeground=C_TEXT,
                         relief="flat", padx=14, pady=6, cursor="hand2", command=cmd)

    def _build(self) -> None:
        base = self.config.get("circle_size", 260)
        side = int(base * 1.5)
        f = tk.Frame(self.root, bg=C_BG, padx=20, pady=16)
        f.pack(fill="both", expand=True)

        top = tk.Frame(f, bg=C_BG)
        top.pack(fill="x")
        tk.Label(top, text="🍃 Breathe", font=(FONT, 18, "bold"), fg=C_ACCENT, bg=C_BG).pack(side="left")
        tk.Button(top, text="⚙", font=(FONT, 14), bg=C_BG, fg=C_TEXT_DIM, relief="flat",
                  cursor="hand2", command=self._show_settings).pack(side="right")

        self.canvas = tk.Canvas(f, width=side, height=side, bg=C_BG, highlightthickness=0, cursor="hand2")
        self.canvas.pack(pady=(8, 0))
        self.circle = BreathCircle(self.canvas, side // 2, side // 2, base, bg=C_BG)
        self._label_id = self.canvas.create_text(side // 2, side // 2, text="Start",
                                                 font=(FONT, 30, "bold"), fill=C_TEXT)
        self.canvas.bind("<Button-1>", lambda e: self.controller.tap())

        self._time_var = tk.StringVar(value="00:00")
        tk.Label(f, textvariable=self._time_var, font=(MONO, 44, "bold"), fg=C_TEXT, bg=C_BG).pack(pady=(16, 4))

        row = tk.Frame(f, bg=C_BG)
        row.pack(pady=(8, 0))
        self._btn(row, "⟲  Reset", self._reset).pack(side="left", padx=6)
        self._next_btn = self._btn(row, "⏭  Next track", self._next_track)
        self._next_btn.pack(side="left", padx=6)

        self._audio_var = tk.BooleanVar(value=self.audio.is_on)
        tk.Checkbutton(f, text="Ambient sound", variable=self._audio_var, command=self._on_audio_toggle,
                       font=(FONT, 11), fg=C_TEXT, bg=C_BG, selectcolor=C_CARD,
                       activebackground=C_BG, activeforeground=C_TEXT).pack(pady=(12, 0))

        self.root.bind("<space>", lambda e: self.controller.tap())
        self.root.bind("<Escape>", lambda e: self._reset())

    # ━━━ Rendering ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _render(self, snap: SessionSnapshot) -> None:
        try:
            self.circle.update(snap.phase, snap.progress)
            # Text only changes a few times a second; skip the widget calls otherwise
            key = (self.controller.primary_label, snap.remaining_seconds, self.controller.can_skip_track)
            if key != self._view_key:
                self._view_key = key
                label, remaining, can_skip = key
                self.canvas.itemconfig(self._label_id, text=label)
                self._time_var.set(format_time(remaining))
                self._next_btn.configure(state="normal" if can_skip else "disabled")
        except tk.TclError:
            return
        self._update_tray_icon(snap)

    def _update_tray_icon(self, snap: SessionSnapshot) -> None:
        """Redraw the tray icon on phase/state changes and every quarter phase."""
        if self.tray is None:
            return
        key = (snap.state, snap.phase, int(snap.progress * 4))
        if key == self._tray_key:
            return
        self._tray_key = key
        try:
            self.tray.icon = create_tray_icon(snap.phase, snap.progress, snap.state)
            title = "Breathe" if snap.state == SessionState.IDLE else \
                f"Breathe: {snap.phase.label} ({format_time(snap.remaining_seconds)})"
            self.tray.title = title
        except Exception as e:
            logger.debug("Tray update failed: %s", e)

    # ━━━ Commands ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _reset(self) -> None:
        self.controller.reset()
        self._audio_var.set(self.audio.is_on)
        self._render(self.timer.snapshot())

    def _on_audio_toggle(self) -> None:
        self.controller.set_audio(self._audio_var.get())
        self._render(self.timer.snapshot())

    def _toggle_audio(self) -> None:
        self._audio_var.set(self.controller.toggle_audio())
        self._render(self.timer.snapshot())

    def _watch_audio(self) -> None:
        self.audio.keep_playing()
        self.root.after(AUDIO_WATCH_MS, self._watch_audio)

    def _next_track(self) -> None:
        self.controller.next_track()
        logger.info("Ambient track: %s", self.audio.current_track)

    # ━━━ Settings ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _show_settings(self) -> None:
        if self._settings_win:
            try:
                self._settings_win.lift()
                return
            except tk.TclError:
                self._settings_win = None

        win = tk.Toplevel(self.root)
        win.title("Settings")
        win.configure(bg=C_CARD)
        win.transient(self.root)
        self._settings_win = win

        f = tk.Frame(win, bg=C_CARD, padx=18, pady=14)
        f.pack(fill="both", expand=True)

        p = self.timer.pattern
        fields = [
            ("session_minutes", "Session length (min)", self.timer.total_seconds // 60),
            ("inhale", "Inhale (s)", p.inhale),
            ("hold1", "Hold (s)", p.hold1),
            ("exhale", "Exhale (s)", p.exhale),
            ("hold2", "Hold (s)", p.hold2),
        ]
        vars_: dict[str, tk.IntVar] = {}
        for i, (key, label, value) in enumerate(fields):
            lo, hi = LIMITS[key]
            tk.Label(f, text=label, font=(FONT, 11), fg=C_TEXT, bg=C_CARD).grid(row=i, column=0, sticky="w", pady=3)
            var = tk.IntVar(value=int(value))
            tk.Spinbox(f, from_=lo, to=hi, textvariable=var, width=5, font=(FONT, 11),
                       justify="center").grid(row=i, column=1, sticky="e", padx=(12, 0), pady=3)
            vars_[key] = var

        tk.Label(f, text="Applying restarts the session.", font=(FONT, 9),
                 fg=C_TEXT_DIM, bg=C_CARD).grid(row=len(fields), column=0, columnspan=2, sticky="w", pady=(8, 0))

        def close():
            try:
                win.destroy()
            except tk.TclError:
                pass
            self._settings_win = None

        def apply():
            try:
                values = {k: v.get() for k, v in vars_.items()}
            except tk.TclError:
                return  # non-numeric spinbox text; leave the dialog open
            pattern = BreathPattern(values["inhale"], values["hold1"], values["exhale"], values["hold2"])
            self.controller.apply_settings(values["session_minutes"], pattern)
            close()

        bf = tk.Frame(f, bg=C_CARD)
        bf.grid(row=len(fields) + 1, column=0, columnspan=2, pady=(12, 0), sticky="e")
        self._btn(bf, "Close", close).pack(side="left", padx=(0, 6))
        self._btn(bf, "Apply", apply, bold=True).pack(side="left")
        win.protocol("WM_DELETE_WINDOW", close)
        win.bind("<Return>", lambda e: apply())
        win.bind("<Escape>", lambda e: close())

    # ━━━ Completion ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _notify_complete(self, title: str, body: str) -> None:
        if self.config.get("sound_enabled", True):
            play_sound("complete")
        if self.tray is not None:
            try:
                self.tray.notify(body, title)
            except Exception as e:  # not every pystray backend supports notify
                logger.debug("Tray notify failed: %s", e)
        self._show_toast(title, body)

    def _show_toast(self, title: str, body: str) -> None:
        if self._toast:
            try:
                self._toast.destroy()
            except tk.TclError:
                pass
        toast = tk.Toplevel(self.root)
        toast.overrideredirect(True);  toast.attributes("-topmost", True)
        try:
            toast.attributes("-alpha", 0.95)
        except tk.TclError:
            pass
        toast.configure(bg=C_CARD)
        sw = toast.winfo_screenwidth()
        toast.geometry(f"280x80+{sw - 300}+{18}")

        f = tk.Frame(toast, bg=C_CARD, padx=14, pady=10)
        f.pack(fill="both", expand=True)
        tk.Label(f, text=title, font=(FONT, 13, "bold"), fg=C_ACCENT, bg=C_CARD).pack(anchor="w")
        tk.Label(f, text=body, font=(FONT, 9), fg=C_TEXT_DIM, bg=C_CARD,
                 wraplength=250, justify="left").pack(anchor="w", pady=(2, 0))
        toast.configure(cursor="hand2")
        self._toast = toast

        def dismiss(e=None):
            try:
                toast.destroy()
            except tk.TclError:
                pass
            if self._toast is toast:
                self._toast = None

        toast.bind("<Button-1>", dismiss)
        toast.after(TOAST_DISMISS_MS, dismiss)

    # ━━━ System Tray ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _run_tray(self) -> None:
        # Runs on the tray thread; every action hops back onto the Tk loop.
        def on_tk(fn):
            return lambda icon, item: self.root.after(0, fn)

        menu = pystray.Menu(
            pystray.MenuItem("Open", on_tk(self._show_window), default=True, visible=False),
            pystray.MenuItem(
                lambda item: "⏸  Pause" if self.timer.state == SessionState.RUNNING else "▶  Start",
                on_tk(self.controller.tap)),
            pystray.MenuItem("⟲  Reset", on_tk(self._reset)),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Ambient sound", on_tk(self._toggle_audio),
                             checked=lambda item: self.audio.is_on),
            pystray.MenuItem("⏭  Next track", on_tk(self._next_track),
                             enabled=lambda item: self.controller.can_skip_track),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", lambda icon, item: self.root.after(0, self._quit)),
        )
        snap = self.timer.snapshot()
        self.tray = pystray.Icon("breathe", create_tray_icon(snap.phase, snap.progress, snap.state),
                                 "Breathe", menu)
        self.tray.run()

    def _show_window(self) -> None:
        self.root.deiconify()
        self.root.lift()

    def _print_banner(self, minutes: int, pattern: BreathPattern) -> None:
        print()
        print("  +-----------------------------------------------+")
        print("  |             Breathe -- Session                |")
        print("  +-----------------------------------------------+")
        print(f"  |  Length   {minutes:>3d} min                             |")
        pat = f"{pattern.inhale:g}-{pattern.hold1:g}-{pattern.exhale:g}-{pattern.hold2:g}"
        print(f"  |  Pattern  {pat:<15s} ({pattern.total():g}s cycle)      |")
        print("  +-----------------------------------------------+")
        if not HAS_TRAY:
            print("\n  [!] No tray icon (pystray not available).")
            print("      pip install pystray pillow")
        print()

    def _quit(self, icon: Optional[Any] = None, item: Optional[Any] = None) -> None:
        self.timer.reset()
        self.audio.stop()
        if self.tray is not None:
            self.tray.stop()
        self.root.after(0, self.root.quit)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def main(argv=None) -> None:
    args, cfg = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="  [%(levelname)s] %(name)s: %(message)s")
    if args.test:
        print("\n  [!] TEST MODE: 1-minute session, 2-1-2-1 pattern\n")
    BreatheApp(cfg)


if __name__ == "__main__":
    main()
