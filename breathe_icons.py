"""
Breathing circle and tray icon drawing.

The window animates the circle as a canvas oval (BreathCircle); Pillow
draws the tray icon and the still previews written when this module is
run standalone.
"""
from __future__ import annotations

from PIL import Image, ImageDraw

from breathe_core import PHASE_ORDER, Phase, SessionState

# Phase fills, as RGBA over a transparent background
PHASE_COLORS = {
    Phase.INHALE: (74, 222, 128, 64),     # green
    Phase.HOLD1: (250, 204, 21, 72),      # yellow
    Phase.EXHALE: (59, 130, 246, 56),     # blue
    Phase.HOLD2: (148, 163, 184, 56),     # grey
}
RING = (128, 128, 128, 153)
BLACK = (0, 0, 0, 255)
TEAL = (0, 128, 128, 255)
DARK_TEAL = (0, 80, 80, 255)
MUTED = (100, 110, 110, 255)
WHITE = (255, 255, 255, 255)

MAX_SCALE = 1.5


def circle_scale(phase: Phase, progress: float) -> float:
    """Circle size relative to its base: grows on inhale, shrinks on exhale."""
    progress = max(0.0, min(1.0, progress))
    if phase == Phase.INHALE:
        return 1.0 + progress * (MAX_SCALE - 1.0)
    if phase == Phase.HOLD1:
        return MAX_SCALE
    if phase == Phase.EXHALE:
        return MAX_SCALE - progress * (MAX_SCALE - 1.0)
    return 1.0


def render_breath_circle(phase: Phase, progress: float, base_diameter: int = 260,
                         supersample: int = 2) -> Image.Image:
    """Square RGBA image sized to fit the circle at its largest. Used for previews."""
    side = int(base_diameter * MAX_SCALE)
    s = supersample
    img = Image.new("RGBA", (side * s, side * s), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    c = side * s / 2
    stroke = max(2, 8 * s)
    r = base_diameter * s / 2 * circle_scale(phase, progress) - stroke / 2
    draw.ellipse([c - r, c - r, c + r, c + r], fill=PHASE_COLORS[phase],
                 outline=RING, width=stroke)
    if s > 1:
        img = img.resize((side, side), Image.LANCZOS)
    return img


def blend_hex(rgba: tuple, bg: str) -> str:
    """Opaque '#rrggbb' for an RGBA colour laid over a '#rrggbb' background."""
    a = rgba[3] / 255
    base = [int(bg[i:i + 2], 16) for i in (1, 3, 5)]
    mixed = [round(c * a + b * (1 - a)) for c, b in zip(rgba[:3], base)]
    return "#%02x%02x%02x" % tuple(mixed)


class BreathCircle:
    """The breathing circle as a single canvas oval.

    update() only moves and recolours the existing item, so a 60fps tick
    costs a coords() call instead of a fresh image.
    """

    def __init__(self, canvas, cx: float, cy: float, base_diameter: int = 260,
                 bg: str = "#000000", stroke: int = 8):
        self.canvas = canvas
        self.cx, self.cy = cx, cy
        self.base_diameter = base_diameter
        self.stroke = stroke
        self.fills = {ph: blend_hex(PHASE_COLORS[ph], bg) for ph in PHASE_ORDER}
        self.outline = blend_hex(RING, bg)
        self.phase = Phase.INHALE
        self.radius = self._radius(Phase.INHALE, 0.0)
        self.item = canvas.create_oval(*self._bbox(self.radius), fill=self.fills[Phase.INHALE],
                                       outline=self.outline, width=stroke)

    def _radius(self, phase: Phase, progress: float) -> float:
        # whole pixels only
        return round(self.base_diameter / 2 * circle_scale(phase, progress) - self.stroke / 2)

    def _bbox(self, r: float) -> tuple:
        return self.cx - r, self.cy - r, self.cx + r, self.cy + r

    def update(self, phase: Phase, progress: float) -> None:
        if phase != self.phase:
            self.phase = phase
            self.canvas.itemconfig(self.item, fill=self.fills[phase])
        r = self._radius(phase, progress)
        if r != self.radius:
            self.radius = r
            self.canvas.coords(self.item, *self._bbox(r))


def crosshatch_in_circle(draw, cx, cy, r, line_color, spacing, line_w=1):
    """Draw diagonal crosshatch lines clipped to a circle."""
    r_sq = r * r
    for sign in (1, -1):
        for offset in range(-2 * r, 2 * r + 1, spacing):
            pts = []
            for x in range(cx - r, cx + r + 1):
                y = sign * (x - cx) + offset + cy
                dx, dy = x - cx, y - cy
                if dx * dx + dy * dy <= r_sq:
                    pts.append((x, y))
            if len(pts) >= 2:
                draw.line([pts[0], pts[-1]], fill=line_color, width=line_w)


def create_tray_icon(phase: Phase = Phase.INHALE, progress: float = 0.0,
                     state: SessionState = SessionState.IDLE, size: int = 64) -> Image.Image:
    """Tray icon: teal rim, phase-coloured face and a progress arc.

    Anything other than a running session is drawn greyed out with a
    crosshatched face.
    """
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    s = size / 64
    w = max(1, int(s))
    cx = cy = size // 2
    r_outer = int(28 * s)
    r_inner = r_outer - max(4, int(5 * s))
    running = state == SessionState.RUNNING
    rim = TEAL if running else MUTED

    draw.ellipse([cx - r_outer, cy - r_outer, cx + r_outer, cy + r_outer], fill=BLACK)
    draw.ellipse([cx - r_outer + w, cy - r_outer + w, cx + r_outer - w, cy + r_outer - w], fill=rim)

    # Progress arc along the rim
    if running and progress > 0:
        draw.arc([cx - r_outer + w, cy - r_outer + w, cx + r_outer - w, cy + r_outer - w],
                 start=-90, end=-90 + 360 * min(1.0, progress), fill=DARK_TEAL, width=max(2, int(4 * s)))

    fill = PHASE_COLORS[phase][:3] + (255,) if running else WHITE
    draw.ellipse([cx - r_inner - w, cy - r_inner - w, cx + r_inner + w, cy + r_inner + w], fill=BLACK)
    draw.ellipse([cx - r_inner, cy - r_inner, cx + r_inner, cy + r_inner], fill=fill)
    if not running:
        crosshatch_in_circle(draw, cx, cy, r_inner - w, MUTED, max(3, int(4 * s)), w)
    return img


if __name__ == "__main__":
    for ph in PHASE_ORDER:
        render_breath_circle(ph, 0.5).save(f"breathe_{ph.value}.png")
        create_tray_icon(ph, 0.5, SessionState.RUNNING).save(f"tray_{ph.value}.png")
    create_tray_icon().save("tray_idle.png")
    print("Saved previews")
