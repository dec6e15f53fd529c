"""Render a CAPTCHA answer as a distorted SVG or PNG data URI."""
import base64
import random
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

WIDTH = 150
HEIGHT = 50
NOISE_LINES = 5

_FONT_SIZE = 24
_GLYPH_X0 = 20
_GLYPH_STEP = 25
_BASELINE = 30
_MAX_BASELINE_JITTER = 5
_MAX_ROTATION_DEG = 10
_BACKGROUND = (240, 240, 240)


@dataclass(frozen=True)
class Glyph:
    char: str
    x: float
    y: float
    rotation: float
    color: tuple[int, int, int]


@dataclass(frozen=True)
class NoiseLine:
    x1: float
    y1: float
    x2: float
    y2: float
    color: tuple[int, int, int]


def layout_glyphs(text: str, rng: random.Random) -> list[Glyph]:
    """Place each character with its own baseline offset, tilt and dark colour."""
    return [
        Glyph(
            char=char,
            x=_GLYPH_X0 + i * _GLYPH_STEP,
            y=_BASELINE + rng.uniform(-_MAX_BASELINE_JITTER, _MAX_BASELINE_JITTER),
            rotation=rng.uniform(-_MAX_ROTATION_DEG, _MAX_ROTATION_DEG),
            color=(rng.randrange(100), rng.randrange(100), rng.randrange(100)),
        )
        for i, char in enumerate(text)
    ]


def layout_noise(rng: random.Random, count: int = NOISE_LINES) -> list[NoiseLine]:
    return [
        NoiseLine(
            x1=rng.uniform(0, WIDTH),
            y1=rng.uniform(0, HEIGHT),
            x2=rng.uniform(0, WIDTH),
            y2=rng.uniform(0, HEIGHT),
            color=(rng.randrange(256), rng.randrange(256), rng.randrange(256)),
        )
        for _ in range(count)
    ]


def render_captcha(text: str, rng: random.Random, image_format: str = "svg") -> str:
    """Return a self-contained ``data:`` URI showing ``text`` with jitter and noise."""
    glyphs = layout_glyphs(text, rng)
    noise = layout_noise(rng)
    if image_format == "png":
        return _data_uri("image/png", _render_png(glyphs, noise))
    if image_format == "svg":
        return _data_uri("image/svg+xml", _render_svg(glyphs, noise).encode("utf-8"))
    raise ValueError(f"unsupported captcha image format: {image_format!r}")


def _data_uri(mime: str, payload: bytes) -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


# ---------------------------------------------------------------------------
# SVG
# ---------------------------------------------------------------------------

def _render_svg(glyphs: list[Glyph], noise: list[NoiseLine]) -> str:
    lines = "".join(
        f'<line x1="{n.x1:.1f}" y1="{n.y1:.1f}" x2="{n.x2:.1f}" y2="{n.y2:.1f}" '
        f'stroke="rgba({n.color[0]}, {n.color[1]}, {n.color[2]}, 0.3)" stroke-width="1"/>'
        for n in noise
    )
    chars = "".join(
        f'<text x="{g.x:.1f}" y="{g.y:.1f}" fill="rgb({g.color[0]}, {g.color[1]}, {g.color[2]})" '
        f'font-family="Arial" font-size="{_FONT_SIZE}" font-weight="bold" '
        f'transform="rotate({g.rotation:.1f} {g.x:.1f} {g.y:.1f})">{g.char}</text>'
        for g in glyphs
    )
    return (
        f'<svg width="{WIDTH}" height="{HEIGHT}" xmlns="http://www.w3.org/2000/svg">'
        '<rect width="100%" height="100%" fill="#f0f0f0"/>'
        f"{lines}{chars}</svg>"
    )


# ---------------------------------------------------------------------------
# PNG (Pillow)
# ---------------------------------------------------------------------------

_font = None


def _get_font():
    global _font
    if _font is None:
        _font = ImageFont.load_default(size=_FONT_SIZE)
    return _font


def _render_png(glyphs: list[Glyph], noise: list[NoiseLine]) -> bytes:
    img = Image.new("RGB", (WIDTH, HEIGHT), color=_BACKGROUND)
    draw = ImageDraw.Draw(img, "RGBA")
    for n in noise:
        draw.line([(n.x1, n.y1), (n.x2, n.y2)], fill=(*n.color, 77), width=1)

    font = _get_font()
    tile_size = _FONT_SIZE * 2
    for g in glyphs:
        tile = Image.new("RGBA", (tile_size, tile_size), (0, 0, 0, 0))
        tile_draw = ImageDraw.Draw(tile)
        left, top, right, bottom = tile_draw.textbbox((0, 0), g.char, font=font)
        origin = ((tile_size - (right - left)) / 2 - left, (tile_size - (bottom - top)) / 2 - top)
        tile_draw.text(origin, g.char, font=font, fill=g.color)
        # Pillow rotates counter-clockwise; SVG rotate() is clockwise.
        tile = tile.rotate(-g.rotation, resample=Image.Resampling.BICUBIC, expand=True)
        # Glyph y is a baseline; centre the tile slightly above it.
        x = int(g.x - tile.width / 2 + _FONT_SIZE / 4)
        y = int(g.y - tile.height / 2 - _FONT_SIZE / 4)
        img.paste(tile, (x, y), tile)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
