"""Card compositing: festive decorations over a matched document page"""

import io
import math
import random
from typing import List, Optional, Tuple

import httpx
from PIL import Image, ImageDraw, ImageFont, ImageOps
from loguru import logger

from services.greeting_service import join_names, normalize_style


Color = Tuple[int, int, int]

CARD_BACKGROUNDS = {
    "traditional": {"gradient": ("#1a472a", "#2d5a3a"), "accent": "#c41e3a"},
    "modern": {"gradient": ("#1a1a2e", "#16213e"), "accent": "#e8e8e8"},
    "funny": {"gradient": ("#ff6b6b", "#feca57"), "accent": "#ffffff"},
    "elegant": {"gradient": ("#2c1810", "#4a2c2a"), "accent": "#d4af37"},
    "tropical": {"gradient": ("#00b4d8", "#48cae4"), "accent": "#ff9f1c"},
}

ORNAMENT_COLORS = ["#c41e3a", "#d4af37", "#1e90ff", "#9370db"]

HEADER_TEXT = "Merry Christmas!"


class PageImageError(RuntimeError):
    """Page image could not be downloaded or decoded"""


def hex_to_rgb(value: str) -> Color:
    value = value.lstrip("#")
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))


def load_font(size: int) -> ImageFont.ImageFont:
    """Bundled Pillow font at the requested size."""
    return ImageFont.load_default(size=size)


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes into an RGB image."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Exception as e:
        raise PageImageError(f"Cannot decode page image: {e}") from e
    return img.convert("RGB")


async def fetch_page_image(
    url: str,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Image.Image:
    """
    Download a page image.

    Raises:
        PageImageError: on HTTP errors, timeouts or undecodable content
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise PageImageError(f"Failed to fetch page image {url}: {e}") from e

    logger.debug(f"Fetched page image {url} ({len(response.content)} bytes)")
    return decode_image(response.content)


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> List[str]:
    """Greedy word wrap by rendered width."""
    lines = []
    line = ""
    for word in text.split():
        candidate = f"{line} {word}".strip()
        if line and draw.textlength(candidate, font=font) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


class CardRenderer:
    """Renders a decorated card as PNG bytes"""

    def __init__(self, width: int = 800, height: int = 600):
        self.width = width
        self.height = height
        # decoration coordinates are laid out for an 800x600 card
        self.sx = width / 800
        self.sy = height / 600

    def _x(self, value: float) -> int:
        return int(value * self.sx)

    def _y(self, value: float) -> int:
        return int(value * self.sy)

    def render(
        self,
        page_image: Optional[Image.Image],
        style: Optional[str],
        greeting: str,
        person_names: List[str],
        seed: Optional[int] = 0
    ) -> bytes:
        """
        Composite a card.

        Args:
            page_image: matched page image (None renders the card without a page panel)
            style: card style, unknown styles render as traditional
            greeting: greeting text, word-wrapped at the bottom
            person_names: names for the "From:" line
            seed: seed for decoration placement (None for a random layout)

        Returns:
            PNG bytes
        """
        style = normalize_style(style)
        palette = CARD_BACKGROUNDS[style]
        accent = hex_to_rgb(palette["accent"])
        rng = random.Random(seed)

        card = self._gradient(hex_to_rgb(palette["gradient"][0]), hex_to_rgb(palette["gradient"][1]))
        draw = ImageDraw.Draw(card, "RGBA")

        self._draw_decorations(draw, style, accent, rng)

        if page_image is not None:
            self._draw_page(card, draw, page_image, accent)

        header_font = load_font(self._y(48))
        draw.text((self.width // 2, self._y(80)), HEADER_TEXT, fill=accent, font=header_font, anchor="mm")

        name_font = load_font(self._y(32))
        draw.text((self.width // 2, self._y(140)), f"From: {join_names(person_names)}",
                  fill=(255, 255, 255), font=name_font, anchor="mm")

        greeting_font = load_font(self._y(22))
        y = self._y(480)
        for line in wrap_text(draw, greeting or "", greeting_font, self.width - self._x(100)):
            draw.text((self.width // 2, y), line, fill=(255, 255, 255), font=greeting_font, anchor="mm")
            y += self._y(30)

        buffer = io.BytesIO()
        card.convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()

    def _gradient(self, top: Color, bottom: Color) -> Image.Image:
        card = Image.new("RGB", (self.width, self.height), top)
        draw = ImageDraw.Draw(card)
        span = max(self.height - 1, 1)
        for y in range(self.height):
            t = y / span
            color = tuple(int(top[i] + (bottom[i] - top[i]) * t) for i in range(3))
            draw.line([(0, y), (self.width, y)], fill=color)
        return card

    def _draw_page(self, card: Image.Image, draw: ImageDraw.ImageDraw, page_image: Image.Image, accent: Color):
        box = (self._x(150), self._y(165), self._x(650), self._y(445))
        box_w, box_h = box[2] - box[0], box[3] - box[1]
        fitted = ImageOps.contain(page_image.convert("RGB"), (box_w, box_h), Image.Resampling.LANCZOS)
        left = box[0] + (box_w - fitted.width) // 2
        top = box[1] + (box_h - fitted.height) // 2
        card.paste(fitted, (left, top))
        frame = max(2, self._x(4))
        draw.rectangle(
            [left - frame, top - frame, left + fitted.width + frame - 1, top + fitted.height + frame - 1],
            outline=accent,
            width=frame
        )

    def _draw_decorations(self, draw: ImageDraw.ImageDraw, style: str, accent: Color, rng: random.Random):
        if style == "traditional":
            self._draw_tree(draw, 80, 350, 60)
            self._draw_tree(draw, 720, 350, 60)
            for _ in range(30):
                self._draw_snowflake(draw, rng.random() * 800, rng.random() * 400 + 50, rng.random() * 10 + 5)
            for i in range(8):
                color = hex_to_rgb(ORNAMENT_COLORS[i % len(ORNAMENT_COLORS)])
                self._circle(draw, 100 + i * 90, 180 + math.sin(i) * 20, 15, fill=color)

        elif style == "modern":
            for _ in range(15):
                x, y = rng.random() * 800, rng.random() * 600
                r = rng.random() * 50 + 20
                self._circle(draw, x, y, r, outline=accent + (77,), width=2)

        elif style == "funny":
            for x, y, size in ((100, 300, 40), (700, 300, 40), (200, 400, 26), (600, 400, 26)):
                self._draw_star(draw, x, y, size, accent)
            for x, y in ((90, 440), (710, 440)):
                self._draw_gift(draw, x, y, 44)

        elif style == "elegant":
            draw.rectangle([self._x(30), self._y(30), self._x(770), self._y(570)], outline=accent, width=3)
            draw.rectangle([self._x(40), self._y(40), self._x(760), self._y(560)], outline=accent, width=3)
            for x, y, flip_x, flip_y in ((50, 50, False, False), (750, 50, True, False),
                                         (50, 550, False, True), (750, 550, True, True)):
                self._draw_corner(draw, x, y, accent, flip_x, flip_y)

        elif style == "tropical":
            self._circle(draw, 700, 90, 40, fill=(255, 214, 10))
            self._draw_palm(draw, 70, 380)
            self._draw_palm(draw, 730, 380)
            for x, y in ((150, 450), (650, 450)):
                for k in range(5):
                    angle = k * 2 * math.pi / 5
                    self._circle(draw, x + math.cos(angle) * 12, y + math.sin(angle) * 12, 9, fill=accent)
                self._circle(draw, x, y, 6, fill=(255, 255, 255))

    def _circle(self, draw, x, y, r, fill=None, outline=None, width=1):
        cx, cy = self._x(x), self._y(y)
        rr = max(1, int(r * min(self.sx, self.sy)))
        draw.ellipse([cx - rr, cy - rr, cx + rr, cy + rr], fill=fill, outline=outline, width=width)

    def _draw_tree(self, draw, x, y, size):
        green = hex_to_rgb("#165b33")
        draw.polygon([(self._x(x), self._y(y - size)), (self._x(x - size / 2), self._y(y)),
                      (self._x(x + size / 2), self._y(y))], fill=green)
        draw.polygon([(self._x(x), self._y(y - size * 1.5)), (self._x(x - size / 2 * 0.8), self._y(y - size * 0.5)),
                      (self._x(x + size / 2 * 0.8), self._y(y - size * 0.5))], fill=green)
        draw.rectangle([self._x(x - 8), self._y(y), self._x(x + 8), self._y(y + 25)], fill=hex_to_rgb("#8b4513"))

    def _draw_snowflake(self, draw, x, y, size):
        self._circle(draw, x, y, size / 2, fill=(255, 255, 255, 153))

    def _draw_star(self, draw, x, y, size, color):
        points = []
        for k in range(10):
            radius = size if k % 2 == 0 else size * 0.45
            angle = -math.pi / 2 + k * math.pi / 5
            points.append((self._x(x + math.cos(angle) * radius), self._y(y + math.sin(angle) * radius)))
        draw.polygon(points, fill=color)

    def _draw_gift(self, draw, x, y, size):
        half = size / 2
        draw.rectangle([self._x(x - half), self._y(y - half), self._x(x + half), self._y(y + half)],
                       fill=hex_to_rgb("#c41e3a"))
        ribbon = hex_to_rgb("#d4af37")
        draw.rectangle([self._x(x - 4), self._y(y - half), self._x(x + 4), self._y(y + half)], fill=ribbon)
        draw.rectangle([self._x(x - half), self._y(y - 4), self._x(x + half), self._y(y + 4)], fill=ribbon)

    def _draw_corner(self, draw, x, y, color, flip_x=False, flip_y=False):
        dx = -1 if flip_x else 1
        dy = -1 if flip_y else 1
        # quadratic curves (0,0)->(30,30) and (30,30)->(60,0), control point (30,0)
        points = []
        for start, end in (((0, 0), (30, 30)), ((30, 30), (60, 0))):
            for step in range(11):
                t = step / 10
                px = (1 - t) ** 2 * start[0] + 2 * (1 - t) * t * 30 + t ** 2 * end[0]
                py = (1 - t) ** 2 * start[1] + t ** 2 * end[1]
                points.append((self._x(x + dx * px), self._y(y + dy * py)))
        draw.line(points, fill=color, width=2)

    def _draw_palm(self, draw, x, y):
        trunk = hex_to_rgb("#8b5a2b")
        draw.line([(self._x(x), self._y(y)), (self._x(x + 10), self._y(y - 110))], fill=trunk, width=max(2, self._x(8)))
        top_x, top_y = x + 10, y - 110
        leaf = hex_to_rgb("#2d9d3a")
        for angle in (-150, -110, -70, -30, 10, 190):
            rad = math.radians(angle)
            draw.line([(self._x(top_x), self._y(top_y)),
                       (self._x(top_x + math.cos(rad) * 45), self._y(top_y + math.sin(rad) * 30 + 15))],
                      fill=leaf, width=max(2, self._x(6)))
