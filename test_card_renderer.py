"""Tests for card rendering and page image download"""

import asyncio
import io

import httpx
import pytest
from PIL import Image, ImageDraw

from conftest import png_bytes
from services.card_renderer import (
    CardRenderer,
    PageImageError,
    fetch_page_image,
    hex_to_rgb,
    load_font,
    wrap_text,
)


def open_png(data: bytes) -> Image.Image:
    assert data.startswith(b"\x89PNG")
    return Image.open(io.BytesIO(data))


def test_hex_to_rgb():
    assert hex_to_rgb("#c41e3a") == (196, 30, 58)
    assert hex_to_rgb("ffffff") == (255, 255, 255)


@pytest.mark.parametrize("style", ["traditional", "modern", "funny", "elegant", "tropical", "unknown", None])
def test_render_every_style(style):
    page = Image.new("RGB", (300, 400), (250, 250, 250))

    card = open_png(CardRenderer().render(page, style, "Happy holidays to everyone!", ["Alice", "Bob"]))

    assert card.size == (800, 600)


def test_render_without_page_image():
    card = open_png(CardRenderer(400, 300).render(None, "modern", "", []))

    assert card.size == (400, 300)


def test_page_is_composited():
    page = Image.new("RGB", (200, 200), (255, 0, 255))

    card = open_png(CardRenderer().render(page, "traditional", "", ["Alice"])).convert("RGB")

    # page is fitted into the middle panel
    assert card.getpixel((400, 305)) == (255, 0, 255)


def test_render_is_deterministic_for_a_seed():
    renderer = CardRenderer()

    first = renderer.render(None, "traditional", "Joy!", ["Alice"], seed=7)
    second = renderer.render(None, "traditional", "Joy!", ["Alice"], seed=7)

    assert first == second


def test_wrap_text_respects_width():
    font = load_font(22)
    draw = ImageDraw.Draw(Image.new("RGB", (10, 10)))
    text = "Wishing you a magical Christmas filled with joy and wonder and many more words"

    lines = wrap_text(draw, text, font, 200)

    assert len(lines) > 1
    assert " ".join(lines) == text
    assert all(draw.textlength(line, font=font) <= 200 for line in lines)
    assert wrap_text(draw, "", font, 200) == []


def image_transport(status_code=200, content=b""):
    return httpx.MockTransport(lambda request: httpx.Response(status_code, content=content))


def test_fetch_page_image():
    image = asyncio.run(fetch_page_image(
        "https://images.test/d/page-001.jpg",
        transport=image_transport(content=png_bytes((30, 20)))
    ))

    assert image.size == (30, 20)
    assert image.mode == "RGB"


def test_fetch_page_image_http_error():
    with pytest.raises(PageImageError):
        asyncio.run(fetch_page_image("https://images.test/d/page-001.jpg", transport=image_transport(404)))


def test_fetch_page_image_garbage():
    with pytest.raises(PageImageError):
        asyncio.run(fetch_page_image(
            "https://images.test/d/page-001.jpg",
            transport=image_transport(content=b"<html>not an image</html>")
        ))
