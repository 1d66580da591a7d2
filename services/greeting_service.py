"""Greeting text and card prompts (Gemini with a deterministic fallback)"""

from typing import List, Optional, Tuple

import httpx
from loguru import logger


DEFAULT_STYLE = "traditional"

CARD_STYLES = {
    "traditional": {
        "theme": "traditional Christmas with snow, holly, and warm fireplace",
        "colors": "red, green, gold, and white",
        "elements": "Christmas tree, presents, stockings, and mistletoe",
    },
    "modern": {
        "theme": "modern minimalist Christmas with clean lines",
        "colors": "silver, white, and ice blue",
        "elements": "geometric ornaments, simple pine branches, and elegant candles",
    },
    "funny": {
        "theme": "humorous Christmas scene with comedic elements",
        "colors": "bright festive colors",
        "elements": "silly elves, dancing reindeer, and comical Santa situations",
    },
    "elegant": {
        "theme": "sophisticated Victorian Christmas",
        "colors": "burgundy, gold, and cream",
        "elements": "ornate decorations, vintage ornaments, and classical elegance",
    },
    "tropical": {
        "theme": "tropical Christmas beach celebration",
        "colors": "turquoise, coral, and sandy gold",
        "elements": "palm trees with lights, beach Santa, and tropical flowers",
    },
}

FALLBACK_GREETINGS = {
    "traditional": "Wishing {names} a magical Christmas filled with joy and wonder! May your holidays be merry and bright!",
    "modern": "Season's greetings from {names}! Here's to a stylish and sophisticated holiday season!",
    "funny": "{names} says: \"Who needs a chimney when you've got style!\" Have a hilarious holiday!",
    "elegant": "With warmest wishes, {names} extends the most refined holiday greetings to you and yours.",
    "tropical": "Aloha from {names}! Wishing you a warm and sunny Christmas wherever you are!",
}

GREETING_SYSTEM_PROMPT = """You are a festive Christmas card greeting writer.
Create warm, personalized holiday greetings that are cheerful and celebratory.
Keep responses concise - 2-3 sentences max.
Include festive language and holiday spirit.
Return only the greeting text, no quotes and no explanation."""


def normalize_style(style: Optional[str]) -> str:
    """Known style name; anything else falls back to traditional."""
    if style and style.lower() in CARD_STYLES:
        return style.lower()
    return DEFAULT_STYLE


def join_names(person_names: List[str]) -> str:
    """["A"] -> "A", ["A", "B", "C"] -> "A, B and C" """
    names = [n for n in person_names if n]
    if not names:
        return "all of us"
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def build_card_prompt(person_names: List[str], style: Optional[str] = None) -> str:
    """Image prompt describing the card for a style."""
    selected = CARD_STYLES[normalize_style(style)]
    return (
        f"Create a beautiful Christmas card featuring {join_names(person_names)}.\n"
        f"Style: {selected['theme']}\n"
        f"Color palette: {selected['colors']}\n"
        f"Include: {selected['elements']}\n"
        "The card should have a warm, festive atmosphere with space for a personalized greeting.\n"
        "Make it cheerful and celebratory for the holiday season."
    )


def fallback_greeting(person_names: List[str], style: Optional[str] = None) -> str:
    return FALLBACK_GREETINGS[normalize_style(style)].format(names=join_names(person_names))


class GreetingService:
    """Best-effort greeting generation through the Gemini REST API"""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def generate(self, person_names: List[str], style: Optional[str] = None) -> Tuple[str, str]:
        """
        Generate a greeting for the card.

        Returns:
            (greeting, source) where source is "gemini" or "fallback"
        """
        style = normalize_style(style)
        if self.enabled:
            try:
                text = await self._call_gemini(person_names, style)
                if text:
                    return text, "gemini"
                logger.warning("Gemini returned an empty greeting, using fallback")
            except Exception as e:
                logger.warning(f"Greeting generation failed, using fallback: {e}")
        return fallback_greeting(person_names, style), "fallback"

    async def _call_gemini(self, person_names: List[str], style: str) -> Optional[str]:
        gemini_url = (
            f"https://generativelanguage.googleapis.com/v1beta"
            f"/models/{self.model}:generateContent"
        )
        user_prompt = (
            f"Write a short, festive Christmas greeting for a card featuring {join_names(person_names)}.\n"
            f"Style: {style}. Make it fun and personalized to who they are."
        )
        payload = {
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "systemInstruction": {"parts": [{"text": GREETING_SYSTEM_PROMPT}]},
            "generationConfig": {
                "temperature": 0.9,
                "topP": 0.95,
                "maxOutputTokens": 256,
            }
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(gemini_url, json=payload,
                                         headers={"x-goog-api-key": self.api_key})
            response.raise_for_status()
            data = response.json()

        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = candidates[0].get("content", {}).get("parts") or []
        if not parts:
            return None
        greeting = parts[0].get("text", "").strip().strip('"\'')
        logger.info(f"Greeting generated by Gemini for {join_names(person_names)}")
        return greeting or None
