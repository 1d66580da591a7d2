"""File-backed gallery of saved cards (PNG image + JSON metadata per card)"""

import base64
import binascii
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from models.data_models import CardMetadata, SaveCardRequest


CARD_ID_RE = re.compile(r"^[a-f0-9]{32}$")
DATA_URL_RE = re.compile(r"^data:image/\w+;base64,")
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class InvalidCardError(ValueError):
    """Card id or image payload rejected"""


class CardNotFoundError(LookupError):
    """No card with this id in the gallery"""


def validate_card_id(card_id: str) -> str:
    if not isinstance(card_id, str) or not CARD_ID_RE.match(card_id):
        raise InvalidCardError(f"Invalid card id: {card_id!r}")
    return card_id


def decode_image_data(image_data: str) -> bytes:
    """Decode a base64 PNG, with or without a data: URL prefix."""
    payload = DATA_URL_RE.sub("", image_data.strip(), count=1)
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidCardError(f"Image data is not valid base64: {e}") from e
    if not image_bytes.startswith(PNG_SIGNATURE):
        raise InvalidCardError("Image data is not a PNG")
    return image_bytes


class GalleryService:
    """Saves, lists and deletes finished cards in a directory"""

    def __init__(self, gallery_dir: str, url_prefix: str = "/gallery", max_image_bytes: Optional[int] = None):
        """
        Args:
            gallery_dir: directory holding <id>.png and <id>.json pairs (created if missing)
            url_prefix: public URL prefix the directory is served under
            max_image_bytes: reject larger images (None for no limit)
        """
        self.gallery_dir = Path(gallery_dir)
        self.gallery_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_image_bytes = max_image_bytes

    def image_path(self, card_id: str) -> Path:
        return self.gallery_dir / f"{validate_card_id(card_id)}.png"

    def metadata_path(self, card_id: str) -> Path:
        return self.gallery_dir / f"{validate_card_id(card_id)}.json"

    def save_card(self, request: SaveCardRequest) -> CardMetadata:
        """
        Write the card image and its metadata. Saving an existing id overwrites it.

        Raises:
            InvalidCardError: bad id, undecodable or oversized image
        """
        card_id = validate_card_id(request.id)
        image_bytes = decode_image_data(request.image_data)
        if self.max_image_bytes is not None and len(image_bytes) > self.max_image_bytes:
            raise InvalidCardError(
                f"Card image is {len(image_bytes)} bytes, limit is {self.max_image_bytes}"
            )

        metadata = CardMetadata(
            id=card_id,
            person_ids=request.person_ids,
            person_names=request.person_names,
            style=request.style,
            prompt=request.prompt,
            greeting=request.greeting,
            image_path=f"{self.url_prefix}/{card_id}.png",
            created_at=datetime.now(timezone.utc),
        )

        self.image_path(card_id).write_bytes(image_bytes)
        self.metadata_path(card_id).write_text(metadata.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Saved card {card_id} ({len(image_bytes)} bytes)")
        return metadata

    def get_card(self, card_id: str) -> CardMetadata:
        """
        Raises:
            InvalidCardError: malformed id
            CardNotFoundError: no metadata for this id
        """
        path = self.metadata_path(card_id)
        if not path.exists():
            raise CardNotFoundError(card_id)
        return CardMetadata.model_validate_json(path.read_text(encoding="utf-8"))

    def list_cards(self) -> List[CardMetadata]:
        """All readable cards, newest first."""
        cards = []
        for path in self.gallery_dir.glob("*.json"):
            try:
                cards.append(CardMetadata.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable card metadata {path.name}: {e}")
        cards.sort(key=lambda card: card.created_at, reverse=True)
        return cards

    def delete_card(self, card_id: str) -> bool:
        """Delete both files of a card. Returns True if anything was removed."""
        removed = False
        for path in (self.image_path(card_id), self.metadata_path(card_id)):
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            logger.info(f"Deleted card {card_id}")
        return removed
