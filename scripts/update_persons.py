"""
Fetch persons from the upstream celebrity results and rebuild data/persons.json.

Run periodically:
    python scripts/update_persons.py [--output data/persons.json]
"""

import argparse
import json
import logging
import sys
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

import httpx

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from services.person_store import (
    DEFAULT_CATEGORY,
    categorize,
    category_rank,
    clean_document_path,
    generate_person_id,
    order_categories,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def fetch_source(source_url: str, timeout: float = 60.0) -> dict:
    """Download the upstream celebrity results JSON."""
    response = httpx.get(source_url, timeout=timeout, follow_redirects=True)
    response.raise_for_status()
    return response.json()


def build_persons(raw_data: dict, prefix: str = "") -> list:
    """
    Build person records from the upstream payload.

    Each person gets a stable id, a category and appearances sorted by
    descending confidence. Persons are ordered by category, then name.
    """
    unique_names = raw_data.get("uniqueCelebrities") or []
    appearances_by_name = raw_data.get("celebrityAppearances") or {}

    persons = []
    for name in unique_names:
        appearances = [
            {
                "file": clean_document_path(app["file"], prefix),
                "page": app["page"],
                "confidence": app["confidence"],
            }
            for app in appearances_by_name.get(name, [])
        ]
        appearances.sort(key=lambda a: a["confidence"], reverse=True)

        persons.append({
            "id": generate_person_id(name),
            "name": name,
            "category": categorize(name),
            "image": None,
            "appearances": appearances,
        })

    persons.sort(key=lambda p: (category_rank(p["category"]), p["name"].casefold()))
    return persons


def build_snapshot(raw_data: dict, source_url: str, prefix: str = "") -> dict:
    persons = build_persons(raw_data, prefix)
    return {
        "lastUpdated": datetime.now(timezone.utc).isoformat(),
        "source": source_url,
        "sourceProcessedAt": raw_data.get("processedAt"),
        "totalPersons": len(persons),
        "categories": order_categories(p["category"] for p in persons),
        "persons": persons,
    }


def update_persons(source_url: str, output_path: str, prefix: str) -> dict:
    logger.info(f"Fetching persons from {source_url}")
    raw_data = fetch_source(source_url)

    logger.info(
        f"Source data: {raw_data.get('totalImages')} images, "
        f"{raw_data.get('imagesWithCelebrities')} with celebrities"
    )

    snapshot = build_snapshot(raw_data, source_url, prefix)

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")

    logger.info(f"Updated {output}: {snapshot['totalPersons']} persons")
    logger.info(f"Categories: {', '.join(snapshot['categories'])}")

    counts = Counter(p["category"] for p in snapshot["persons"])
    for category in snapshot["categories"]:
        logger.info(f"  {category}: {counts[category]}")

    notable = [p for p in snapshot["persons"] if p["category"] != DEFAULT_CATEGORY][:20]
    for person in notable:
        logger.info(f"  - {person['name']} ({person['category']}) - {len(person['appearances'])} appearances")

    return snapshot


def main():
    parser = argparse.ArgumentParser(
        description='Rebuild the persons snapshot from the upstream celebrity results'
    )

    parser.add_argument(
        '--source-url',
        type=str,
        default=settings.PERSONS_SOURCE_URL,
        help='Upstream celebrity results JSON'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=settings.PERSONS_DATA_PATH,
        help=f'Snapshot path (default {settings.PERSONS_DATA_PATH})'
    )

    parser.add_argument(
        '--prefix',
        type=str,
        default=settings.PERSONS_SOURCE_PREFIX,
        help='Local path prefix stripped from document paths'
    )

    args = parser.parse_args()

    try:
        update_persons(args.source_url, args.output, args.prefix)
    except (httpx.HTTPError, ValueError, KeyError, OSError) as e:
        logger.error(f"Error fetching persons: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
