"""REST API for the person page search and card gallery"""

import logging
import logging.handlers
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from models.data_models import (
    CardDraft,
    CardMetadata,
    FindPagesRequest,
    FindPagesResponse,
    GenerateCardRequest,
    GreetingRequest,
    GreetingResponse,
    RenderCardRequest,
    SaveCardRequest,
)
from services.card_renderer import CardRenderer, PageImageError, fetch_page_image
from services.gallery_service import CardNotFoundError, GalleryService, InvalidCardError
from services.greeting_service import GreetingService, build_card_prompt, normalize_style
from services.page_matcher import InvalidRequestError, PageMatcher, build_image_url
from services.person_store import PersonStore, StoreUnavailableError


# Logging: console (WARNING+) + rotating file
def setup_logging():
    """Configure API logging: console + file"""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()

    # Already configured (e.g. by uvicorn reload)
    if root_logger.handlers:
        return

    root_logger.setLevel(log_level)

    # Console (WARNING+ only)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File (all levels) with rotation
    if settings.LOG_FILE:
        log_dir = Path(settings.LOG_FILE).parent
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE,
            maxBytes=50*1024*1024,  # 50MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Christmas Card Generator API",
    description="Find document pages featuring selected persons and turn them into festive cards",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Services (initialized on startup)
person_store: Optional[PersonStore] = None
page_matcher: Optional[PageMatcher] = None
gallery_service: Optional[GalleryService] = None
greeting_service: Optional[GreetingService] = None
card_renderer: Optional[CardRenderer] = None


@app.on_event("startup")
async def startup():
    """Load the persons snapshot and initialize services"""
    global person_store, page_matcher, gallery_service, greeting_service, card_renderer

    logger.info("Initializing API server...")

    # A broken snapshot must not take the whole server down
    try:
        person_store = PersonStore.load(settings.PERSONS_DATA_PATH)
        page_matcher = PageMatcher(
            person_store,
            image_base_url=settings.IMAGE_BASE_URL,
            representative=settings.REPRESENTATIVE_APPEARANCE
        )
        logger.info(f"Person store loaded: {len(person_store)} persons")
    except StoreUnavailableError as e:
        person_store = None
        page_matcher = None
        logger.error(f"Warning: could not load persons data: {e}")

    gallery_service = GalleryService(
        settings.GALLERY_DIR,
        max_image_bytes=settings.MAX_CARD_IMAGE_MB * 1024 * 1024
    )
    greeting_service = GreetingService(
        settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        timeout=settings.GREETING_TIMEOUT
    )
    card_renderer = CardRenderer(settings.CARD_WIDTH, settings.CARD_HEIGHT)

    logger.info("API server ready")


@app.on_event("shutdown")
async def shutdown():
    """Release services on shutdown"""
    global person_store, page_matcher

    logger.info("Shutting down API server...")
    person_store = None
    page_matcher = None


def _require_person_store() -> PersonStore:
    if person_store is None:
        raise HTTPException(status_code=503, detail="Persons data not loaded")
    return person_store


def _require_gallery() -> GalleryService:
    if gallery_service is None:
        raise HTTPException(status_code=503, detail="Gallery service not available")
    return gallery_service


# ==================== Health ====================


@app.get("/health")
async def health_check():
    """API health"""
    return {
        "status": "ok",
        "persons_loaded": person_store is not None,
        "persons_count": len(person_store) if person_store else 0,
        "gemini_configured": bool(greeting_service and greeting_service.enabled),
    }


# ==================== Persons ====================


@app.get("/api/persons")
async def list_persons(
    search: Optional[str] = Query(None, description="Case-insensitive name search"),
    category: Optional[str] = Query(None, description="Exact category")
):
    """Persons in snapshot format, optionally filtered"""
    store = _require_person_store()
    persons = store.search_persons(search=search, category=category)
    return store.to_snapshot(persons)


@app.get("/api/categories")
async def list_categories():
    """Categories in display order"""
    store = _require_person_store()
    return {"categories": store.list_categories()}


@app.get("/api/persons/{person_id}")
async def get_person(person_id: str):
    """One person with appearances"""
    store = _require_person_store()
    person = store.get_person(person_id)
    if person is None:
        raise HTTPException(status_code=404, detail="Person not found")
    return person.model_dump(mode="json", by_alias=True)


# ==================== Page search ====================


@app.post("/api/find-page-with-persons", response_model=FindPagesResponse)
async def find_page_with_persons(request: FindPagesRequest):
    """Ranked document pages featuring the most of the selected persons"""
    if not request.person_ids:
        raise HTTPException(status_code=400, detail="person_ids required")
    if page_matcher is None:
        raise HTTPException(status_code=503, detail="Persons data not loaded")

    try:
        pages = page_matcher.find_matching_pages(request.person_ids)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return FindPagesResponse(
        pages=pages,
        total_pages=len(pages),
        total_requested=len(request.person_ids),
        best_match_count=pages[0].match_count if pages else 0,
    )


# ==================== Cards ====================


@app.post("/api/generate", response_model=CardDraft)
async def generate_card(request: GenerateCardRequest):
    """Create a card draft with an image prompt"""
    if not request.person_ids or not request.person_names:
        raise HTTPException(status_code=400, detail="Person IDs and names are required")

    style = normalize_style(request.style)
    return CardDraft(
        id=uuid.uuid4().hex,
        person_ids=request.person_ids,
        person_names=request.person_names,
        style=style,
        prompt=build_card_prompt(request.person_names, style),
        created_at=datetime.now(timezone.utc),
    )


@app.post("/api/greeting", response_model=GreetingResponse)
async def generate_greeting(request: GreetingRequest):
    """Greeting text (Gemini when configured, otherwise the fallback table)"""
    if greeting_service is None:
        raise HTTPException(status_code=503, detail="Greeting service not available")
    greeting, source = await greeting_service.generate(request.person_names, request.style)
    return GreetingResponse(greeting=greeting, source=source)


@app.post("/api/render")
async def render_card(request: RenderCardRequest):
    """Composite a card over a matched page image, returns PNG"""
    if card_renderer is None:
        raise HTTPException(status_code=503, detail="Card renderer not available")

    image_url = build_image_url(settings.IMAGE_BASE_URL, request.document_id, request.page_number)
    try:
        page_image = await fetch_page_image(image_url, timeout=settings.PAGE_FETCH_TIMEOUT)
    except PageImageError as e:
        logger.error(f"Page image error: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch page image")

    try:
        png = card_renderer.render(page_image, request.style, request.greeting, request.person_names)
    except Exception as e:
        logger.error(f"Render error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to render card")

    return Response(content=png, media_type="image/png")


@app.post("/api/cards")
async def save_card(request: SaveCardRequest):
    """Save a finished card to the gallery"""
    gallery = _require_gallery()
    if not request.id or not request.image_data:
        raise HTTPException(status_code=400, detail="Card ID and image data are required")

    try:
        card = gallery.save_card(request)
    except InvalidCardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        logger.error(f"Save error: {e}")
        raise HTTPException(status_code=500, detail="Failed to save card")

    return {"success": True, "card": card}


@app.get("/api/cards", response_model=List[CardMetadata])
async def list_cards():
    """Saved cards, newest first"""
    gallery = _require_gallery()
    return gallery.list_cards()


@app.get("/api/cards/{card_id}", response_model=CardMetadata)
async def get_card(card_id: str):
    """One saved card"""
    gallery = _require_gallery()
    try:
        return gallery.get_card(card_id)
    except InvalidCardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CardNotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")


@app.delete("/api/cards/{card_id}")
async def delete_card(card_id: str):
    """Delete a saved card"""
    gallery = _require_gallery()
    try:
        deleted = gallery.delete_card(card_id)
    except InvalidCardError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Card not found")
    return {"success": True, "id": card_id}


# Saved card images
app.mount("/gallery", StaticFiles(directory=settings.GALLERY_DIR, check_dir=False), name="gallery")

# Static client at the root (after API endpoints)
static_path = Path(__file__).parent / "static"
if static_path.exists():
    app.mount("/", StaticFiles(directory=str(static_path), html=True), name="static")
    logger.info(f"Static files mounted from {static_path}")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting API server on {settings.API_HOST}:{settings.API_PORT}")

    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
