"""
Virtual staging API routes.

Each endpoint performs one transition of the session state machine and returns
the session snapshot. Generation and edit failures are part of the snapshot
(stage "error" / inline_error_message), not HTTP errors.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.config import Settings
from core.exceptions import DecodeError, FormatError, ReadError, SessionStateError
from middleware.logging_middleware import get_logger
from schemas.staging import (
    EditRequest,
    GenerateRequest,
    SelectDesignRequest,
    SessionStateResponse,
    StoreListResponse,
    StoreReferenceSchema,
    UploadRequest,
    to_location_input,
)
from services.design_generation_service import DesignGenerationService
from services.grounding import ALL_CATEGORIES, available_categories, filter_by_category
from services.image_codec import parse_transmittable_from_reference
from services.image_edit_service import ImageEditService
from services.object_identification_service import ObjectIdentificationService
from services.staging_models import UploadedImage
from services.staging_session import StagingSession, StagingSessionStore

logger = get_logger(__name__)
router = APIRouter(prefix="/staging", tags=["staging"])


# --- Dependencies (wired in main.lifespan, overridden in tests) ---


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> StagingSessionStore:
    return request.app.state.session_store


def _configured_service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail="Google AI API key is not configured")
    return service


def get_design_service(request: Request) -> DesignGenerationService:
    return _configured_service(request, "design_service")


def get_edit_service(request: Request) -> ImageEditService:
    return _configured_service(request, "edit_service")


def get_identification_service(request: Request) -> ObjectIdentificationService:
    return _configured_service(request, "identification_service")


def get_session(session_id: str, store: StagingSessionStore = Depends(get_session_store)) -> StagingSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Staging session {session_id} not found")
    return session


def _conflict(error: SessionStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=error.message)


# --- Routes ---


@router.post("/sessions", response_model=SessionStateResponse, status_code=201)
async def create_session(store: StagingSessionStore = Depends(get_session_store)):
    """Start an empty session in the upload stage"""
    session = store.create()
    logger.info(f"Created staging session {session.session_id}")
    return SessionStateResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session: StagingSession = Depends(get_session)):
    return SessionStateResponse.from_session(session)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, store: StagingSessionStore = Depends(get_session_store)):
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Staging session {session_id} not found")


@router.post("/sessions/{session_id}/upload", response_model=SessionStateResponse)
async def upload_image(
    request: UploadRequest,
    session: StagingSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Capture the room photo.

    The image arrives as a data URI; its type and size are checked and its
    pixel dimensions measured before it is stored.
    """
    try:
        transmittable = parse_transmittable_from_reference(request.image)
        if transmittable.mime_type not in settings.allowed_image_types:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported image type {transmittable.mime_type}. Allowed: {', '.join(settings.allowed_image_types)}",
            )
        content = transmittable.to_bytes()
        if len(content) > settings.max_file_size:
            raise HTTPException(
                status_code=400,
                detail=f"Image is too large ({len(content)} bytes, max {settings.max_file_size})",
            )
        image = UploadedImage.from_bytes(content, transmittable.mime_type)
    except (FormatError, DecodeError, ReadError) as e:
        logger.warning(f"Rejected upload: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    try:
        session.capture_upload(image)
    except SessionStateError as e:
        raise _conflict(e)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/generate", response_model=SessionStateResponse)
async def generate_designs(
    request: GenerateRequest,
    session: StagingSession = Depends(get_session),
    design_service: DesignGenerationService = Depends(get_design_service),
):
    """Run the design generation for the uploaded photo"""
    location = to_location_input(request.location)
    logger.info(f"Generating designs (location={type(location).__name__ if location else 'none'})")
    try:
        await session.submit(design_service.generate_designs, location)
    except SessionStateError as e:
        raise _conflict(e)
    logger.info(f"Generation finished in stage '{session.stage.value}'")
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/select", response_model=SessionStateResponse)
async def select_design(request: SelectDesignRequest, session: StagingSession = Depends(get_session)):
    try:
        session.select_design(request.index)
    except SessionStateError as e:
        raise _conflict(e)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/edit", response_model=SessionStateResponse)
async def edit_design(
    request: EditRequest,
    session: StagingSession = Depends(get_session),
    edit_service: ImageEditService = Depends(get_edit_service),
):
    """Apply a free-text edit to the displayed design image"""
    try:
        applied = await session.apply_edit(edit_service.edit_image, request.prompt)
    except SessionStateError as e:
        raise _conflict(e)
    logger.info(f"Edit {'applied' if applied else 'failed'}")
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/edit/clear", response_model=SessionStateResponse)
async def clear_edit(session: StagingSession = Depends(get_session)):
    try:
        session.clear_edit()
    except SessionStateError as e:
        raise _conflict(e)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/identify", response_model=SessionStateResponse)
async def identify_objects(
    session: StagingSession = Depends(get_session),
    identification_service: ObjectIdentificationService = Depends(get_identification_service),
):
    """Find furniture in the displayed image with purchase suggestions"""
    try:
        await session.identify_objects(identification_service.identify_objects)
    except SessionStateError as e:
        raise _conflict(e)
    return SessionStateResponse.from_session(session)


@router.post("/sessions/{session_id}/reset", response_model=SessionStateResponse)
async def reset_session(session: StagingSession = Depends(get_session)):
    session.reset()
    return SessionStateResponse.from_session(session)


@router.get("/sessions/{session_id}/stores", response_model=StoreListResponse)
async def list_stores(
    category: str = Query(default=ALL_CATEGORIES),
    session: StagingSession = Depends(get_session),
):
    """Nearby stores from location grounding, optionally filtered by category"""
    references = session.grounding_references
    categories = available_categories(references)
    if category not in categories:
        raise HTTPException(status_code=400, detail=f"Unknown category '{category}'. Available: {', '.join(categories)}")
    return StoreListResponse(
        categories=categories,
        active_category=category,
        stores=[StoreReferenceSchema.from_reference(ref) for ref in filter_by_category(references, category)],
    )
