from __future__ import annotations

import logging
import os
import secrets
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.middleware.trustedhost import TrustedHostMiddleware

from moderation import config
from moderation.db import session_scope
from moderation.models import Property, PropertyImage, ReviewTicket
from moderation.orchestrator import UploadOrchestrator
from moderation.policy import ModerationPolicy
from moderation.review import ReviewQueue, TicketNotOpen
from moderation.schemas import UploadResult, UploadStatus
from moderation.storage import StorageError, UploadStorage
from moderation.store import PersistenceError, SqlModerationStore
from moderation.vision import VisionAnalyzer, VisionClient

logger = logging.getLogger(__name__)

app = FastAPI(title="Property Image Moderation API")

app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.allowed_hosts())


@app.middleware("http")
async def _security_headers(request, call_next):
    resp = await call_next(request)
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("Referrer-Policy", "no-referrer")
    return resp


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
ALLOWED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp"}

_HTTP_STATUS = {
    UploadStatus.APPROVED: 200,
    UploadStatus.REJECTED: 422,
    UploadStatus.QUEUED_FOR_REVIEW: 202,
    UploadStatus.SERVICE_UNAVAILABLE: 503,
}


# -----------------------
# Dependencies
# -----------------------
def get_db():
    with session_scope() as db:
        yield db


@lru_cache(maxsize=1)
def get_storage() -> UploadStorage:
    return UploadStorage.from_env()


@lru_cache(maxsize=1)
def get_policy() -> ModerationPolicy:
    return ModerationPolicy.from_env()


@lru_cache(maxsize=1)
def get_vision() -> VisionAnalyzer:
    return VisionClient()


def require_admin(x_admin_token: Annotated[str | None, Header()] = None) -> None:
    expected = config.admin_api_token()
    if not expected:
        # No token configured: only acceptable for local runs.
        if config.app_env() == "local":
            return
        raise HTTPException(status_code=503, detail="Admin API is not configured")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=403, detail="Admin only")


class ReviewIn(BaseModel):
    review_notes: str = ""
    reviewer_id: int | None = None


# -----------------------
# Health
# -----------------------
@app.get("/health")
def health():
    return {"ok": True}


@app.get("/uploads/{path:path}", include_in_schema=False)
def uploads_proxy(path: str, storage: Annotated[UploadStorage, Depends(get_storage)]):
    """
    Serve approved images from disk.

    Only the property folder is public; staged and review files are never served.
    Missing files answer 204 so stale URLs do not flood the logs with 404s.
    """
    rel = (path or "").lstrip("/").replace("\\", "/")
    if not rel:
        return Response(status_code=204)
    full = os.path.realpath(storage.absolute_path(rel))
    public_root = os.path.realpath(storage.properties_dir)
    if os.path.commonpath([full, public_root]) != public_root:
        raise HTTPException(status_code=404, detail="Not found")
    if not os.path.isfile(full):
        return Response(status_code=204)
    return FileResponse(full)


# -----------------------
# Uploads
# -----------------------
def _validate_upload(*, filename: str, content_type: str, size_bytes: int) -> None:
    ext = os.path.splitext(filename or "")[1].lower()
    if content_type not in ALLOWED_IMAGE_TYPES or ext not in ALLOWED_IMAGE_EXTS:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG and WebP images are allowed")
    if size_bytes <= 0:
        raise HTTPException(status_code=400, detail="Empty upload")
    max_bytes = config.max_upload_image_bytes()
    if int(size_bytes) > int(max_bytes):
        raise HTTPException(status_code=413, detail=f"Upload too large (max {max_bytes} bytes)")


def _upload_out(result: UploadResult) -> dict[str, Any]:
    return {
        "ok": result.status in {UploadStatus.APPROVED, UploadStatus.QUEUED_FOR_REVIEW},
        "status": result.status.value,
        "image_id": result.record_id,
        "url": result.public_url,
        "message": result.message,
    }


@app.post("/properties/{property_id:int}/images")
def upload_property_image(
    property_id: int,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[UploadStorage, Depends(get_storage)],
    policy: Annotated[ModerationPolicy, Depends(get_policy)],
    vision: Annotated[VisionAnalyzer, Depends(get_vision)],
    file: UploadFile = File(...),
):
    content_type = (file.content_type or "").lower()
    try:
        raw = file.file.read()
    except OSError:
        raise HTTPException(status_code=400, detail="Invalid upload")
    _validate_upload(filename=file.filename or "", content_type=content_type, size_bytes=len(raw))

    if db.get(Property, int(property_id)) is None:
        raise HTTPException(status_code=404, detail="Property not found")

    orchestrator = UploadOrchestrator(
        storage=storage,
        store=SqlModerationStore(db),
        vision=vision,
        policy=policy,
    )
    try:
        staged = storage.stage(data=raw, original_filename=file.filename or "", content_type=content_type)
        result = orchestrator.process(staged, int(property_id))
    except StorageError:
        logger.exception("Upload storage failed property_id=%s filename=%r", property_id, file.filename)
        raise HTTPException(status_code=500, detail="Failed to save upload")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to record upload")
    return JSONResponse(status_code=_HTTP_STATUS[result.status], content=_upload_out(result))


# -----------------------
# Admin review queue
# -----------------------
def _ticket_out(ticket: ReviewTicket, storage: UploadStorage) -> dict[str, Any]:
    img: PropertyImage = ticket.image
    return {
        "id": ticket.id,
        "status": ticket.status,
        "created_at": ticket.created_at.isoformat() if ticket.created_at else None,
        "resolved_at": ticket.resolved_at.isoformat() if ticket.resolved_at else None,
        "reviewer_id": ticket.reviewer_id,
        "review_notes": ticket.review_notes or "",
        "image": {
            "id": img.id,
            "property_id": img.property_id,
            "file_path": img.file_path,
            "original_filename": img.original_filename,
            "content_type": img.content_type,
            "size_bytes": img.size_bytes,
            "moderation_status": img.moderation_status,
            "moderation_reason": img.moderation_reason,
            "reason_code": img.reason_code,
            "url": storage.public_url(img.file_path) if img.file_path and img.moderation_status == "SAFE" else None,
        },
    }


@app.get("/admin/review-tickets", dependencies=[Depends(require_admin)])
def admin_review_tickets(
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[UploadStorage, Depends(get_storage)],
    policy: Annotated[ModerationPolicy, Depends(get_policy)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    tickets, total = ReviewQueue(db, storage, policy).list_open(page=page, limit=limit)
    return {
        "items": [_ticket_out(t, storage) for t in tickets],
        "page": page,
        "limit": limit,
        "total": total,
    }


def _resolve(action: str, ticket_id: int, data: ReviewIn | None, db: Session, storage: UploadStorage, policy: ModerationPolicy):
    queue = ReviewQueue(db, storage, policy)
    notes = data.review_notes if data else ""
    reviewer_id = data.reviewer_id if data else None
    try:
        if action == "approve":
            queue.approve(ticket_id, reviewer_id=reviewer_id, notes=notes)
        else:
            queue.reject(ticket_id, reviewer_id=reviewer_id, notes=notes)
    except LookupError:
        raise HTTPException(status_code=404, detail="Review ticket not found")
    except TicketNotOpen as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError:
        logger.exception("Review %s failed to move files ticket_id=%s", action, ticket_id)
        raise HTTPException(status_code=500, detail="Failed to move image")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to save review decision")
    ticket = db.get(ReviewTicket, int(ticket_id))
    return {"ok": True, "ticket": _ticket_out(ticket, storage)}


@app.post("/admin/review-tickets/{ticket_id:int}/approve", dependencies=[Depends(require_admin)])
def admin_approve_ticket(
    ticket_id: int,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[UploadStorage, Depends(get_storage)],
    policy: Annotated[ModerationPolicy, Depends(get_policy)],
    data: ReviewIn | None = None,
):
    return _resolve("approve", ticket_id, data, db, storage, policy)


@app.post("/admin/review-tickets/{ticket_id:int}/reject", dependencies=[Depends(require_admin)])
def admin_reject_ticket(
    ticket_id: int,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[UploadStorage, Depends(get_storage)],
    policy: Annotated[ModerationPolicy, Depends(get_policy)],
    data: ReviewIn | None = None,
):
    return _resolve("reject", ticket_id, data, db, storage, policy)
