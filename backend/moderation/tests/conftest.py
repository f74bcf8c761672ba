from __future__ import annotations

from io import BytesIO

import numpy as np
import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from moderation.models import Base, Property
from moderation.schemas import Label, Likelihood, LocalizedObject, VisionResult
from moderation.storage import UploadStorage
from moderation.vision import VisionServiceError

ROOM_LABELS = (
    ("living room", 0.95),
    ("interior design", 0.92),
    ("floor", 0.9),
    ("furniture", 0.86),
    ("ceiling", 0.81),
)


def checkerboard(width: int = 640, height: int = 480, block: int = 8) -> np.ndarray:
    ys, xs = np.indices((height, width))
    return (((ys // block) + (xs // block)) % 2 * 255).astype(np.uint8)


def encode_png(gray: np.ndarray) -> bytes:
    buf = BytesIO()
    Image.fromarray(gray).convert("RGB").save(buf, format="PNG")
    return buf.getvalue()


def vision_for(
    *,
    labels=ROOM_LABELS,
    safe_search: dict | None = None,
    faces: tuple[float, ...] = (),
    objects=(),
    missing: tuple[str, ...] = (),
) -> VisionResult:
    ss = {c: Likelihood.VERY_UNLIKELY for c in ("adult", "violence", "racy", "medical", "spoof")}
    ss.update({k: Likelihood.parse(v) for k, v in (safe_search or {}).items()})
    return VisionResult(
        safe_search=ss,
        labels=tuple(Label(d, s) for d, s in labels),
        objects=tuple(LocalizedObject(n, s) for n, s in objects),
        face_confidences=tuple(faces),
        missing=missing,
    )


class FakeVision:
    def __init__(self, result: VisionResult | None = None, *, error: str | None = None) -> None:
        self.result = result if result is not None else vision_for()
        self.error = error
        self.calls = 0

    def analyze(self, data: bytes) -> VisionResult:
        self.calls += 1
        if self.error:
            raise VisionServiceError(self.error)
        return self.result


@pytest.fixture
def sharp_png() -> bytes:
    return encode_png(checkerboard())


@pytest.fixture
def flat_png() -> bytes:
    return encode_png(np.full((480, 640), 128, dtype=np.uint8))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False, autocommit=False)
    with factory() as db:
        db.add(Property(id=1, title="Two bedroom flat"))
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> UploadStorage:
    return UploadStorage(root=str(tmp_path / "uploads"), public_base_url="https://cdn.example.test")


@pytest.fixture
def staged(storage, sharp_png):
    return storage.stage(data=sharp_png, original_filename="living-room.png", content_type="image/png")


@pytest.fixture
def make_vision():
    return vision_for


@pytest.fixture
def fake_vision():
    return FakeVision
