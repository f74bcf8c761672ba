"""
Google Cloud Vision adapter.

One `images:annotate` request per image, asking for safe-search, labels,
faces and localized objects. Anything other than a well-formed 2xx answer
raises VisionServiceError so the caller can park the upload as PENDING.
"""
from __future__ import annotations

import base64
import logging
from typing import Any, Protocol

import requests

from moderation import config
from moderation.schemas import SAFESEARCH_CATEGORIES, Label, Likelihood, LocalizedObject, VisionResult

logger = logging.getLogger(__name__)


class VisionServiceError(RuntimeError):
    pass


class VisionAnalyzer(Protocol):
    def analyze(self, data: bytes) -> VisionResult:
        ...


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _section(r0: dict, key: str, kind: type) -> Any:
    """Returns a response section, None when omitted; a section of the wrong shape raises."""
    value = r0.get(key)
    if value is None or isinstance(value, kind):
        return value
    raise VisionServiceError(f"Vision response section {key} is malformed ({type(value).__name__})")


def parse_annotate_response(payload: Any) -> VisionResult:
    """
    Turns an `images:annotate` JSON body into a VisionResult.

    Sections the API omitted are listed in `VisionResult.missing`; a body that
    is not a response at all, or has a section of the wrong shape, raises
    VisionServiceError.
    """
    if not isinstance(payload, dict):
        raise VisionServiceError("Vision response is not a JSON object")
    responses = payload.get("responses")
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        raise VisionServiceError("Vision response has no annotation result")
    r0 = responses[0]
    err = r0.get("error")
    if isinstance(err, dict) and err:
        raise VisionServiceError(f"Vision API error: {err.get('message') or err.get('code') or 'unknown'}")

    missing: list[str] = []

    ss = _section(r0, "safeSearchAnnotation", dict)
    if ss is None:
        missing.append("safeSearchAnnotation")
        ss = {}
    safe_search = {c: Likelihood.parse(ss.get(c)) for c in SAFESEARCH_CATEGORIES}

    labels: list[Label] = []
    raw_labels = _section(r0, "labelAnnotations", list)
    if raw_labels is None:
        missing.append("labelAnnotations")
    for item in raw_labels or []:
        if isinstance(item, dict) and item.get("description"):
            labels.append(Label(description=str(item["description"]).strip().lower(), score=_float(item.get("score"))))

    objects: list[LocalizedObject] = []
    for item in _section(r0, "localizedObjectAnnotations", list) or []:
        if isinstance(item, dict) and item.get("name"):
            objects.append(LocalizedObject(name=str(item["name"]).strip().lower(), score=_float(item.get("score"))))

    faces = tuple(
        _float(item.get("detectionConfidence"))
        for item in (_section(r0, "faceAnnotations", list) or [])
        if isinstance(item, dict)
    )

    return VisionResult(
        safe_search=safe_search,
        labels=tuple(labels),
        objects=tuple(objects),
        face_confidences=faces,
        missing=tuple(missing),
    )


class VisionClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float | None = None,
        max_labels: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = config.vision_api_key() if api_key is None else api_key
        self.endpoint = endpoint or config.vision_endpoint()
        self.timeout = float(timeout if timeout is not None else config.vision_timeout_seconds())
        self.max_labels = int(max_labels or config.vision_max_labels())
        self.session = session or requests.Session()

    def _payload(self, data: bytes) -> dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": base64.b64encode(data).decode("ascii")},
                    "features": [
                        {"type": "SAFE_SEARCH_DETECTION"},
                        {"type": "LABEL_DETECTION", "maxResults": self.max_labels},
                        {"type": "FACE_DETECTION"},
                        {"type": "OBJECT_LOCALIZATION"},
                    ],
                }
            ]
        }

    def analyze(self, data: bytes) -> VisionResult:
        if not self.api_key:
            raise VisionServiceError("Vision API is not configured (missing GOOGLE_VISION_API_KEY)")
        try:
            resp = self.session.post(
                self.endpoint,
                params={"key": self.api_key},
                json=self._payload(data),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise VisionServiceError(f"Vision API timed out after {self.timeout:g}s") from e
        except requests.RequestException as e:
            raise VisionServiceError(f"Vision API unreachable: {e}") from e

        if not resp.ok:
            logger.warning("Vision API HTTP %s: %s", resp.status_code, resp.text[:500])
            raise VisionServiceError(f"Vision API HTTP {int(resp.status_code)}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise VisionServiceError("Vision API returned invalid JSON") from e
        return parse_annotate_response(payload)
