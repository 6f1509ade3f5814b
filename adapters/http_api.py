"""
adapters/http_api.py — REST face-recognition client routed through a TransThrottle.

HTTP failures are mapped onto throttle error kinds:
    429                                    → RATE_LIMITED (retried after cooldown)
    400 "exceeds maximum item count"       → STRUCTURAL_INVALID (given up, None returned)
    anything else                          → raised unchanged
"""

import logging

import requests

import config
from throttle.errors import RemoteCallError
from throttle.service_types import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

STRUCTURAL_MARKERS = (
    "exceeds maximum item count",
)


def classify_http_error(exc):
    """Map a requests exception onto the throttle's error kinds."""
    if isinstance(exc, RemoteCallError):
        return exc.kind

    if not isinstance(exc, requests.HTTPError) or exc.response is None:
        return ErrorKind.OTHER

    status = exc.response.status_code
    if status == 429:
        return ErrorKind.RATE_LIMITED

    if status == 400:
        body = exc.response.text or ""
        if any(marker in body for marker in STRUCTURAL_MARKERS):
            return ErrorKind.STRUCTURAL_INVALID

    return ErrorKind.OTHER


class FaceApiClient:

    def __init__(self, throttle, endpoint=None, api_key=None, session=None,
                 timeout: int = DEFAULT_TIMEOUT):
        self.throttle = throttle
        self.endpoint = (endpoint or config.FACE_API_ENDPOINT or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Ocp-Apim-Subscription-Key": api_key or config.FACE_API_KEY or "",
        })

    def _post(self, path, **kwargs):
        response = self.session.post(f"{self.endpoint}{path}", timeout=self.timeout, **kwargs)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            kind = classify_http_error(e)
            if kind is ErrorKind.OTHER:
                raise
            raise RemoteCallError(kind, f"{response.status_code}: {response.text}", cause=e) from e
        return response.json() if response.content else None

    def _call(self, description, path, **kwargs):
        if self.throttle.disabled():
            logger.warning("Monthly %s quota reached (%s). Skipping %s.",
                           self.throttle.service_type, self.throttle.monthly_summary(), description)
            return None
        return self.throttle.invoke(description, lambda: self._post(path, **kwargs))

    def detect_faces(self, image_bytes: bytes):
        """Returns the list of detected faces, or None if nothing usable came back."""
        return self._call(
            "detect",
            "/face/v1.0/detect",
            params={"returnFaceId": "true"},
            data=image_bytes,
            headers={"Content-Type": "application/octet-stream"},
        )

    def identify_faces(self, face_ids: list[str], person_group_id: str):
        return self._call(
            "identify",
            "/face/v1.0/identify",
            json={"faceIds": face_ids, "personGroupId": person_group_id},
        )

    def add_person_face(self, person_group_id: str, person_id: str, image_bytes: bytes):
        self._call(
            "add person face",
            f"/face/v1.0/persongroups/{person_group_id}/persons/{person_id}/persistedFaces",
            data=image_bytes,
            headers={"Content-Type": "application/octet-stream"},
        )
