#!/usr/bin/env python3
"""
Media Client - image/video generation transport

Creates images from text, edits images against reference images, and
animates a reference image into a video.
"""

import logging
import os
from typing import Dict, List, Optional, Sequence

import requests

from agentic_refine.core.constants import (
    API_KEY_ENV,
    DEFAULT_GENERATION_MODEL,
    MEDIA_DEFAULT_BASE_URL,
    MEDIA_DEFAULT_TIMEOUT,
    VIDEO_DEFAULT_RESOLUTION,
)
from agentic_refine.core.media import artifact_to_url, bytes_to_data_url
from agentic_refine.core.models import Artifact, ArtifactKind, Dimensions
from agentic_refine.errors import TransportError

logger = logging.getLogger(__name__)


class MediaClient:
    """Client for image and video generation endpoints."""

    def __init__(self, base_url: str = None, api_key: str = None,
                 kind: ArtifactKind = ArtifactKind.IMAGE,
                 model: str = DEFAULT_GENERATION_MODEL,
                 timeout: int = MEDIA_DEFAULT_TIMEOUT,
                 video_resolution: str = VIDEO_DEFAULT_RESOLUTION):
        self.base_url = (base_url or MEDIA_DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key or os.environ.get(API_KEY_ENV)
        self.kind = ArtifactKind(kind)
        self.model = model
        self.timeout = timeout
        self.video_resolution = video_resolution

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def generate(self, prompt: str, reference_artifacts: Optional[Sequence[Artifact]] = None,
                 dimensions: Optional[Dimensions] = None, model: Optional[str] = None) -> Artifact:
        """Create (no references) or edit (with references) an artifact."""
        model = model or self.model
        references = list(reference_artifacts or [])

        if self.kind == ArtifactKind.VIDEO:
            if not references:
                raise ValueError("Video generation needs a reference image")
            endpoint = "/videos/generations"
            payload = {
                "model": model,
                "prompt": prompt,
                "image": artifact_to_url(references[0]),
                "resolution": self.video_resolution,
            }
        elif references:
            endpoint = "/images/edits"
            payload = {
                "model": model,
                "prompt": prompt,
                "image": [artifact_to_url(a) for a in references],
                "response_format": "b64_json",
            }
        else:
            endpoint = "/images/generations"
            payload = {"model": model, "prompt": prompt, "n": 1, "response_format": "b64_json"}

        if dimensions and self.kind == ArtifactKind.IMAGE:
            payload["size"] = f"{dimensions.width}x{dimensions.height}"

        logger.info(f"Requesting {self.kind.value} from {model} ({endpoint})...")
        try:
            response = requests.post(f"{self.base_url}{endpoint}", json=payload,
                                     headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            detail = ""
            if getattr(e, "response", None) is not None:
                detail = f": {e.response.text[:300]}"
            raise TransportError(f"{self.kind.value.capitalize()} generation failed: {e}{detail}") from e

        artifact = self._artifact_from_response(response)
        logger.info(f"  Received {self.kind.value} ({len(artifact.uri)} chars)")
        return artifact

    def _artifact_from_response(self, response: requests.Response) -> Artifact:
        content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip()
        if content_type.startswith(("image/", "video/")):
            return Artifact(uri=bytes_to_data_url(response.content, content_type),
                            kind=self.kind, mime_type=content_type)

        try:
            result = response.json()
        except ValueError as e:
            raise TransportError(f"Unexpected generation response ({content_type or 'no content type'})") from e

        entries: List[Dict] = []
        if isinstance(result, dict):
            data = result.get("data")
            if isinstance(data, list):
                entries = list(data)
            elif isinstance(data, dict):
                entries = [data]
            entries.append(result)

        default_mime = "video/mp4" if self.kind == ArtifactKind.VIDEO else "image/png"
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            b64 = entry.get("b64_json") or entry.get("b64")
            if b64:
                return Artifact(uri=f"data:{default_mime};base64,{b64}", kind=self.kind, mime_type=default_mime)
            url = entry.get("url") or entry.get("video_url") or entry.get("image_url")
            if url:
                return Artifact(uri=str(url), kind=self.kind)

        raise TransportError(f"No {self.kind.value} found in generation response")

    def test_connection(self) -> bool:
        """Test if the generation service is reachable."""
        try:
            response = requests.get(f"{self.base_url}/models", headers=self._headers(), timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False
