"""Artifact encoding helpers (base64 data URLs, dimension probing)."""

from __future__ import annotations

import base64
import io
import logging
import mimetypes
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from agentic_refine.core.constants import IMAGE_MAX_SIZE
from agentic_refine.core.models import Artifact, ArtifactKind, Dimensions

logger = logging.getLogger(__name__)


def image_to_base64(image_path: str, max_size: int = IMAGE_MAX_SIZE) -> str:
    """Convert image to base64 PNG, resizing so the long edge fits max_size."""
    img = Image.open(image_path).convert('RGB')
    if max(img.size) > max_size:
        ratio = max_size / max(img.size)
        new_size = (int(img.size[0] * ratio), int(img.size[1] * ratio))
        img = img.resize(new_size, Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return base64.b64encode(buffer.getvalue()).decode('utf-8')


def bytes_to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"


def split_data_url(uri: str) -> Tuple[str, bytes]:
    """Return (mime_type, payload bytes) for a base64 data URL."""
    if not uri.startswith("data:") or "," not in uri:
        raise ValueError("Not a data URL")
    header, payload = uri[5:].split(",", 1)
    mime_type = header.split(";")[0] or "application/octet-stream"
    if ";base64" not in header:
        raise ValueError("Only base64 data URLs are supported")
    return mime_type, base64.b64decode(payload)


def artifact_to_url(artifact: Artifact, max_size: int = IMAGE_MAX_SIZE) -> str:
    """Produce something a model API accepts as an image/video URL.

    Remote and data URLs pass through; local files are inlined.
    """
    if artifact.is_data_url or artifact.is_remote:
        return artifact.uri

    path = Path(artifact.uri)
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {artifact.uri}")

    if artifact.kind == ArtifactKind.IMAGE:
        return f"data:image/png;base64,{image_to_base64(str(path), max_size=max_size)}"

    mime_type = artifact.mime_type or mimetypes.guess_type(str(path))[0] or "video/mp4"
    return bytes_to_data_url(path.read_bytes(), mime_type)


def probe_dimensions(artifact: Artifact) -> Optional[Dimensions]:
    """Read pixel dimensions of a local or inline image; None when unknown."""
    if artifact.kind != ArtifactKind.IMAGE or artifact.is_remote:
        return None
    try:
        if artifact.is_data_url:
            _, data = split_data_url(artifact.uri)
            source = io.BytesIO(data)
        else:
            source = artifact.uri
        with Image.open(source) as img:
            width, height = img.size
    except (OSError, ValueError, UnidentifiedImageError) as e:
        logger.debug(f"Could not probe dimensions for artifact: {e}")
        return None
    return Dimensions(width=width, height=height)


def load_artifact(path: str, kind: ArtifactKind = ArtifactKind.IMAGE) -> Artifact:
    """Wrap a local file as an artifact."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Reference artifact not found: {path}")
    return Artifact(uri=str(file_path), kind=kind, mime_type=mimetypes.guess_type(str(file_path))[0])
