"""Conversion between data URLs and named image artifacts."""
from __future__ import annotations

import base64
import binascii
import re

from src.domain.entities.artifact import ImageArtifact
from src.domain.errors import MalformedPayload

_MIME_PATTERN = re.compile(r":(.*?);")


def to_artifact(data_url: str, name: str) -> ImageArtifact:
    header, sep, body = data_url.partition(",")
    if not sep:
        raise MalformedPayload("Invalid data URL")
    match = _MIME_PATTERN.search(header)
    if not match or not match.group(1):
        raise MalformedPayload("Could not parse MIME type from data URL")
    try:
        data = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayload(f"Invalid base64 image body: {exc}") from exc
    return ImageArtifact(name=name, mime_type=match.group(1), data=data)


def to_data_url(artifact: ImageArtifact) -> str:
    encoded = base64.b64encode(artifact.data).decode("ascii")
    return f"data:{artifact.mime_type};base64,{encoded}"


def bytes_to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
