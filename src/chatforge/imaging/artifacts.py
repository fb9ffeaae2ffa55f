"""Locating the generated image in a completed job's output."""

import base64
import binascii
from dataclasses import dataclass
from typing import Any

from ..errors import ArtifactNotFound


@dataclass(frozen=True)
class Artifact:
    """A generated image, either inline or by reference.

    Exactly one of ``data`` and ``url`` is set.
    """

    data: bytes | None = None
    url: str | None = None


def extract_artifact(output: Any) -> Artifact:
    """Find the image in a job output.

    Shapes are tried in a fixed order: ``images[0].data``,
    ``images[0].image``, ``images[0]`` as a string, ``image``, then the
    whole output as a string. The first match wins.

    Raises:
        ArtifactNotFound: If no shape matches or the inline data is invalid.
    """
    for candidate in _candidates(output):
        if isinstance(candidate, str) and candidate.strip():
            return _from_string(candidate.strip())
    raise ArtifactNotFound(f"Could not find an image in job output: {_describe(output)}")


def decode_base64_image(value: str) -> bytes:
    """Decode inline image data, with or without a ``data:`` URI prefix."""
    if value.startswith("data:"):
        _, _, value = value.partition(",")
    value = "".join(value.split())
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ArtifactNotFound(f"Image data is not valid base64: {e}") from e
    if not data:
        raise ArtifactNotFound("Image data is empty")
    return data


def _candidates(output: Any):
    if isinstance(output, dict):
        images = output.get("images")
        if isinstance(images, list) and images:
            first = images[0]
            if isinstance(first, dict):
                yield first.get("data")
                yield first.get("image")
            else:
                yield first
        yield output.get("image")
    else:
        yield output


def _from_string(value: str) -> Artifact:
    if value.startswith("http"):
        return Artifact(url=value)
    return Artifact(data=decode_base64_image(value))


def _describe(output: Any) -> str:
    if isinstance(output, dict):
        return f"keys={sorted(output)}"
    return type(output).__name__
