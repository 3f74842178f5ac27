"""
Pytest configuration and fixtures for staging API tests.
"""
import base64
import io
import json
from types import SimpleNamespace
from typing import List, Optional

import pytest
from PIL import Image

from core.config import Settings
from services.genai_client import GenerationResponse, ResponsePart
from services.grounding import GroundingChunk
from services.image_codec import TransmittableImage
from services.staging_models import UploadedImage


def make_image_bytes(width: int, height: int, color="beige", image_format: str = "JPEG") -> bytes:
    """Encode a solid-color image of the given size."""
    img = Image.new("RGB", (width, height), color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=image_format)
    return buffer.getvalue()


def make_data_uri(width: int, height: int, color="beige") -> str:
    content = make_image_bytes(width, height, color)
    return f"data:image/jpeg;base64,{base64.b64encode(content).decode()}"


def text_response(text: str, chunks: Optional[List[GroundingChunk]] = None) -> GenerationResponse:
    """Planning-style response with a single text part."""
    return GenerationResponse(parts=[ResponsePart(text=text)], grounding_chunks=chunks or [])


def image_response(width: int = 1024, height: int = 1024, color="navy") -> GenerationResponse:
    """Synthesis-style response with one inline JPEG."""
    payload = base64.b64encode(make_image_bytes(width, height, color)).decode()
    return GenerationResponse(parts=[ResponsePart(inline_image=TransmittableImage("image/jpeg", payload))])


def plans_json(titles: List[str]) -> str:
    designs = [{"title": title, "description": f"{title} description"} for title in titles]
    return "Here are the concepts:\n```json\n" + json.dumps({"designs": designs}) + "\n```"


@pytest.fixture
def test_settings():
    """Settings independent of the environment."""
    return Settings(
        google_ai_api_key="test-key",
        design_count=2,
        plan_format="json",
        letterbox_size=1024,
        use_maps_grounding=True,
    )


@pytest.fixture
def landscape_bytes():
    """A 1600x900 (16:9) room photo."""
    return make_image_bytes(1600, 900, color="lightgray")


@pytest.fixture
def portrait_bytes():
    """A 900x1600 (9:16) room photo."""
    return make_image_bytes(900, 1600, color="lightgray")


@pytest.fixture
def landscape_upload(landscape_bytes):
    return UploadedImage.from_bytes(landscape_bytes, "image/jpeg")


@pytest.fixture
def sample_data_uri():
    return make_data_uri(200, 150)


@pytest.fixture
def raw_genai_response():
    """Shape of a google-genai response, as plain attribute objects."""

    def _build(parts=None, chunks=None):
        return SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    content=SimpleNamespace(parts=parts or []),
                    grounding_metadata=SimpleNamespace(grounding_chunks=chunks or []),
                )
            ]
        )

    return _build
