"""
Tests for the google-genai adapter.

The google.genai.Client is replaced with a MagicMock; responses are built from
SimpleNamespace objects with the same attribute shape as the SDK's.
"""
import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from google.genai import errors as genai_errors
from google.genai import types

from conftest import make_image_bytes
from core.exceptions import RemoteGenerationError
from services.genai_client import GenAIClient, GenerationResponse, ResponsePart
from services.grounding import GroundingChunk
from services.image_codec import TransmittableImage
from services.staging_models import CoordinatesLocation


@pytest.fixture
def sdk_client():
    return MagicMock()


@pytest.fixture
def genai_client(sdk_client):
    return GenAIClient(client=sdk_client)


class TestConstruction:
    @pytest.mark.unit
    def test_requires_key_or_client(self):
        with pytest.raises(ValueError):
            GenAIClient()


class TestBuildConfig:
    """Tests for request config assembly."""

    @pytest.mark.unit
    def test_plain_config_has_no_tools(self):
        config = GenAIClient._build_config(None, ["IMAGE"], False, None, None)
        assert config.response_modalities == ["IMAGE"]
        assert not config.tools
        assert config.tool_config is None

    @pytest.mark.unit
    def test_maps_grounding_without_coordinates(self):
        config = GenAIClient._build_config("system", None, True, None, 0.7)
        assert config.system_instruction == "system"
        assert config.temperature == 0.7
        assert config.tools[0].google_maps is not None
        assert config.tool_config is None

    @pytest.mark.unit
    def test_maps_grounding_with_coordinates(self):
        coordinates = CoordinatesLocation(latitude=30.2672, longitude=-97.7431)
        config = GenAIClient._build_config(None, None, True, coordinates, None)
        lat_lng = config.tool_config.retrieval_config.lat_lng
        assert lat_lng.latitude == pytest.approx(30.2672)
        assert lat_lng.longitude == pytest.approx(-97.7431)


class TestResponseConversion:
    """Tests for converting SDK responses into GenerationResponse."""

    @pytest.mark.unit
    def test_text_and_grounding_chunks(self, raw_genai_response):
        raw = raw_genai_response(
            parts=[SimpleNamespace(text='{"designs": ', inline_data=None), SimpleNamespace(text="[]}", inline_data=None)],
            chunks=[
                SimpleNamespace(maps=SimpleNamespace(title="Store", uri="https://maps/1", text="Austin"), web=None),
                SimpleNamespace(maps=None, web=SimpleNamespace(title="Blog", uri="https://blog")),
                SimpleNamespace(maps=None, web=None),
            ],
        )
        response = GenAIClient._to_generation_response(raw)
        assert response.text == '{"designs": []}'
        assert response.grounding_chunks == [
            GroundingChunk(title="Store", uri="https://maps/1", subtitle="Austin"),
            GroundingChunk(title="Blog", uri="https://blog", subtitle=None),
        ]

    @pytest.mark.unit
    def test_raw_image_bytes_are_base64_encoded(self, raw_genai_response):
        jpeg = make_image_bytes(8, 8)
        raw = raw_genai_response(
            parts=[SimpleNamespace(text=None, inline_data=SimpleNamespace(data=jpeg, mime_type="image/jpeg"))]
        )
        image = GenAIClient._to_generation_response(raw).first_inline_image()
        assert image.mime_type == "image/jpeg"
        assert image.to_bytes() == jpeg

    @pytest.mark.unit
    def test_already_encoded_bytes_are_kept(self, raw_genai_response):
        png = make_image_bytes(8, 8, image_format="PNG")
        encoded = base64.b64encode(png)
        raw = raw_genai_response(
            parts=[SimpleNamespace(text=None, inline_data=SimpleNamespace(data=encoded, mime_type="image/png"))]
        )
        image = GenAIClient._to_generation_response(raw).first_inline_image()
        assert image.to_bytes() == png

    @pytest.mark.unit
    def test_no_candidates(self):
        response = GenAIClient._to_generation_response(SimpleNamespace(candidates=[]))
        assert response.parts == []
        assert response.first_inline_image() is None

    @pytest.mark.unit
    def test_first_inline_image_skips_text(self):
        image = TransmittableImage("image/png", "QUJD")
        response = GenerationResponse(parts=[ResponsePart(text="here you go"), ResponsePart(inline_image=image)])
        assert response.first_inline_image() == image
        assert response.text == "here you go"


class TestGenerateContent:
    """Tests for the async generate_content call."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sends_parts_in_order(self, genai_client, sdk_client, raw_genai_response):
        sdk_client.models.generate_content.return_value = raw_genai_response(
            parts=[SimpleNamespace(text="ok", inline_data=None)]
        )
        image = TransmittableImage("image/jpeg", base64.b64encode(b"\xff\xd8\xffjpeg").decode())

        response = await genai_client.generate_content("gemini-test", [image, "describe this"], temperature=0.2)

        assert response.text == "ok"
        kwargs = sdk_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        first, second = kwargs["contents"]
        assert isinstance(first, types.Part)
        assert first.inline_data.data == b"\xff\xd8\xffjpeg"
        assert first.inline_data.mime_type == "image/jpeg"
        assert second.text == "describe this"
        assert kwargs["config"].temperature == 0.2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_api_error_becomes_remote_generation_error(self, genai_client, sdk_client):
        sdk_client.models.generate_content.side_effect = genai_errors.APIError(
            503, {"error": {"code": 503, "message": "The model is overloaded", "status": "UNAVAILABLE"}}
        )
        with pytest.raises(RemoteGenerationError) as exc_info:
            await genai_client.generate_content("gemini-test", ["hello"])
        assert "503" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error_becomes_remote_generation_error(self, genai_client, sdk_client):
        sdk_client.models.generate_content.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(RemoteGenerationError) as exc_info:
            await genai_client.generate_content("gemini-test", ["hello"])
        assert "connection refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
