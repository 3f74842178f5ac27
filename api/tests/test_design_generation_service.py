"""
Tests for DesignGenerationService.

The GenAI client is an AsyncMock; planning calls get a text response and
image-model calls get a square JPEG, so the full letterbox -> plan ->
synthesize -> crop flow runs without the network.
"""
import asyncio
import base64
import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from conftest import image_response, plans_json, text_response
from core.exceptions import ImagePartMissingError, PlanParseError, RemoteGenerationError
from services.design_generation_service import DesignGenerationService
from services.genai_client import GenerationResponse, ResponsePart
from services.grounding import GroundingChunk, GroundingReference
from services.staging_models import CoordinatesLocation, QueryLocation


def _decode_data_uri(uri: str) -> Image.Image:
    header, payload = uri.split(",", 1)
    assert header == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(payload)))


def _routing_client(test_settings, planning_response, image_responses=None):
    """AsyncMock that answers by model: planning text, then images in call order."""
    images = list(image_responses or [])

    async def _generate(model, parts, **kwargs):
        if model == test_settings.planning_model:
            return planning_response
        return images.pop(0) if images else image_response()

    return AsyncMock(generate_content=AsyncMock(side_effect=_generate))


class TestConstruction:
    @pytest.mark.unit
    def test_rejects_unsupported_design_count(self, test_settings):
        test_settings.design_count = 3
        with pytest.raises(ValueError):
            DesignGenerationService(AsyncMock(), test_settings)


class TestGenerateDesigns:
    """End-to-end tests of generate_designs with a mocked client."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_two_designs_with_query_location(self, test_settings, landscape_upload):
        chunks = [
            GroundingChunk(title="Austin Furniture Depot", uri="https://maps/1", subtitle="Austin, TX"),
            GroundingChunk(title="Duplicate", uri="https://maps/1"),
            GroundingChunk(title=None, uri="https://maps/2"),
        ]
        client = _routing_client(test_settings, text_response(plans_json(["Coastal", "Industrial"]), chunks))
        service = DesignGenerationService(client, test_settings)

        outcome = await service.generate_designs(landscape_upload, QueryLocation("Austin, TX"))

        assert [design.design_title for design in outcome.designs] == ["Coastal", "Industrial"]
        assert outcome.designs[0].design_description == "Coastal description"
        for design in outcome.designs:
            with _decode_data_uri(design.redesigned_image_url) as img:
                assert img.size == (1024, 576)
        assert outcome.grounding_references == [
            GroundingReference(title="Austin Furniture Depot", uri="https://maps/1", subtitle="Austin, TX")
        ]

        planning_call = client.generate_content.call_args_list[0]
        assert planning_call.args[0] == test_settings.planning_model
        square, *prompts = planning_call.args[1]
        assert square.mime_type == "image/jpeg"
        with Image.open(io.BytesIO(square.to_bytes())) as img:
            assert img.size == (1024, 1024)
        assert any("Austin, TX" in prompt for prompt in prompts)
        assert planning_call.kwargs["use_maps_grounding"] is True
        assert planning_call.kwargs["coordinates"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_synthesis_calls_are_image_only(self, test_settings, landscape_upload):
        client = _routing_client(test_settings, text_response(plans_json(["A", "B"])))
        service = DesignGenerationService(client, test_settings)

        await service.generate_designs(landscape_upload)

        synthesis_calls = client.generate_content.call_args_list[1:]
        assert len(synthesis_calls) == 2
        for call, title in zip(synthesis_calls, ["A", "B"]):
            assert call.args[0] == test_settings.image_model
            assert call.kwargs["response_modalities"] == ["IMAGE"]
            assert f"'{title}' style" in call.args[1][1]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_coordinates_are_passed_to_planning(self, test_settings, landscape_upload):
        client = _routing_client(test_settings, text_response(plans_json(["A", "B"])))
        location = CoordinatesLocation(latitude=30.27, longitude=-97.74)

        await DesignGenerationService(client, test_settings).generate_designs(landscape_upload, location)

        assert client.generate_content.call_args_list[0].kwargs["coordinates"] == location

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_square_synthesis_is_still_cropped(self, test_settings, landscape_upload):
        client = _routing_client(
            test_settings,
            text_response(plans_json(["A", "B"])),
            [image_response(512, 512), image_response(1024, 1024)],
        )
        outcome = await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)

        with _decode_data_uri(outcome.designs[0].redesigned_image_url) as img:
            assert img.size == (512, 288)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_design_configuration(self, test_settings, landscape_upload):
        test_settings.design_count = 1
        client = _routing_client(test_settings, text_response(plans_json(["Solo"])))

        outcome = await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)

        assert [design.design_title for design in outcome.designs] == ["Solo"]
        assert client.generate_content.await_count == 2


class TestGenerationFailures:
    """Failures abort the whole batch."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_wrong_plan_count_raises_before_synthesis(self, test_settings, landscape_upload):
        client = _routing_client(test_settings, text_response(plans_json(["A", "B", "C"])))

        with pytest.raises(PlanParseError):
            await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)
        assert client.generate_content.await_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_image_part_fails_batch(self, test_settings, landscape_upload):
        text_only = GenerationResponse(parts=[ResponsePart(text="I can't draw that")])
        client = _routing_client(
            test_settings, text_response(plans_json(["A", "B"])), [image_response(), text_only]
        )

        with pytest.raises(ImagePartMissingError) as exc_info:
            await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)
        assert exc_info.value.design_title == "B"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remote_error_propagates(self, test_settings, landscape_upload):
        client = AsyncMock(generate_content=AsyncMock(side_effect=RemoteGenerationError("quota exceeded")))

        with pytest.raises(RemoteGenerationError):
            await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)


class TestConcurrency:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_synthesis_calls_run_concurrently(self, test_settings, landscape_upload):
        """Both synthesis calls must be in flight before either completes."""
        in_flight = 0
        both_started = asyncio.Event()

        async def _generate(model, parts, **kwargs):
            nonlocal in_flight
            if model == test_settings.planning_model:
                return text_response(plans_json(["A", "B"]))
            in_flight += 1
            if in_flight == 2:
                both_started.set()
            # A sequential implementation would time out here on the first call
            await asyncio.wait_for(both_started.wait(), timeout=2)
            return image_response()

        client = AsyncMock(generate_content=AsyncMock(side_effect=_generate))
        outcome = await DesignGenerationService(client, test_settings).generate_designs(landscape_upload)

        assert len(outcome.designs) == 2
