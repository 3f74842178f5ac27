"""
Tests for ImageEditService.
"""
from unittest.mock import AsyncMock

import pytest

from conftest import image_response, text_response
from core.exceptions import EditImagePartMissingError, FormatError
from services.image_codec import parse_transmittable_from_reference
from services.image_edit_service import ImageEditService


class TestEditImage:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sends_image_and_instruction_verbatim(self, test_settings, sample_data_uri):
        client = AsyncMock(generate_content=AsyncMock(return_value=image_response(300, 200)))
        service = ImageEditService(client, test_settings)

        result = await service.edit_image(sample_data_uri, "make the sofa blue")

        assert result.startswith("data:image/jpeg;base64,")
        call = client.generate_content.call_args
        assert call.args[0] == test_settings.image_model
        image, instruction = call.args[1]
        assert image == parse_transmittable_from_reference(sample_data_uri)
        assert instruction == "make the sofa blue"
        assert call.kwargs["response_modalities"] == ["IMAGE"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_model_image_without_cropping(self, test_settings, sample_data_uri):
        edited = image_response(300, 200)
        client = AsyncMock(generate_content=AsyncMock(return_value=edited))

        result = await ImageEditService(client, test_settings).edit_image(sample_data_uri, "add plants")

        expected = edited.first_inline_image()
        assert result == f"data:{expected.mime_type};base64,{expected.payload}"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_text_only_response_raises(self, test_settings, sample_data_uri):
        client = AsyncMock(generate_content=AsyncMock(return_value=text_response("Sorry, I can't.")))

        with pytest.raises(EditImagePartMissingError) as exc_info:
            await ImageEditService(client, test_settings).edit_image(sample_data_uri, "add plants")
        assert exc_info.value.message == "Failed to generate edited image."

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_reference_raises_before_calling(self, test_settings):
        client = AsyncMock()

        with pytest.raises(FormatError):
            await ImageEditService(client, test_settings).edit_image("not-a-data-uri", "add plants")
        client.generate_content.assert_not_awaited()
