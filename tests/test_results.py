"""
Tests for provider response reconciliation
"""

import base64
import os

import httpx
import pytest

from gpt_image_mcp.exceptions import ResponseShapeError
from gpt_image_mcp.results import (
    InlineImage,
    RemoteImage,
    TokenUsage,
    decode_inline_image,
    parse_image_item,
    reconcile_response,
)
from gpt_image_mcp.save_dirs import SaveTarget

from conftest import IMAGE_B64, IMAGE_BYTES


@pytest.fixture
def target(tmp_path):
    return SaveTarget(str(tmp_path), "img", "png")


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParseImageItem:
    """Test classification of response items"""

    def test_url_has_priority(self):
        item = parse_image_item({"url": "https://example.com/a.png", "b64_json": IMAGE_B64})
        assert item == RemoteImage("https://example.com/a.png")

    def test_b64_json_before_other_fields(self):
        item = parse_image_item({"b64_json": "AAA", "image": "BBB", "image_base64": "CCC"})
        assert item == InlineImage("b64_json", "AAA")

    def test_image_field(self):
        assert parse_image_item({"image": "BBB"}) == InlineImage("image", "BBB")

    def test_image_base64_field(self):
        assert parse_image_item({"image_base64": "CCC"}) == InlineImage("image_base64", "CCC")

    def test_empty_values_ignored(self):
        assert parse_image_item({"url": "", "image": "BBB"}) == InlineImage("image", "BBB")

    def test_unrecognized_item(self):
        with pytest.raises(ResponseShapeError) as exc_info:
            parse_image_item({"revised_prompt": "x"}, 2)
        assert "item 2" in exc_info.value.message
        assert "revised_prompt" in exc_info.value.message


class TestDecodeInlineImage:
    """Test base64 decoding"""

    def test_plain(self):
        assert decode_inline_image(IMAGE_B64) == IMAGE_BYTES

    def test_data_url_prefix(self):
        assert decode_inline_image(f"data:image/png;base64,{IMAGE_B64}") == IMAGE_BYTES

    def test_line_wrapped(self):
        wrapped = base64.encodebytes(b"x" * 200).decode()
        assert "\n" in wrapped
        assert decode_inline_image(wrapped) == b"x" * 200

    def test_invalid(self):
        with pytest.raises(ResponseShapeError):
            decode_inline_image("not base64 !!!")


class TestTokenUsage:
    """Test usage mapping"""

    def test_full_usage(self):
        usage = TokenUsage.from_raw({
            "total_tokens": 100,
            "input_tokens": 60,
            "output_tokens": 40,
            "input_tokens_details": {"text_tokens": 10, "image_tokens": 50},
        })
        assert usage == TokenUsage(100, 60, 40, 10, 50)

    def test_partial_usage(self):
        usage = TokenUsage.from_raw({"total_tokens": 7})
        assert usage.total_tokens == 7
        assert usage.input_tokens is None
        assert usage.image_tokens is None

    def test_missing_usage(self):
        assert TokenUsage.from_raw(None) is None


class TestReconcileResponse:
    """Test persisting response images"""

    @pytest.mark.asyncio
    async def test_single_inline_image(self, target, tmp_path):
        result = await reconcile_response({"data": [{"b64_json": IMAGE_B64}]}, target, 1)
        assert result.success
        assert result.saved_paths == (str(tmp_path / "img.png"),)
        assert (tmp_path / "img.png").read_bytes() == IMAGE_BYTES
        assert result.save_dir == str(tmp_path)

    @pytest.mark.asyncio
    async def test_multiple_images_numbered(self, target, tmp_path):
        second = base64.b64encode(b"second image").decode()
        raw = {"data": [{"b64_json": IMAGE_B64}, {"image": second}]}
        result = await reconcile_response(raw, target, 2)
        assert result.success
        assert result.saved_paths == (str(tmp_path / "img-1.png"), str(tmp_path / "img-2.png"))
        assert (tmp_path / "img-1.png").read_bytes() == IMAGE_BYTES
        assert (tmp_path / "img-2.png").read_bytes() == b"second image"

    @pytest.mark.asyncio
    async def test_usage_reported(self, target):
        raw = {"data": [{"b64_json": IMAGE_B64}], "usage": {"total_tokens": 5, "input_tokens": 2, "output_tokens": 3}}
        result = await reconcile_response(raw, target, 1)
        assert result.token_usage == TokenUsage(5, 2, 3)

    @pytest.mark.asyncio
    async def test_url_item_downloaded(self, target, tmp_path):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=b"remote image")

        async with mock_client(handler) as client:
            result = await reconcile_response(
                {"data": [{"url": "https://images.example.com/1.png"}]}, target, 1, client
            )
        assert result.success
        assert requested == ["https://images.example.com/1.png"]
        assert (tmp_path / "img.png").read_bytes() == b"remote image"

    @pytest.mark.asyncio
    async def test_failed_download(self, target, tmp_path):
        async with mock_client(lambda request: httpx.Response(404)) as client:
            result = await reconcile_response({"data": [{"url": "https://x.example/1.png"}]}, target, 1, client)
        assert not result.success
        assert "Failed to download" in result.error_message
        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_malformed_url(self, target, tmp_path):
        async with httpx.AsyncClient() as client:
            result = await reconcile_response({"data": [{"url": "http://[::bad"}]}, target, 1, client)
        assert not result.success
        assert "Failed to download" in result.error_message
        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_url_without_client(self, target):
        result = await reconcile_response({"data": [{"url": "https://x.example/1.png"}]}, target, 1)
        assert not result.success

    @pytest.mark.parametrize("raw", [{}, {"data": []}, {"data": None}, {"data": "abc"}])
    @pytest.mark.asyncio
    async def test_missing_or_empty_data(self, target, raw):
        result = await reconcile_response(raw, target, 1)
        assert not result.success
        assert result.error_message == "Unexpected API response structure. Missing or empty data array."
        assert result.saved_paths == ()

    @pytest.mark.asyncio
    async def test_decode_failure(self, target, tmp_path):
        result = await reconcile_response({"data": [{"b64_json": "%%%%"}]}, target, 1)
        assert not result.success
        assert "decode" in result.error_message
        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_empty_decoded_payload(self, target):
        result = await reconcile_response({"data": [{"b64_json": "===="}]}, target, 1)
        assert not result.success

    @pytest.mark.asyncio
    async def test_count_mismatch(self, target, tmp_path):
        result = await reconcile_response({"data": [{"b64_json": IMAGE_B64}]}, target, 2)
        assert not result.success
        assert "Expected 2" in result.error_message
        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_bad_second_item_writes_nothing(self, target, tmp_path):
        raw = {"data": [{"b64_json": IMAGE_B64}, {"unknown": "x"}]}
        result = await reconcile_response(raw, target, 2)
        assert not result.success
        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self, target, tmp_path):
        # a directory where the second file should go makes its write fail
        (tmp_path / "img-2.png").mkdir()
        raw = {"data": [{"b64_json": IMAGE_B64}, {"b64_json": IMAGE_B64}]}
        result = await reconcile_response(raw, target, 2)
        assert not result.success
        assert "Failed to write" in result.error_message
        assert not (tmp_path / "img-1.png").exists()
