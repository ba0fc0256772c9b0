"""
Tests for text-to-image and audio-to-text rules.

Image downloads go through httpx.MockTransport; images are real PNGs
made with Pillow.
"""

from io import BytesIO

import httpx
import pytest
from PIL import Image

from ai_interpolator.core.exceptions import StoreError
from ai_interpolator.models import FieldDefinition
from ai_interpolator.rules import AudioToTextRule, TextToImageRule
from ai_interpolator.services import LocalFileStorage


def png_bytes(size=(4, 3)):
    buffer = BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def image_field():
    return FieldDefinition(
        name="image",
        type="image",
        target_type="file",
        cardinality=-1,
        settings={"file_directory": "images", "uri_scheme": "public"},
    )


@pytest.fixture
def downloads():
    """Mock HTTP client serving PNGs; "/missing" answers 404."""
    requested = []

    def handler(request):
        requested.append(str(request.url))
        if request.url.path == "/missing":
            return httpx.Response(404)
        if request.url.path == "/garbage":
            return httpx.Response(200, content=b"not an image")
        return httpx.Response(200, content=png_bytes())

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.requested = requested
    return client


@pytest.fixture
def image_rule(mock_client, resolver, file_storage, downloads):
    return TextToImageRule(mock_client, resolver, file_storage=file_storage, http_client=downloads)


class TestTextToImageGenerate:

    @pytest.mark.asyncio
    async def test_generates_amount_per_prompt(self, image_rule, mock_client, article, image_field, config_factory):
        config = config_factory(
            "image",
            image_rule.id,
            prompt="A picture of {{ context }}",
            extra={"image_generation_amount": "2", "file_name": "cms.png"},
        )

        values = await image_rule.generate(article, image_field, config)

        assert values == [
            {"filename": "cms.png", "url": "https://example.com/image.png"},
            {"filename": "cms.png", "url": "https://example.com/image.png"},
        ]
        prompt, params = mock_client.generate_structured.call_args[0][:2]
        assert prompt == "A picture of Drupal is a content management system."
        assert params["modality"] == "image"
        assert params["size"] == "1024x1024"

    def test_verify(self, image_rule, article, image_field):
        assert image_rule.verify_value(article, {"filename": "a.png", "url": "https://x.test/a.png"}, image_field)
        assert image_rule.verify_value(article, {"filename": "a.png", "binary": b"\x89PNG"}, image_field)
        assert not image_rule.verify_value(article, {"filename": "a.png", "url": "nope"}, image_field)
        assert not image_rule.verify_value(article, {"url": "https://x.test/a.png"}, image_field)


class TestTextToImageStore:
    """Tests for downloading and storing images."""

    @pytest.mark.asyncio
    async def test_stores_managed_files(self, image_rule, file_storage, downloads, article, image_field):
        values = [
            {"filename": "cat.png", "url": "https://img.test/1.png"},
            {"filename": "cat.png", "url": "https://img.test/2.png"},
        ]

        await image_rule.store_values(article, values, image_field)

        items = article.get("image")
        assert [item["width"] for item in items] == [4, 4]
        assert [item["height"] for item in items] == [3, 3]
        uris = [file_storage.load(item["target_id"]).uri for item in items]
        assert uris == ["public://images/cat.png", "public://images/cat_0.png"]
        assert len(downloads.requested) == 2

    @pytest.mark.asyncio
    async def test_binary_values_not_downloaded(self, image_rule, downloads, article, image_field):
        await image_rule.store_values(article, [{"filename": "b.png", "binary": png_bytes((2, 2))}], image_field)

        assert article.get_value("image", "width") == 2
        assert downloads.requested == []

    @pytest.mark.asyncio
    async def test_download_failure_leaves_field(self, image_rule, file_storage, article, image_field):
        article.set("image", [{"target_id": 99}])
        values = [
            {"filename": "ok.png", "url": "https://img.test/ok.png"},
            {"filename": "bad.png", "url": "https://img.test/missing"},
        ]

        with pytest.raises(StoreError):
            await image_rule.store_values(article, values, image_field)

        assert article.get("image") == [{"target_id": 99}]
        assert not file_storage.exists("public://images/ok.png")

    @pytest.mark.asyncio
    async def test_undecodable_image(self, image_rule, article, image_field):
        with pytest.raises(StoreError):
            await image_rule.store_values(
                article, [{"filename": "g.png", "url": "https://img.test/garbage"}], image_field
            )
        assert article.get("image") == []

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self, mock_client, resolver, tmp_path, downloads, article, image_field):
        class FailingSecondWrite(LocalFileStorage):
            def write_data(self, data, destination, mime_type=None):
                if self._next_fid >= 1:
                    raise StoreError("disk full")
                return super().write_data(data, destination, mime_type)

        storage = FailingSecondWrite(str(tmp_path / "files"))
        rule = TextToImageRule(mock_client, resolver, file_storage=storage, http_client=downloads)
        values = [
            {"filename": "a.png", "url": "https://img.test/a.png"},
            {"filename": "b.png", "url": "https://img.test/b.png"},
        ]

        with pytest.raises(StoreError):
            await rule.store_values(article, values, image_field)

        assert not storage.exists("public://images/a.png")
        assert storage.load(1) is None
        assert article.get("image") == []


class TestAudioToText:
    """Tests for transcription."""

    @pytest.fixture
    def audio_rule(self, mock_client, resolver, file_storage):
        return AudioToTextRule(mock_client, resolver, file_storage=file_storage)

    def _upload(self, file_storage, uri, data):
        path = file_storage.real_path(uri)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return file_storage.register(uri)

    @pytest.mark.asyncio
    async def test_transcribes_audio_items(self, audio_rule, mock_client, file_storage, article, config_factory):
        audio = self._upload(file_storage, "public://talk.mp3", b"ID3audio")
        notes = self._upload(file_storage, "public://notes.txt", b"text")
        article.set("audio", [{"target_id": audio.fid}, {"target_id": notes.fid}, {"target_id": 404}])
        mock_client.generate_structured.return_value = "  Hello world  "
        definition = FieldDefinition(name="transcript", type="string_long")

        values = await audio_rule.generate(article, definition, config_factory("transcript", audio_rule.id, base_field="audio"))

        assert values == ["Hello world"]
        assert mock_client.generate_structured.await_count == 1
        prompt, params, attachments = mock_client.generate_structured.call_args[0]
        assert prompt == ""
        assert params["modality"] == "transcription"
        assert attachments[0].filename == "talk.mp3"
        assert attachments[0].data == b"ID3audio"

    @pytest.mark.asyncio
    async def test_empty_transcription_skipped(self, audio_rule, mock_client, file_storage, article, config_factory):
        audio = self._upload(file_storage, "public://silence.mp3", b"ID3")
        article.set("audio", [{"target_id": audio.fid}])
        mock_client.generate_structured.return_value = "   "
        definition = FieldDefinition(name="transcript", type="string_long")

        values = await audio_rule.generate(article, definition, config_factory("transcript", audio_rule.id, base_field="audio"))

        assert values == []
