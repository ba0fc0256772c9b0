"""
Media rules: text to image and audio to text.
"""

import asyncio
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from ai_interpolator.core.exceptions import StoreError
from ai_interpolator.core.generation_client import (
    Attachment,
    MODALITY_IMAGE,
    MODALITY_TRANSCRIPTION,
)
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig
from ai_interpolator.rules.base import FieldRule
from ai_interpolator.rules.contact import is_valid_url
from ai_interpolator.services.storage import LocalFileStorage, ManagedFile
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_IMAGE_NAME = "ai_generated.jpg"
AUDIO_MIME_TYPES = ("audio/mpeg", "audio/aac", "audio/wav", "audio/x-wav", "audio/mp4")


class TextToImageRule(FieldRule):
    """
    Generates images from text and stores them as managed files.

    Every image is downloaded and decoded before anything is written, and
    files written for a failed batch are removed again, so the field is
    either fully set or left untouched.
    """

    id = "ai_interpolator_text_to_image"
    title = "Text To Image"
    field_rule = "image"
    target = "file"
    help_text = "This can generate images from text."
    placeholder_text = "{{ context }}, 50mm portrait photography, hard rim lighting photography-beta"

    def __init__(
        self,
        *args: Any,
        file_storage: LocalFileStorage,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.file_storage = file_storage
        self._http_client = http_client

    def tokens(self) -> Dict[str, str]:
        tokens = super().tokens()
        tokens.pop("max_amount", None)
        return tokens

    def output_instructions(self, field_definition: FieldDefinition, config: InterpolationConfig) -> str:
        return ""

    async def generate(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        request = self.build_request(entity, field_definition, config)
        params = dict(request.params)
        params["modality"] = MODALITY_IMAGE
        params.setdefault("size", self.resolver.get_config_value("image_size", config, entity, "1024x1024"))

        try:
            amount = max(1, int(self.resolver.get_config_value("image_generation_amount", config, entity, 1)))
        except (TypeError, ValueError):
            amount = 1
        filename = self.resolver.get_config_value("file_name", config, entity, DEFAULT_IMAGE_NAME) or DEFAULT_IMAGE_NAME

        images = []
        for prompt in request.prompts:
            for _ in range(amount):
                raw = await self.client.generate_structured(prompt, params)
                for url in self.normalizer.normalize(raw):
                    images.append({"filename": filename, "url": url})
        return images

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if not isinstance(value, dict) or not value.get("filename"):
            return False
        if isinstance(value.get("binary"), (bytes, bytearray)):
            return len(value["binary"]) > 0
        return is_valid_url(value.get("url"))

    # =========================================================================
    # STORE
    # =========================================================================

    async def _download(self, url: str) -> bytes:
        if self._http_client is not None:
            response = await self._http_client.get(url)
        else:
            async with httpx.AsyncClient(timeout=get_settings().file_download_timeout) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content

    async def _fetch(self, value: Dict[str, Any]) -> bytes:
        if isinstance(value.get("binary"), (bytes, bytearray)):
            return bytes(value["binary"])
        try:
            return await self._download(value["url"])
        except httpx.HTTPError as e:
            raise StoreError(f"Could not download generated image: {e}", details={"url": value.get("url")})

    @staticmethod
    def _dimensions(data: bytes) -> Tuple[int, int]:
        try:
            with Image.open(BytesIO(data)) as image:
                return image.size
        except (UnidentifiedImageError, OSError) as e:
            raise StoreError(f"Generated image could not be decoded: {e}")

    def destination(self, filename: str, field_definition: FieldDefinition) -> str:
        scheme = field_definition.get_setting("uri_scheme") or get_settings().file_default_scheme
        directory = (field_definition.get_setting("file_directory") or "").strip("/")
        path = f"{directory}/{filename}" if directory else filename
        return f"{scheme}://{path}"

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        payloads = await asyncio.gather(*(self._fetch(value) for value in values))
        dimensions = [self._dimensions(data) for data in payloads]

        written: List[ManagedFile] = []
        try:
            for value, data in zip(values, payloads):
                written.append(
                    self.file_storage.write_data(data, self.destination(value["filename"], field_definition))
                )
        except StoreError:
            for managed in written:
                self.file_storage.delete(managed)
            raise

        items = [
            {"target_id": managed.fid, "width": width, "height": height, "alt": ""}
            for managed, (width, height) in zip(written, dimensions)
        ]
        entity.set(field_definition.name, items)
        logger.info("Generated images stored", field_name=field_definition.name, count=len(items))
        return True


class AudioToTextRule(FieldRule):
    """Transcribes audio files from the source field."""

    id = "ai_interpolator_audio_to_string"
    title = "Audio To Text"
    field_rule = "string_long"
    needs_prompt = False
    advanced_mode = False
    allowed_inputs = ["file"]
    help_text = "This can transcribe audio files."
    placeholder_text = ""

    def __init__(self, *args: Any, file_storage: LocalFileStorage, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.file_storage = file_storage

    def tokens(self) -> Dict[str, str]:
        return {}

    async def generate(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        params = self.resolver.get_model_parameters(config, entity)
        params["modality"] = MODALITY_TRANSCRIPTION

        values = []
        for item in entity.get(config.base_field):
            managed = self.file_storage.load(item.get("target_id"))
            if managed is None or managed.mime_type not in AUDIO_MIME_TYPES:
                continue
            attachment = Attachment(
                filename=managed.filename,
                mime_type=managed.mime_type,
                data=self.file_storage.read(managed.uri),
            )
            text = await self.client.generate_structured("", params, [attachment])
            if text and text.strip():
                values.append(text.strip())
        return values

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return isinstance(value, str)
