"""
Image document handler.

Image content is a base64-encoded image. Providers without image generation
raise CapabilityUnsupported, which the base handler turns into a single
error delta and explanatory content instead of a failure.
"""

import logging

from aichatbot.artifacts.base import DocumentHandler, DocumentSnapshot
from aichatbot.exceptions import CapabilityUnsupported
from aichatbot.models.db import DocumentKind
from aichatbot.streaming.deltas import Delta, DeltaSink, DeltaType

logger = logging.getLogger(__name__)


class ImageDocumentHandler(DocumentHandler):
    kind = DocumentKind.IMAGE
    delta_types = frozenset({DeltaType.IMAGE})

    async def _generate(self, prompt: str) -> str:
        model = self.model
        if self.models.image_model_id is None or not model.supports_image_generation:
            raise CapabilityUnsupported(
                "Image generation", model.provider.provider_name.capitalize()
            )
        logger.info(f"Generating image with {self.models.image_model_id}")
        return await model.provider.generate_image(self.models.image_model_id, prompt)

    async def on_create_document(self, *, title: str, sink: DeltaSink) -> str:
        image = await self._generate(title)
        sink.write(Delta(DeltaType.IMAGE, image))
        return image

    async def on_update_document(
        self, *, document: DocumentSnapshot, description: str, sink: DeltaSink
    ) -> str:
        image = await self._generate(description)
        sink.write(Delta(DeltaType.IMAGE, image))
        return image
