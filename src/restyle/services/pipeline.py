"""Generation pipeline: upload the photo, then run the design workflow on it."""

import time
from typing import Optional
from uuid import UUID

import structlog

from restyle.services.generation.coze_client import CozeWorkflowClient
from restyle.services.generation.prompt_validator import validate_prompt
from restyle.services.upload.cloudinary_client import CloudinaryUploader

logger = structlog.get_logger(__name__)


class GenerationPipeline:
    """Composes CloudinaryUploader and CozeWorkflowClient into one async operation.

    The two stages run strictly in sequence because the workflow needs the
    uploaded URL. Errors from either stage propagate unchanged; nothing is
    retried here.
    """

    def __init__(self, uploader: CloudinaryUploader, generator: CozeWorkflowClient):
        self.uploader = uploader
        self.generator = generator

    async def run(self, image: bytes, prompt: str, design_id: Optional[UUID] = None) -> bytes:
        """Generate a restyled image from a room photo.

        Args:
            image: Encoded room photo
            prompt: Style instruction
            design_id: Record id, bound to log events for correlation

        Returns:
            Encoded bytes of the generated design

        Raises:
            ValueError: Prompt failed validation
            ServiceError: Any upload or generation failure (see restyle.services.exceptions)
        """
        log = logger.bind(design_id=str(design_id)) if design_id else logger
        prompt = validate_prompt(prompt)
        start_time = time.time()

        # Step 1: Upload
        log.info("pipeline.upload.started", image_bytes=len(image))
        image_url = await self.uploader.upload(image)

        # Step 2: Generate + download
        log.info("pipeline.generation.started", image_url=image_url)
        result = await self.generator.generate(image_url, prompt)

        log.info(
            "pipeline.succeeded",
            result_bytes=len(result),
            duration_seconds=time.time() - start_time,
        )
        return result
