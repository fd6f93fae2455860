"""Composition root: builds every service from Settings and owns their lifecycle."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

import httpx
import structlog

from restyle.core.config import Settings, configure_logging
from restyle.core.database import setup_db_engine
from restyle.models.design import DesignRecord
from restyle.repositories.image_blob import ImageBlobStore
from restyle.services.change_feed import ChangeFeed, SnapshotCallback, Subscription
from restyle.services.design_store import DesignStore
from restyle.services.generation.coze_client import CozeWorkflowClient
from restyle.services.pipeline import GenerationPipeline
from restyle.services.upload.cloudinary_client import CloudinaryUploader
from restyle.workers.design_jobs import DesignJobOrchestrator, FailureCallback

logger = structlog.get_logger(__name__)


class DesignService:
    """Caller-facing API: submit jobs, read designs, delete them, watch for changes."""

    def __init__(self, store: DesignStore, orchestrator: DesignJobOrchestrator):
        self.store = store
        self.orchestrator = orchestrator

    def submit(self, image: bytes, style_name: str, prompt: str) -> UUID:
        return self.orchestrator.submit(image, style_name, prompt)

    def submit_style(self, image: bytes, style_id: str, prompt: Optional[str] = None) -> UUID:
        return self.orchestrator.submit_style(image, style_id, prompt)

    def list(self) -> list[DesignRecord]:
        return self.store.list()

    def get(self, design_id: UUID) -> Optional[DesignRecord]:
        return self.store.get(design_id)

    def delete(self, design_id: UUID) -> bool:
        return self.store.delete(design_id)

    def subscribe(self, callback: Optional[SnapshotCallback] = None) -> Subscription:
        """Subscribe to full design-list snapshots.

        With a callback, snapshots are pushed to it from a delivery task.
        Without one, iterate the returned Subscription.
        """
        if callback is None:
            return self.store.subscribe()
        return self.store.subscribe_callback(callback)

    async def wait_for_jobs(self) -> None:
        await self.orchestrator.wait_for_jobs()


def build_store(settings: Settings) -> DesignStore:
    """Create the design store over the configured database and blob directory."""
    engine = setup_db_engine(settings.resolved_database_url)
    return DesignStore(engine, ImageBlobStore(settings.blob_dir), ChangeFeed())


@asynccontextmanager
async def open_design_service(
    settings: Optional[Settings] = None,
    on_failure: Optional[FailureCallback] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[DesignService]:
    """Build the service graph, recover interrupted designs, and tear down on exit.

    Handles startup and shutdown tasks:
    - Startup: configure logging, open store, fail designs left processing by a
      previous process, create the shared HTTP client
    - Shutdown: cancel in-flight jobs, close the change feed and HTTP client

    Example:
        async with open_design_service(on_failure=show_alert) as service:
            design_id = service.submit_style(photo_bytes, "modern")
            await service.wait_for_jobs()
    """
    settings = settings or Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    store = build_store(settings)
    recovered = store.recover_interrupted()

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()

    uploader = CloudinaryUploader(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
        max_dimension=settings.max_upload_dimension,
        jpeg_quality=settings.upload_jpeg_quality,
        timeout=settings.upload_timeout_seconds,
        http_client=client,
    )
    generator = CozeWorkflowClient(
        api_token=settings.coze_api_token,
        workflow_id=settings.coze_workflow_id,
        base_url=settings.coze_base_url,
        timeout=settings.generation_timeout_seconds,
        download_timeout=settings.download_timeout_seconds,
        http_client=client,
    )
    orchestrator = DesignJobOrchestrator(
        store=store,
        pipeline=GenerationPipeline(uploader, generator),
        failure_policy=settings.failed_design_policy,
        failure_grace_seconds=settings.failed_design_grace_seconds,
        on_failure=on_failure,
    )

    logger.info(
        "application.startup",
        data_dir=str(settings.data_dir),
        failure_policy=settings.failed_design_policy.value,
        recovered_designs=recovered,
    )

    try:
        yield DesignService(store, orchestrator)
    finally:
        await orchestrator.shutdown()
        store.close()
        if owns_client:
            await client.aclose()
        logger.info("application.shutdown")
