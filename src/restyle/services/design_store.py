"""Durable design repository with an in-flight table and change feed.

Metadata lives in the design_metadata table, image bytes live in blob files.
Every read-modify-write of the table happens under one process-wide lock, so
two jobs settling at the same moment cannot lose each other's update. All
operations are synchronous and local; none of them touch the network.

The in-flight table holds processing records only. An entry is retired as
soon as its settled row is committed, so settled designs are always read
back from the table and blobs.

Corrupt rows (missing fields, unparseable id, missing or empty original
image) are never surfaced to callers. Reads skip them and the next mutating
call purges them from the table.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Iterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import Engine
from sqlmodel import Session

from restyle.models.design import DesignRecord, DesignStatus
from restyle.models.design_row import DesignRow
from restyle.repositories.design_row import DesignRowRepository
from restyle.repositories.image_blob import GENERATED, ORIGINAL, ImageBlobStore
from restyle.services.change_feed import ChangeFeed, Snapshot, SnapshotCallback, Subscription

logger = structlog.get_logger(__name__)

GENERATED_IMAGE_MISSING = "Generated image could not be loaded"
UNKNOWN_ERROR = "Unknown error"
INTERRUPTED_JOB = "Generation was interrupted before it completed"


class DesignStore:
    """CRUD over DesignRecord plus a broadcast feed of full snapshots.

    Example:
        store = DesignStore(engine, ImageBlobStore(settings.blob_dir))
        design_id = store.create_processing(record)
        store.complete_with_result(design_id, image_bytes)
        designs = store.list()
    """

    def __init__(self, engine: Engine, blobs: ImageBlobStore, feed: Optional[ChangeFeed] = None):
        """Initialize the store.

        Args:
            engine: Engine bound to a database with the design_metadata table
            blobs: Blob storage for original/generated images
            feed: Change feed to publish on (a private one is created if omitted)
        """
        self._engine = engine
        self.blobs = blobs
        self.feed = feed or ChangeFeed()
        self._lock = threading.RLock()
        self._in_flight: dict[UUID, DesignRecord] = {}

    @contextmanager
    def _rows(self) -> Iterator[DesignRowRepository]:
        """Session scope with automatic commit/rollback. Caller must hold the lock."""
        with Session(self._engine, expire_on_commit=False) as session:
            try:
                yield DesignRowRepository(session)
                session.commit()
            except Exception:
                session.rollback()
                raise

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_processing(self, record: DesignRecord) -> UUID:
        """Persist a new processing record and its original image.

        The record is visible to list()/get() as soon as this returns.

        Raises:
            ValueError: If the record is not processing, has no original image,
                or its id already exists
        """
        if record.status != DesignStatus.PROCESSING:
            raise ValueError(f"New designs must be processing, got {record.status.value}")
        if not record.original_image:
            raise ValueError("original_image cannot be empty")

        design_id = record.id
        with self._lock:
            original_path = None
            try:
                with self._rows() as rows:
                    if rows.get_by_design_id(str(design_id)) is not None:
                        raise ValueError(f"Design {design_id} already exists")

                    self._compact(rows)

                    original_path = self.blobs.write(ORIGINAL, design_id, record.original_image)
                    rows.add(
                        DesignRow(
                            design_id=str(design_id),
                            original_image_path=original_path,
                            style_name=record.style_name,
                            prompt=record.prompt,
                            created_at=record.created_at.timestamp(),
                            status=DesignStatus.PROCESSING.value,
                        )
                    )
            except Exception:
                # No row committed; drop the orphan blob
                if original_path is not None:
                    self.blobs.remove(original_path)
                raise

            self._in_flight[design_id] = replace(record)
            logger.info(
                "design.created",
                design_id=str(design_id),
                style_name=record.style_name,
                original_bytes=len(record.original_image),
            )
            self._publish()

        return design_id

    def complete_with_result(self, design_id: UUID, generated_image: bytes) -> bool:
        """Attach the generated image and mark the design completed.

        An unknown id (never created, or deleted while its job ran) or a row
        that already settled is logged and left untouched.

        Returns:
            True if the transition was applied

        Raises:
            ValueError: If generated_image is empty
        """
        if not generated_image:
            raise ValueError("generated_image cannot be empty")

        with self._lock:
            generated_path = None
            try:
                with self._rows() as rows:
                    row = rows.get_by_design_id(str(design_id))
                    if not self._can_settle(row, design_id, DesignStatus.COMPLETED):
                        return False

                    self._compact(rows)

                    generated_path = self.blobs.write(GENERATED, design_id, generated_image)
                    row.generated_image_path = generated_path  # type: ignore[union-attr]
                    row.status = DesignStatus.COMPLETED.value  # type: ignore[union-attr]
                    row.error_message = None  # type: ignore[union-attr]
                    rows.update(row)  # type: ignore[arg-type]
            except Exception:
                # Row is still processing; leave no generated blob behind
                if generated_path is not None:
                    self.blobs.remove(generated_path)
                raise

            self._in_flight.pop(design_id, None)
            logger.info(
                "design.completed",
                design_id=str(design_id),
                generated_bytes=len(generated_image),
            )
            self._publish()

        return True

    def complete_with_error(self, design_id: UUID, error_message: str) -> bool:
        """Mark the design failed with a user-facing message.

        Same lookup and no-op rules as complete_with_result().

        Returns:
            True if the transition was applied

        Raises:
            ValueError: If error_message is empty
        """
        if not error_message:
            raise ValueError("error_message cannot be empty")

        with self._lock:
            with self._rows() as rows:
                row = rows.get_by_design_id(str(design_id))
                if not self._can_settle(row, design_id, DesignStatus.FAILED):
                    return False

                self._compact(rows)

                row.status = DesignStatus.FAILED.value  # type: ignore[union-attr]
                row.error_message = error_message  # type: ignore[union-attr]
                rows.update(row)  # type: ignore[arg-type]

            self._in_flight.pop(design_id, None)
            logger.info("design.failed", design_id=str(design_id), error_message=error_message)
            self._publish()

        return True

    def delete(self, design_id: UUID) -> bool:
        """Remove a design, its metadata row and both image blobs.

        Deleting an unknown id changes nothing and does not raise. Deleting a
        design whose job is still running does not stop the job; its late
        settlement becomes a no-op.

        Returns:
            True if a design was deleted
        """
        with self._lock:
            with self._rows() as rows:
                row = rows.get_by_design_id(str(design_id))
                if row is None:
                    logger.warning("design.delete_unknown", design_id=str(design_id))
                    return False

                self._compact(rows)

                blob_paths = (row.original_image_path, row.generated_image_path)
                rows.remove(row)

            # Blob removal is best-effort once the row is gone
            for path in blob_paths:
                if path:
                    self.blobs.remove(path)

            self._in_flight.pop(design_id, None)
            logger.info("design.deleted", design_id=str(design_id))
            self._publish()

        return True

    def recover_interrupted(self) -> int:
        """Fail designs left processing by a previous process.

        Jobs do not survive a restart, so a processing row with no in-flight
        entry can never settle on its own. Call once at startup, before any
        job is submitted.

        Returns:
            Number of designs marked failed
        """
        with self._lock:
            with self._rows() as rows:
                self._compact(rows)
                stuck = [
                    row
                    for row in rows.list_all()
                    if row.status == DesignStatus.PROCESSING.value
                    and _parse_id(row.design_id) not in self._in_flight
                ]
                for row in stuck:
                    row.status = DesignStatus.FAILED.value
                    row.error_message = INTERRUPTED_JOB
                    rows.update(row)

            if stuck:
                logger.info("design.recovery", interrupted_designs_failed=len(stuck))
                self._publish()

        return len(stuck)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> list[DesignRecord]:
        """Every loadable design, newest first."""
        with self._lock:
            return self._snapshot()

    def get(self, design_id: UUID) -> Optional[DesignRecord]:
        """Look up one design: in-flight table first, then metadata + blobs."""
        with self._lock:
            in_flight = self._in_flight.get(design_id)
            if in_flight is not None:
                return replace(in_flight)

            with self._rows() as rows:
                row = rows.get_by_design_id(str(design_id))
            if row is None:
                return None
            return self._reconstruct(row)

    def subscribe(self) -> Subscription:
        """Subscribe to snapshots; the current snapshot is queued first."""
        with self._lock:
            return self.feed.subscribe(initial=self._snapshot())

    def subscribe_callback(self, callback: SnapshotCallback) -> Subscription:
        """Deliver snapshots to callback in order, starting with the current one."""
        with self._lock:
            return self.feed.subscribe_callback(callback, initial=self._snapshot())

    def close(self) -> None:
        self.feed.close()

    # ------------------------------------------------------------------
    # Internals (lock held)
    # ------------------------------------------------------------------

    def _can_settle(self, row: Optional[DesignRow], design_id: UUID, target: DesignStatus) -> bool:
        if row is None:
            logger.warning(
                "design.orphaned_job",
                design_id=str(design_id),
                target_status=target.value,
                reason="no metadata row for id",
            )
            return False
        if row.status != DesignStatus.PROCESSING.value:
            logger.warning(
                "design.transition_rejected",
                design_id=str(design_id),
                current_status=row.status,
                target_status=target.value,
            )
            return False
        return True

    def _publish(self) -> None:
        self.feed.publish(self._snapshot())

    def _snapshot(self) -> Snapshot:
        with self._rows() as rows:
            all_rows = rows.list_all()

        designs = []
        for row in all_rows:
            record = self._reconstruct(row)
            if record is not None:
                designs.append(record)

        return sorted(designs, key=lambda d: d.created_at, reverse=True)

    def _compact(self, rows: DesignRowRepository) -> None:
        corrupt = {}
        for row in rows.list_all():
            defect = self._row_defect(row)
            if defect is not None:
                corrupt[row.row_id] = defect

        if corrupt:
            removed = rows.remove_many(corrupt.keys())
            logger.warning(
                "design.metadata_compacted",
                removed_rows=removed,
                defects=sorted(set(corrupt.values())),
            )

    def _row_defect(self, row: DesignRow) -> Optional[str]:
        """Why a row cannot be loaded, or None if it looks sound."""
        if (
            row.design_id is None
            or row.original_image_path is None
            or row.style_name is None
            or row.prompt is None
            or row.created_at is None
        ):
            return "missing_fields"
        if _parse_id(row.design_id) is None:
            return "invalid_id"
        if row.status is not None and row.status not in _KNOWN_STATUSES:
            return "unknown_status"
        if not self.blobs.has_data(row.original_image_path):
            return "original_image_missing"
        return None

    def _reconstruct(self, row: DesignRow) -> Optional[DesignRecord]:
        defect = self._row_defect(row)
        if defect is not None:
            logger.debug("design.row_skipped", row_id=row.row_id, defect=defect)
            return None

        design_id = _parse_id(row.design_id)
        original = self.blobs.read(row.original_image_path)
        if original is None:
            logger.debug("design.row_skipped", row_id=row.row_id, defect="original_unreadable")
            return None

        record = DesignRecord(
            id=design_id,  # type: ignore[arg-type]
            original_image=original,
            style_name=row.style_name,  # type: ignore[arg-type]
            prompt=row.prompt,  # type: ignore[arg-type]
            created_at=datetime.fromtimestamp(row.created_at, UTC),  # type: ignore[arg-type]
        )

        # Legacy rows written before status tracking are completed designs
        status = row.status or DesignStatus.COMPLETED.value

        if status == DesignStatus.PROCESSING.value:
            return record

        if status == DesignStatus.FAILED.value:
            record.mark_failed(row.error_message or UNKNOWN_ERROR)
            return record

        generated = self.blobs.read(row.generated_image_path)
        if generated is None:
            logger.warning("design.generated_image_missing", design_id=str(record.id))
            record.mark_failed(GENERATED_IMAGE_MISSING)
        else:
            record.mark_completed(generated)
        return record


_KNOWN_STATUSES = frozenset(status.value for status in DesignStatus)


def _parse_id(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None
