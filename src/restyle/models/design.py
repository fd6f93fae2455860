"""DesignRecord entity - one photo restyling job with lifecycle status tracking."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class DesignStatus(str, Enum):
    """Design lifecycle status."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid design state transition."""

    pass


@dataclass
class DesignRecord:
    """A submitted design: original photo, requested style and (eventually) the result.

    Records start in processing and settle exactly once, either to completed
    (with the generated image attached) or to failed (with an error message).
    """

    original_image: bytes
    style_name: str
    prompt: str
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: DesignStatus = DesignStatus.PROCESSING
    generated_image: Optional[bytes] = None
    error_message: Optional[str] = None

    def __post_init__(self) -> None:
        # Own the payload even if a bytearray/memoryview was handed in
        self.original_image = bytes(self.original_image)
        if self.generated_image is not None:
            self.generated_image = bytes(self.generated_image)

    @property
    def is_terminal(self) -> bool:
        return self.status in (DesignStatus.COMPLETED, DesignStatus.FAILED)

    def mark_completed(self, generated_image: bytes) -> None:
        """Transition from processing to completed.

        Args:
            generated_image: Encoded bytes of the generated design

        Raises:
            InvalidStateTransition: If current status is not processing
            ValueError: If generated_image is empty
        """
        if self.status != DesignStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Design must be in processing state."
            )
        if not generated_image:
            raise ValueError("generated_image is required")
        self.generated_image = bytes(generated_image)
        self.error_message = None
        self.status = DesignStatus.COMPLETED

    def mark_failed(self, error_message: str) -> None:
        """Transition from processing to failed.

        Args:
            error_message: Human-readable reason shown to the user

        Raises:
            InvalidStateTransition: If current status is not processing
            ValueError: If error_message is empty
        """
        if self.status != DesignStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark failed from {self.status.value}. "
                "Design must be in processing state."
            )
        if not error_message:
            raise ValueError("error_message is required")
        self.generated_image = None
        self.error_message = error_message
        self.status = DesignStatus.FAILED
