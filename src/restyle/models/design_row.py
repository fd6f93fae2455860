"""DesignRow entity - persisted metadata for one design record."""

from typing import Optional

from sqlmodel import Field, SQLModel


class DesignRow(SQLModel, table=True):
    """Metadata row referencing the design's image blobs by path.

    Domain columns are nullable on purpose: rows written by older builds or
    damaged on disk must still load so the store can detect and compact them.
    """

    __tablename__ = "design_metadata"  # type: ignore[assignment]

    row_id: Optional[int] = Field(default=None, primary_key=True)
    design_id: Optional[str] = Field(default=None, index=True, max_length=64)
    original_image_path: Optional[str] = Field(default=None)
    generated_image_path: Optional[str] = Field(default=None)
    style_name: Optional[str] = Field(default=None)
    prompt: Optional[str] = Field(default=None)
    created_at: Optional[float] = Field(default=None)  # epoch seconds
    status: Optional[str] = Field(default=None, max_length=20)
    error_message: Optional[str] = Field(default=None)
