"""Metadata database engine setup."""

from pathlib import Path

from sqlalchemy import Engine
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine

# Table models must be imported before create_all()
from restyle.models.design_row import DesignRow  # noqa: F401


def setup_db_engine(db_url: str) -> Engine:
    """Create the metadata database engine and ensure the schema exists.

    Args:
        db_url: SQLAlchemy URL (sqlite:///path/to/designs.db)

    Returns:
        Engine with the design_metadata table created
    """
    url = make_url(db_url)
    connect_args = {}

    if url.get_backend_name() == "sqlite":
        # DesignStore serializes access with its own lock and may be called from any thread
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        db_url,
        connect_args=connect_args,
        echo=False,  # Don't log SQL queries (use structlog instead)
    )
    SQLModel.metadata.create_all(engine)
    return engine
