"""DesignRow repository for the metadata table.

Provides data access methods for DesignRow entities. Callers own the session
and the transaction; DesignStore wraps every read-modify-write in its lock.
"""

from typing import Iterable

from sqlmodel import Session, select

from restyle.models.design_row import DesignRow


class DesignRowRepository:
    """Repository for DesignRow entities."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLModel session for database operations
        """
        self.session = session

    def list_all(self) -> list[DesignRow]:
        """Return every row in insertion order."""
        return list(self.session.exec(select(DesignRow).order_by(DesignRow.row_id)).all())  # type: ignore[arg-type]

    def get_by_design_id(self, design_id: str) -> DesignRow | None:
        """Retrieve the first row whose design_id matches exactly.

        Matching is case-sensitive; ids are always written in canonical
        lowercase UUID form.

        Args:
            design_id: Canonical string form of the design UUID

        Returns:
            DesignRow if found, None otherwise
        """
        result = self.session.exec(
            select(DesignRow)
            .where(DesignRow.design_id == design_id)  # type: ignore[arg-type]
            .order_by(DesignRow.row_id)  # type: ignore[arg-type]
        )
        return result.first()

    def add(self, row: DesignRow) -> DesignRow:
        """Persist a new row.

        Returns:
            Persisted row with row_id assigned
        """
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, row: DesignRow) -> None:
        self.session.add(row)
        self.session.flush()

    def remove(self, row: DesignRow) -> None:
        self.session.delete(row)
        self.session.flush()

    def remove_many(self, row_ids: Iterable[int]) -> int:
        """Delete rows by primary key.

        Returns:
            Number of rows deleted
        """
        ids = list(row_ids)
        if not ids:
            return 0
        rows = self.session.exec(
            select(DesignRow).where(DesignRow.row_id.in_(ids))  # type: ignore[union-attr]
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)
