from datetime import datetime
import enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class PublishStatusValue(str, enum.Enum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PublishStatusValue.IN_PROGRESS


class PublishStatusType(str, enum.Enum):
    PUBLICATION = "Publication"
    REVISION = "Revision"
    REMOVAL = "Removal"


class PublishStatus(Base):
    """Lifecycle record of a collection's most recent publish operation.

    One row per collection. Rows are overwritten by each new claim and never
    deleted, so the row doubles as publication history.
    """

    __tablename__ = "publish_status"

    collection_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("collections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Only null if the initiating user has since been deleted
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<PublishStatus(collection_id={self.collection_id}, type='{self.type}', status='{self.status}')>"
