"""Collection, membership and DOI models."""

import enum
from typing import List, Optional

from sqlalchemy import (
    ARRAY,
    JSON,
    BigInteger,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from app.database import Base

# SQLite only autoincrements INTEGER primary keys
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class StringArray(TypeDecorator):
    """Cross-platform string array type."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(String))
        else:
            return dialect.type_descriptor(JSON)


class Role(str, enum.Enum):
    """A user's role on a collection, ordered from least to most privileged."""

    NONE = "none"
    GUEST = "guest"
    VIEWER = "viewer"
    EDITOR = "editor"
    MANAGER = "manager"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def implies(self, required: "Role") -> bool:
        """True if this role grants at least the permissions of ``required``."""
        return self.rank >= required.rank

    def __str__(self) -> str:
        return self.value


_ROLE_ORDER = list(Role)


class Datasource(str, enum.Enum):
    """Where a DOI is registered: the Pennsieve catalog or somewhere else."""

    PENNSIEVE = "Pennsieve"
    EXTERNAL = "External"


class Collection(Base):
    """A named, owned, ordered set of unique DOIs."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    node_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    license: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tags: Mapped[Optional[List[str]]] = mapped_column(StringArray, nullable=True)

    users: Mapped[List["CollectionUser"]] = relationship(
        "CollectionUser", back_populates="collection", cascade="all, delete-orphan"
    )
    dois: Mapped[List["CollectionDOI"]] = relationship(
        "CollectionDOI",
        back_populates="collection",
        cascade="all, delete-orphan",
        order_by="CollectionDOI.id",
    )

    def __repr__(self):
        return f"<Collection(node_id='{self.node_id}', name='{self.name}')>"


class CollectionUser(Base):
    """Per-user role on a collection."""

    __tablename__ = "collection_user"

    collection_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    collection: Mapped["Collection"] = relationship("Collection", back_populates="users")


class CollectionDOI(Base):
    """A DOI entry of a collection; insertion order is membership order."""

    __tablename__ = "collection_dois"
    __table_args__ = (UniqueConstraint("collection_id", "doi", name="uq_collection_dois_doi"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    collection_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    doi: Mapped[str] = mapped_column(String(255), nullable=False)
    datasource: Mapped[str] = mapped_column(String(20), nullable=False)

    collection: Mapped["Collection"] = relationship("Collection", back_populates="dois")

    def __repr__(self):
        return f"<CollectionDOI(doi='{self.doi}', datasource='{self.datasource}')>"
