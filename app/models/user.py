from sqlalchemy import BigInteger, Column, Integer, String

from app.database import Base


class User(Base):
    """Publishing profile of a platform user, read-only for this service."""

    __tablename__ = "users"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    node_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(255), nullable=True)
    middle_initial = Column(String(1), nullable=True)
    last_name = Column(String(255), nullable=True)
    degree = Column(String(255), nullable=True)
    orcid = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<User(node_id='{self.node_id}', email='{self.email}')>"
