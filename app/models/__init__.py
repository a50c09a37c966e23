# Import all models so they're registered with SQLAlchemy metadata
from .user import User
from .collection import Collection, CollectionDOI, CollectionUser, Datasource, Role
from .publish_status import PublishStatus, PublishStatusType, PublishStatusValue

__all__ = [
    "User",
    "Collection",
    "CollectionDOI",
    "CollectionUser",
    "Datasource",
    "Role",
    "PublishStatus",
    "PublishStatusType",
    "PublishStatusValue",
]
