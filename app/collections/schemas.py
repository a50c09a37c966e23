from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.collections.store import CollectionView


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PatchDOIs(_CamelModel):
    add: List[str] = Field(default_factory=list)
    remove: List[str] = Field(default_factory=list)


class PatchCollectionBody(_CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    dois: Optional[PatchDOIs] = None


class PublicationResponse(_CamelModel):
    type: str
    status: str


class CollectionResponse(_CamelModel):
    node_id: str = Field(alias="nodeId")
    name: str
    description: str
    license: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    size: int
    user_role: str = Field(alias="userRole")
    dois: List[str] = Field(default_factory=list)
    publication: Optional[PublicationResponse] = None

    @classmethod
    def from_view(cls, collection: CollectionView) -> "CollectionResponse":
        publication = None
        if collection.publication is not None:
            publication = PublicationResponse(
                type=collection.publication.type.value,
                status=collection.publication.status.value,
            )
        return cls(
            node_id=collection.node_id,
            name=collection.name,
            description=collection.description,
            license=collection.license,
            tags=collection.tags,
            size=collection.size,
            user_role=collection.user_role.value,
            dois=collection.doi_values,
            publication=publication,
        )
