from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PublishCollectionBody(_CamelModel):
    license: str = ""
    tags: Optional[List[str]] = None


class PublishCollectionResult(_CamelModel):
    published_dataset_id: int = Field(alias="publishedDatasetId")
    published_version: int = Field(alias="publishedVersion")
    status: str


class UnpublishCollectionResult(_CamelModel):
    published_dataset_id: int = Field(alias="publishedDatasetId")
    published_version: int = Field(alias="publishedVersion")
    status: str
