from datetime import datetime

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from BaseModel.ResponseUserBase import CreatorSummary


class PostFields(BaseModel):
    # validated from ORM attribute names, serialized as camelCase
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    id: int
    title: str
    content: str
    image_url: str
    created_at: datetime
    updated_at: datetime

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PostRead(PostFields):
    creator_id: str = Field(serialization_alias="creator")


class PostWithCreator(PostFields):
    creator: CreatorSummary
