from pydantic import BaseModel, ConfigDict, Field


class PostBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=5, max_length=255)
    content: str = Field(..., min_length=5)
