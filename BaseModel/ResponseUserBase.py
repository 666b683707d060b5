from pydantic import BaseModel, ConfigDict


class CreatorSummary(BaseModel):
    """What a post embeds about its creator, never the email or password hash"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
