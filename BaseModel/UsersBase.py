from typing import Annotated

from pydantic import BaseModel, EmailStr, Field, StringConstraints


class UsersBase(BaseModel):
    email: EmailStr
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    password: str = Field(..., min_length=5)
