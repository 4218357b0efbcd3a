"""Connection settings models."""

from pydantic import BaseModel, ConfigDict, Field


class ConnectionSettings(BaseModel):
    """Where and how to connect."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    user: str = ""
    password: str = Field(default="", repr=False)
