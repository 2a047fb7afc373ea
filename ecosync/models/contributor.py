from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class Developer(BaseModel):
    id: int
    name: str
    avatar: str = ''

    model_config = ConfigDict(extra='ignore')


class Contribution(BaseModel):
    """Running total reported by the API. Replaces the stored value, never adds to it."""
    dev_id: int
    repo: str
    organization: str
    contributions: int = Field(ge=0)

    model_config = ConfigDict(extra='ignore')

    @property
    def key(self) -> tuple[int, str, str]:
        return (self.dev_id, self.repo, self.organization)
