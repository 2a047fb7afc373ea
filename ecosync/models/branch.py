from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import field_validator

from ecosync.core.timeutil import parse_datetime


class BranchHead(BaseModel):
    """A branch as listed upstream."""
    name: str
    head_commit_time: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator('head_commit_time', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)


class Branch(BaseModel):
    """Persisted branch watermark."""
    repo: str
    organization: str
    name: str
    latest_commit_date: datetime

    model_config = ConfigDict(extra='ignore')

    @field_validator('latest_commit_date', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.repo, self.organization, self.name)
