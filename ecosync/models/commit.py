from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import field_validator

from ecosync.core.timeutil import parse_datetime


class Commit(BaseModel):
    hash: str
    repo: str
    organization: str
    branch: str
    commit_date: datetime
    dev_id: int | None = None
    dev_name: str = ''

    model_config = ConfigDict(extra='ignore')

    @field_validator('commit_date', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.repo, self.organization, self.hash)
