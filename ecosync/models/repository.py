from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from ecosync.core.timeutil import parse_datetime


class RepoType(str, Enum):
    WHITELISTED = 'whitelisted'
    DEPENDENT = 'dependent'
    FORK = 'fork'
    WHITELISTED_FORK = 'whitelisted-fork'

    def __str__(self) -> str:
        return self.value

    @property
    def collects_activity(self) -> bool:
        """Whitelisted forks are tracked for discovery only."""
        return self is not RepoType.WHITELISTED_FORK


class TrackedRepository(BaseModel):
    """A repository handed over by the discovery layer."""
    name: str
    organization: str
    repo_type: RepoType = RepoType.WHITELISTED
    dependencies: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra='ignore')

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.organization)

    @property
    def full_name(self) -> str:
        return f"{self.organization}/{self.name}"


class Repository(BaseModel):
    """Persisted repository metadata snapshot."""
    name: str
    organization: str
    repo_type: RepoType = RepoType.WHITELISTED
    dependencies: list[str] = Field(default_factory=list)
    default_branch: str = 'main'
    stars: int = 0
    forks: int = 0
    owner_type: str = ''
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None

    model_config = ConfigDict(extra='ignore')

    @field_validator('created_at', 'updated_at', 'pushed_at', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    @field_validator('dependencies', mode='before')
    @classmethod
    def normalize_dependencies(cls, v: Any) -> list[str]:
        if not v:
            return []
        return sorted({str(d) for d in v})

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.organization)

    @property
    def full_name(self) -> str:
        return f"{self.organization}/{self.name}"

    @classmethod
    def from_tracked(cls, tracked: TrackedRepository) -> 'Repository':
        """Discovery-only row, no metadata fetched yet."""
        return cls(
            name=tracked.name,
            organization=tracked.organization,
            repo_type=tracked.repo_type,
            dependencies=tracked.dependencies,
        )
