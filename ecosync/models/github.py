"""
Boundary models for GitHub REST payloads.

Every API response is validated here and converted into the entities of
`ecosync.models`; nothing past this module sees a raw dict.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import ValidationError

from ecosync.core.exceptions import MalformedResponseError
from ecosync.core.timeutil import parse_datetime
from ecosync.models.branch import BranchHead
from ecosync.models.commit import Commit
from ecosync.models.contributor import Contribution
from ecosync.models.contributor import Developer
from ecosync.models.repository import Repository
from ecosync.models.repository import TrackedRepository


class GitHubAccount(BaseModel):
    id: int
    login: str
    avatar_url: str | None = ''
    type: str = 'User'

    model_config = ConfigDict(extra='ignore')

    @property
    def is_user(self) -> bool:
        return self.type == 'User'

    def to_developer(self) -> Developer:
        return Developer(id=self.id, name=self.login, avatar=self.avatar_url or '')


class GitHubRepository(BaseModel):
    """GET /repos/{org}/{repo}"""
    name: str
    default_branch: str = 'main'
    stars: int = Field(alias='stargazers_count', default=0)
    forks: int = Field(alias='forks_count', default=0)
    owner: GitHubAccount | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @field_validator('created_at', 'updated_at', 'pushed_at', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    def to_entity(self, tracked: TrackedRepository) -> Repository:
        # Identity and classification come from discovery, not from the API
        return Repository(
            name=tracked.name,
            organization=tracked.organization,
            repo_type=tracked.repo_type,
            dependencies=tracked.dependencies,
            default_branch=self.default_branch,
            stars=self.stars,
            forks=self.forks,
            owner_type=self.owner.type if self.owner else '',
            created_at=self.created_at,
            updated_at=self.updated_at,
            pushed_at=self.pushed_at,
        )


class _GitSignature(BaseModel):
    name: str | None = ''
    date: datetime | None = None

    model_config = ConfigDict(extra='ignore')

    @field_validator('date', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        return parse_datetime(v)


class _GitCommit(BaseModel):
    author: _GitSignature | None = None
    committer: _GitSignature | None = None

    model_config = ConfigDict(extra='ignore')


class GitHubBranch(BaseModel):
    """An item of GET /repos/{org}/{repo}/branches"""

    class _Head(BaseModel):
        sha: str = ''
        commit: _GitCommit | None = None

        model_config = ConfigDict(extra='ignore')

    name: str
    commit: _Head | None = None

    model_config = ConfigDict(extra='ignore')

    def to_entity(self) -> BranchHead:
        # The list endpoint usually omits the nested commit; the time is optional
        head_time = None
        if self.commit and self.commit.commit:
            inner = self.commit.commit
            head_time = (inner.committer and inner.committer.date) or (
                inner.author and inner.author.date
            )
        return BranchHead(name=self.name, head_commit_time=head_time)


class GitHubCommit(BaseModel):
    """An item of GET /repos/{org}/{repo}/commits"""
    sha: str
    commit: _GitCommit
    author: GitHubAccount | None = None

    model_config = ConfigDict(extra='ignore')

    @property
    def timestamp(self) -> datetime:
        for signature in (self.commit.committer, self.commit.author):
            if signature and signature.date:
                return signature.date
        raise MalformedResponseError(f"Commit {self.sha} carries no timestamp")

    def to_entity(self, repo: str, organization: str, branch: str) -> Commit:
        if self.author:
            dev_id, dev_name = self.author.id, self.author.login
        else:
            # Not linked to an account; keep the git author name
            dev_id = None
            dev_name = (self.commit.author and self.commit.author.name) or ''
        return Commit(
            hash=self.sha,
            repo=repo,
            organization=organization,
            branch=branch,
            commit_date=self.timestamp,
            dev_id=dev_id,
            dev_name=dev_name,
        )


class GitHubContributor(GitHubAccount):
    """An item of GET /repos/{org}/{repo}/contributors"""
    contributions: int = 0

    def to_contribution(self, repo: str, organization: str) -> Contribution:
        return Contribution(
            dev_id=self.id,
            repo=repo,
            organization=organization,
            contributions=self.contributions,
        )


def parse_items(model: type[BaseModel], page: Any, what: str) -> list[Any]:
    """Validate a whole page. Raises MalformedResponseError on any bad item."""
    if not isinstance(page, list):
        raise MalformedResponseError(
            f"Expected a JSON list of {what}, got {type(page).__name__}",
        )
    try:
        return [model.model_validate(item) for item in page]
    except ValidationError as e:
        raise MalformedResponseError(
            f"Unexpected {what} payload: {e.error_count()} validation error(s)",
        ) from e


def parse_repository(payload: Any) -> GitHubRepository:
    try:
        return GitHubRepository.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Unexpected repository payload: {e.error_count()} validation error(s)",
        ) from e
