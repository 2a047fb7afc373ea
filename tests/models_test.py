from datetime import datetime
from datetime import timezone

import pytest
from conftest import commit_payload
from conftest import contributor_payload
from conftest import repo_payload

from ecosync.core.exceptions import MalformedResponseError
from ecosync.models.github import GitHubBranch
from ecosync.models.github import GitHubCommit
from ecosync.models.github import GitHubContributor
from ecosync.models.github import parse_items
from ecosync.models.github import parse_repository
from ecosync.models.repository import Repository
from ecosync.models.repository import RepoType
from ecosync.models.repository import TrackedRepository


def test_commit_uses_committer_date():
    payload = commit_payload('abc', '2024-02-01T10:00:00Z')
    payload['commit']['author']['date'] = '2024-01-01T00:00:00Z'

    commit = GitHubCommit.model_validate(payload).to_entity('R', 'O', 'main')

    assert commit.hash == 'abc'
    assert commit.commit_date == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
    assert commit.dev_id == 1
    assert commit.dev_name == 'alice'
    assert commit.key == ('R', 'O', 'abc')


def test_commit_falls_back_to_author_date():
    payload = commit_payload('abc', '2024-02-01T10:00:00Z')
    payload['commit']['committer'] = None

    commit = GitHubCommit.model_validate(payload).to_entity('R', 'O', 'main')
    assert commit.commit_date.year == 2024


def test_commit_without_any_date_is_malformed():
    payload = commit_payload('abc', None)

    with pytest.raises(MalformedResponseError):
        GitHubCommit.model_validate(payload).to_entity('R', 'O', 'main')


def test_unlinked_commit_keeps_git_name():
    payload = commit_payload('abc', '2024-02-01T10:00:00Z', login='Bob', linked=False)

    commit = GitHubCommit.model_validate(payload).to_entity('R', 'O', 'dev')
    assert commit.dev_id is None
    assert commit.dev_name == 'Bob'
    assert commit.branch == 'dev'


def test_branch_head_time_is_optional():
    bare = GitHubBranch.model_validate({'name': 'main', 'commit': {'sha': 'x', 'url': 'u'}})
    assert bare.to_entity().head_commit_time is None

    full = GitHubBranch.model_validate({
        'name': 'main',
        'commit': {'sha': 'x', 'commit': {'committer': {'date': '2024-03-01T00:00:00Z'}}},
    })
    assert full.to_entity().head_commit_time == datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_contributor_account_type():
    user = GitHubContributor.model_validate(contributor_payload('alice', 1, 42))
    bot = GitHubContributor.model_validate(contributor_payload('ci[bot]', 2, 500, 'Bot'))

    assert user.is_user
    assert not bot.is_user
    contribution = user.to_contribution('R', 'O')
    assert contribution.contributions == 42
    assert contribution.key == (1, 'R', 'O')


def test_repository_mapping_keeps_discovery_fields():
    tracked = TrackedRepository(
        name='R', organization='O', repo_type=RepoType.DEPENDENT,
        dependencies=['stellar/js-stellar-sdk', 'stellar/js-stellar-sdk'],
    )
    repo = parse_repository(repo_payload(stars=7)).to_entity(tracked)

    assert repo.repo_type is RepoType.DEPENDENT
    assert repo.dependencies == ['stellar/js-stellar-sdk']
    assert repo.stars == 7
    assert repo.owner_type == 'Organization'
    assert repo.updated_at == datetime(2024, 1, 5, tzinfo=timezone.utc)


def test_parse_repository_rejects_garbage():
    with pytest.raises(MalformedResponseError):
        parse_repository({'stargazers_count': 'many'})


def test_parse_items_requires_a_list():
    with pytest.raises(MalformedResponseError):
        parse_items(GitHubBranch, {'message': 'oops'}, 'branches')


def test_parse_items_rejects_bad_item():
    with pytest.raises(MalformedResponseError):
        parse_items(GitHubCommit, [commit_payload('a', '2024-01-01T00:00:00Z'), {'nope': 1}], 'commits')


def test_whitelisted_fork_collects_no_activity():
    assert not RepoType.WHITELISTED_FORK.collects_activity
    assert RepoType.FORK.collects_activity
    assert RepoType('whitelisted-fork') is RepoType.WHITELISTED_FORK


def test_repository_from_tracked_has_no_timestamps():
    tracked = TrackedRepository(name='R', organization='O', repo_type='whitelisted-fork')
    repo = Repository.from_tracked(tracked)
    assert repo.updated_at is None
    assert repo.full_name == 'O/R'
