from conftest import contributor_payload

from ecosync.services.contributor_service import ContributorAggregator


def test_only_user_accounts_are_kept(fake_github):
    fake_github.contributors[('O', 'R')] = [
        contributor_payload('alice', 1, 42),
        contributor_payload('github-actions[bot]', 41898282, 900, 'Bot'),
        contributor_payload('acme', 7, 3, 'Organization'),
    ]

    results = ContributorAggregator(fake_github).fetch_contributors('R', 'O')

    assert len(results) == 1
    developer, contribution = results[0]
    assert developer.name == 'alice'
    assert contribution.contributions == 42
    assert contribution.key == (1, 'R', 'O')


def test_repeated_contributor_keeps_last_total(fake_github):
    fake_github.contributors[('O', 'R')] = [
        contributor_payload('alice', 1, 42),
        contributor_payload('bob', 2, 5),
        contributor_payload('alice', 1, 43),
    ]

    results = ContributorAggregator(fake_github).fetch_contributors('R', 'O')

    totals = {dev.id: c.contributions for dev, c in results}
    assert totals == {1: 43, 2: 5}


def test_malformed_page_is_skipped(fake_github):
    fake_github.contributors[('O', 'R')] = [
        contributor_payload('alice', 1, 42),
        {'login': 'no-id'},
        contributor_payload('bob', 2, 5),
    ]

    results = ContributorAggregator(fake_github).fetch_contributors('R', 'O')

    assert [dev.name for dev, _ in results] == ['bob']


def test_repository_without_contributors(fake_github):
    assert ContributorAggregator(fake_github).fetch_contributors('R', 'O') == []
