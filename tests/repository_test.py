from datetime import datetime
from datetime import timezone
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from clickhouse_connect.driver.exceptions import DatabaseError

from ecosync.core.config import DatabaseConfig
from ecosync.core.exceptions import PersistenceError
from ecosync.core.repository import ClickHouseStore
from ecosync.core.repository import COMMIT_COLUMNS
from ecosync.core.schema import TABLE_DDLS
from ecosync.core.schema import VIEW_DDLS
from ecosync.models.commit import Commit
from ecosync.models.contributor import Contribution


def query_result(rows, columns=None):
    result = MagicMock()
    result.result_rows = rows
    result.column_names = columns or []
    return result


def commit(sha, repo='R'):
    return Commit(
        hash=sha, repo=repo, organization='O', branch='main',
        commit_date='2024-01-01T00:00:00Z', dev_id=1, dev_name='alice',
    )


@pytest.fixture
def client():
    with patch('ecosync.core.repository.clickhouse_connect.get_client') as get_client:
        yield get_client.return_value


@pytest.fixture
def ch_store(client):
    return ClickHouseStore(DatabaseConfig(host='localhost', port=8123, database='ecosync'))


class TestClickHouseStore:
    """Tests for ClickHouseStore against a mocked driver."""

    def test_ensure_schema_creates_everything(self, ch_store, client):
        """Database first, then every table, then every view."""
        ch_store.ensure_schema()

        statements = [c.args[0] for c in client.command.call_args_list]
        assert statements[0] == 'CREATE DATABASE IF NOT EXISTS ecosync'
        assert statements[1:] == list(TABLE_DDLS) + list(VIEW_DDLS.values())

    def test_insert_commits_skips_existing_hashes(self, ch_store, client):
        """Only hashes not yet stored for the repository are inserted."""
        client.query.return_value = query_result([('a',)])

        added = ch_store.insert_commits([commit('a'), commit('b'), commit('b')])

        assert added == 1
        params = client.query.call_args.kwargs['parameters']
        assert sorted(params['hashes']) == ['a', 'b']
        table, rows = client.insert.call_args.args
        assert table == 'commits'
        assert [row[2] for row in rows] == ['b']
        assert client.insert.call_args.kwargs['column_names'] == COMMIT_COLUMNS

    def test_insert_commits_groups_by_repository(self, ch_store, client):
        client.query.return_value = query_result([])

        assert ch_store.insert_commits([commit('a', 'R1'), commit('a', 'R2')]) == 2
        assert client.query.call_count == 2
        assert client.insert.call_count == 2

    def test_insert_nothing(self, ch_store, client):
        assert ch_store.insert_commits([]) == 0
        client.query.assert_not_called()

    def test_get_watermark_is_utc(self, ch_store, client):
        """Naive DateTime values from the driver are read as UTC."""
        client.query.return_value = query_result([(datetime(2024, 1, 3, 10, 0),)])

        watermark = ch_store.get_watermark('R', 'O', 'main')

        assert watermark == datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)
        assert client.query.call_args.kwargs['parameters'] == {
            'repo': 'R', 'org': 'O', 'branch': 'main',
        }

    def test_get_watermark_absent(self, ch_store, client):
        client.query.return_value = query_result([])
        assert ch_store.get_watermark('R', 'O', 'main') is None

    def test_get_repository_maps_columns(self, ch_store, client):
        client.query.return_value = query_result([(
            'O', 'R', 'dependent', ['stellar/go'], 'main', 3, 1, 'User',
            datetime(2020, 1, 1), datetime(2024, 1, 5), None,
        )])

        repository = ch_store.get_repository('R', 'O')

        assert repository.name == 'R'
        assert repository.organization == 'O'
        assert repository.dependencies == ['stellar/go']
        assert repository.updated_at.tzinfo is not None
        assert repository.pushed_at is None

    def test_upsert_contributions(self, ch_store, client):
        ch_store.upsert_contributions([
            Contribution(dev_id=1, repo='R', organization='O', contributions=40),
        ])
        table, rows = client.insert.call_args.args
        assert table == 'contributions'
        assert rows == [[1, 'O', 'R', 40]]

    def test_refresh_view_waits_for_completion(self, ch_store, client):
        ch_store.refresh_view('weekly_commits')

        assert [c.args[0] for c in client.command.call_args_list] == [
            'SYSTEM REFRESH VIEW weekly_commits',
            'SYSTEM WAIT VIEW weekly_commits',
        ]

    def test_unknown_view(self, ch_store, client):
        with pytest.raises(PersistenceError):
            ch_store.refresh_view('users; DROP TABLE commits')
        client.command.assert_not_called()

    def test_driver_errors_become_persistence_errors(self, ch_store, client):
        client.insert.side_effect = DatabaseError('Code: 241. Memory limit exceeded')

        with pytest.raises(PersistenceError, match='set_watermark'):
            ch_store.set_watermark('R', 'O', 'main', datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_close_releases_client(self, ch_store, client):
        _ = ch_store.client
        ch_store.close()
        client.close.assert_called_once()
        assert ch_store._client is None
