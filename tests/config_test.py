import pytest

from ecosync.core.config import DatabaseConfig
from ecosync.core.config import DEFAULT_VIEWS
from ecosync.core.config import EcoSyncConfig
from ecosync.core.config import GitHubConfig
from ecosync.core.config import SyncConfig
from ecosync.core.exceptions import ConfigurationError


def test_github_config_repr():
    config = GitHubConfig(token='secret-token')
    assert 'secret-token' not in repr(config)
    assert '*****' in repr(config)


def test_database_config_repr():
    config = DatabaseConfig(password='secret-password')
    assert 'secret-password' not in repr(config)
    assert '*****' in repr(config)


def test_missing_token(monkeypatch):
    monkeypatch.delenv('GITHUB_TOKEN', raising=False)
    with pytest.raises(ConfigurationError):
        GitHubConfig().require_token()


def test_sync_config_from_env(monkeypatch):
    monkeypatch.setenv('ECOSYNC_INTERVAL', '120')
    monkeypatch.setenv('ECOSYNC_WORKERS', '8')
    monkeypatch.setenv('ECOSYNC_REFRESH_MODE', 'repo')

    config = SyncConfig()

    assert config.interval == 120.0
    assert config.workers == 8
    assert config.refresh_mode == 'repo'
    assert config.views == DEFAULT_VIEWS


def test_invalid_refresh_mode():
    with pytest.raises(ConfigurationError):
        SyncConfig(refresh_mode='hourly')


def test_at_least_one_worker():
    with pytest.raises(ConfigurationError):
        SyncConfig(workers=0)


def test_roles_use_their_own_credentials(monkeypatch):
    monkeypatch.setenv('CLICKHOUSE_ADMIN_USER', 'writer')
    monkeypatch.setenv('CLICKHOUSE_GUEST_USER', 'reader')
    monkeypatch.setenv('CLICKHOUSE_DB', 'eco_test')

    config = EcoSyncConfig()

    admin = config.get_db_config('admin')
    guest = config.get_db_config('guest')
    assert admin.user == 'writer'
    assert guest.user == 'reader'
    assert admin.database == guest.database == 'eco_test'
    assert admin.get_connection_params()['username'] == 'writer'


def test_role_defaults_keep_connection_target(monkeypatch):
    for name in ('CLICKHOUSE_ADMIN_USER', 'CLICKHOUSE_ADMIN_PASSWORD'):
        monkeypatch.delenv(name, raising=False)
    base = DatabaseConfig(host='ch.internal', port=9000, database='eco')

    admin = base.for_role('admin')

    assert (admin.user, admin.password) == ('admin', 'admin')
    assert (admin.host, admin.port, admin.database) == ('ch.internal', 9000, 'eco')
    assert base.user == 'guest'
    assert repr(admin) == 'DatabaseConfig(admin:*****@ch.internal:9000/eco)'
