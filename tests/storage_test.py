import json

from ecosync.core.storage import load_tracked
from ecosync.core.storage import save_tracked
from ecosync.models.repository import RepoType
from ecosync.models.repository import TrackedRepository
from ecosync.services.source_service import JsonlRepositorySource


def write_lines(path, lines):
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')


def test_load_tracked(tmp_path):
    path = tmp_path / 'repositories.jsonl'
    write_lines(path, [
        json.dumps({'name': 'js-stellar-sdk', 'organization': 'stellar', 'repo_type': 'whitelisted'}),
        json.dumps({
            'name': 'wallet', 'organization': 'acme', 'repo_type': 'dependent',
            'dependencies': ['stellar/js-stellar-sdk'],
        }),
    ])

    repos = load_tracked(path)

    assert [r.full_name for r in repos] == ['stellar/js-stellar-sdk', 'acme/wallet']
    assert repos[1].repo_type is RepoType.DEPENDENT
    assert repos[1].dependencies == ['stellar/js-stellar-sdk']


def test_invalid_lines_are_skipped(tmp_path):
    path = tmp_path / 'repositories.jsonl'
    write_lines(path, [
        '{not json',
        json.dumps({'name': 'x', 'organization': 'o', 'repo_type': 'mirror'}),
        '',
        json.dumps({'name': 'ok', 'organization': 'o'}),
    ])

    assert [r.name for r in load_tracked(path)] == ['ok']


def test_last_record_wins(tmp_path):
    path = tmp_path / 'repositories.jsonl'
    write_lines(path, [
        json.dumps({'name': 'r', 'organization': 'o', 'repo_type': 'fork'}),
        json.dumps({'name': 'r', 'organization': 'o', 'repo_type': 'whitelisted-fork'}),
    ])

    repos = load_tracked(path)

    assert len(repos) == 1
    assert repos[0].repo_type is RepoType.WHITELISTED_FORK


def test_missing_file_is_empty(tmp_path):
    assert load_tracked(tmp_path / 'absent.jsonl') == []


def test_save_then_filter(tmp_path):
    path = tmp_path / 'nested' / 'repositories.jsonl'
    save_tracked(path, [
        TrackedRepository(name='a', organization='o'),
        TrackedRepository(name='b', organization='o', repo_type=RepoType.FORK),
    ])

    source = JsonlRepositorySource(path, only={'o/b'})

    assert [r.name for r in source.load()] == ['b']
    assert json.loads(path.read_text().splitlines()[1])['repo_type'] == 'fork'
