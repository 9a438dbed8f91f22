# shaka/scripts/test_backfill_users.py

import json
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from shaka.scripts import backfill_users
from shaka.scripts.backfill_users import build_user_update, is_migrated, main, run_backfill


def auth_user(uid, display_name=None, email=None, created_ms=None):
    return SimpleNamespace(
        uid=uid, display_name=display_name, email=email, photo_url=None,
        user_metadata=SimpleNamespace(creation_timestamp=created_ms),
    )


@pytest.fixture
def auth_client():
    page = SimpleNamespace(
        users=[auth_user('old1', display_name='Old One', email='old1@example.com', created_ms=1700000000000)],
        get_next_page=lambda: None,
    )
    client = MagicMock()
    client.list_users.return_value = page
    return client


@pytest.fixture
def legacy_users(fake_db):
    fake_db.seed('users/old1', {'photoURL': 'https://img/old1.png'})
    fake_db.seed('users/old2', {'displayName': 'Legacy Two', 'email': 'two@example.com'})
    fake_db.seed('users/new', {
        'public': {'displayName': 'Already'},
        'private': {'joinedAt': datetime(2024, 1, 1, tzinfo=timezone.utc)},
        'stats': {'worksCount': 0, 'questionsCount': 0},
    })
    fake_db.seed('works/w1', {'userID': 'old1'})
    return fake_db


@pytest.mark.parametrize('extra_users', [0, 1200])
def test_dry_run_writes_nothing(legacy_users, auth_client, tmp_path, monkeypatch, extra_users):
    monkeypatch.setattr(backfill_users, 'RATE_LIMIT_DELAY', 0)
    for i in range(extra_users):
        legacy_users.seed(f'users/bulk{i:04d}', {'displayName': f'Bulk {i}'})

    code = main(['--dry-run', '--backup-dir', str(tmp_path)], db=legacy_users, auth_client=auth_client)

    assert code == 0
    assert legacy_users.write_count == 0
    backups = os.listdir(tmp_path)
    assert len(backups) == 1
    with open(tmp_path / backups[0], encoding='utf-8') as f:
        assert len(json.load(f)) == 3 + extra_users
    assert legacy_users.batch_commits == 0


def test_backfill_moves_fields_and_skips_migrated(legacy_users, auth_client, tmp_path):
    code = main(['--backup-dir', str(tmp_path)], db=legacy_users, auth_client=auth_client)

    assert code == 0
    old1 = legacy_users.data('users/old1')
    assert old1['public']['displayName'] == 'Old One'
    assert old1['public']['photoURL'] == 'https://img/old1.png'
    assert old1['private']['email'] == 'old1@example.com'
    assert old1['private']['joinedAt'] == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert old1['stats'] == {'worksCount': 1, 'questionsCount': 0}

    old2 = legacy_users.data('users/old2')
    assert old2['public']['displayName'] == 'Legacy Two'
    assert is_migrated(old2)
    assert legacy_users.data('users/new')['public'] == {'displayName': 'Already'}


def test_batches_wait_between_commits(fake_db, monkeypatch):
    monkeypatch.setattr(backfill_users, 'BATCH_SIZE', 2)
    backup = {f'u{i}': {} for i in range(5)}
    sleep = MagicMock()

    results = run_backfill(fake_db, backup, {}, sleep=sleep)

    assert len(results['success']) == 5
    assert fake_db.batch_commits == 3
    assert sleep.call_count == 2


def test_missing_name_falls_back_to_default(fake_db):
    updates = build_user_update(fake_db, 'abcdef123', {}, None)
    assert updates['public']['displayName'] == 'User_abcdef'


def test_legacy_string_join_date_is_parsed(fake_db):
    updates = build_user_update(fake_db, 'legacy', {'joinedAt': '2023-05-01T09:00:00+09:00'}, None)
    assert updates['private']['joinedAt'] == datetime(2023, 5, 1, 0, 0, tzinfo=timezone.utc)


def test_fatal_error_exits_with_failure(fake_db, tmp_path):
    client = MagicMock()
    client.list_users.side_effect = RuntimeError('auth down')
    assert main(['--backup-dir', str(tmp_path)], db=fake_db, auth_client=client) == 1


def test_display_name_backfill(fake_db):
    fake_db.seed('users/alice', {'public': {'displayName': 'Alice'}})
    fake_db.seed('works/w1', {'userID': 'alice', 'displayName': 'Ali'})
    fake_db.seed('questions/q1', {'userID': 'alice', 'displayName': 'Alice'})

    assert main(['--display-names', '--dry-run'], db=fake_db) == 0
    assert fake_db.write_count == 0

    assert main(['--display-names'], db=fake_db) == 0
    assert fake_db.data('works/w1')['displayName'] == 'Alice'
    assert fake_db.write_count == 1
