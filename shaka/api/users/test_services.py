# shaka/api/users/test_services.py

import pytest
from unittest.mock import MagicMock

from firebase_admin import auth as firebase_auth

from conftest import seed_user
from shaka.api.follows.services import FollowService
from shaka.api.posts.services import PostService
from shaka.api.users import services as user_services
from shaka.api.users.services import UserService, update_posts_display_name
from shaka.services.location_sharing_service import LocationSharingService
from shaka.services.notification_service import NotificationService
from shaka.services.push_service import PushService


@pytest.fixture
def service(fake_db, scheduler):
    push = PushService(db=fake_db)
    notifications = NotificationService(push_service=push, db=fake_db)
    locations = LocationSharingService(FollowService(db=fake_db), scheduler=scheduler, db=fake_db)
    seed_user(fake_db, 'alice', 'Alice')
    return UserService(PostService(db=fake_db), notifications, push, locations, db=fake_db)


def test_profile_includes_post_counts(service, fake_db):
    fake_db.seed('works/w1', {'userID': 'alice'})
    fake_db.seed('questions/q1', {'userID': 'alice'})
    fake_db.seed('questions/q2', {'userID': 'alice'})

    profile = service.get_user_profile('alice')
    assert profile['display_name'] == 'Alice'
    assert profile['works_count'] == 1
    assert profile['questions_count'] == 2
    assert service.get_user_profile('nobody') is None


def test_rename_updates_every_post(service, fake_db):
    fake_db.seed('works/w1', {'userID': 'alice', 'displayName': 'Alice'})
    fake_db.seed('questions/q1', {'userID': 'alice', 'displayName': 'Alice'})
    fake_db.seed('works/w2', {'userID': 'bob', 'displayName': 'Bob'})

    service.update_profile('alice', display_name='Alicia', bio='hello')

    assert fake_db.data('users/alice')['public']['displayName'] == 'Alicia'
    assert fake_db.data('users/alice')['public']['bio'] == 'hello'
    assert fake_db.data('works/w1')['displayName'] == 'Alicia'
    assert fake_db.data('questions/q1')['displayName'] == 'Alicia'
    assert fake_db.data('works/w2')['displayName'] == 'Bob'


def test_same_name_does_not_touch_posts(service, fake_db):
    fake_db.seed('works/w1', {'userID': 'alice', 'displayName': 'Alice'})
    service.update_profile('alice', display_name='Alice')
    assert fake_db.batch_commits == 0


def test_sync_is_split_into_batches(fake_db):
    for i in range(600):
        fake_db.seed(f'works/w{i}', {'userID': 'alice', 'displayName': 'old'})

    assert update_posts_display_name(fake_db, 'alice', 'new') == 600
    assert fake_db.batch_commits == 2


def test_only_stale_posts_are_updated(fake_db):
    fake_db.seed('works/w1', {'userID': 'alice', 'displayName': 'new'})
    fake_db.seed('works/w2', {'userID': 'alice', 'displayName': 'old'})
    assert update_posts_display_name(fake_db, 'alice', 'new', only_stale=True) == 1


def test_update_missing_user(service):
    with pytest.raises(ValueError):
        service.update_profile('nobody', display_name='x')


def test_recount_fixes_drifted_stats(service, fake_db):
    fake_db.seed('works/w1', {'userID': 'alice'})
    assert service.recount_stats('alice') == {'worksCount': 1, 'questionsCount': 0}
    assert fake_db.data('users/alice')['stats']['worksCount'] == 1


class TestDeleteAccount:
    def test_removes_notifications_tokens_and_location(self, service, fake_db, monkeypatch):
        delete_user = MagicMock()
        monkeypatch.setattr(user_services.firebase_auth, 'delete_user', delete_user)
        fake_db.seed('notifications/alice/items/n1', {'type': 'like', 'read': False})
        fake_db.seed('users_private/alice/fcmTokens/t1', {'token': 't1'})
        fake_db.seed('user_locations/alice', {'displayName': 'Alice'})

        service.delete_user_account('alice')

        assert fake_db.data('notifications/alice/items/n1') is None
        assert fake_db.data('users_private/alice/fcmTokens/t1') is None
        assert fake_db.data('user_locations/alice') is None
        delete_user.assert_called_once_with('alice')

    def test_missing_auth_user_is_ignored(self, service, monkeypatch):
        delete_user = MagicMock(side_effect=firebase_auth.UserNotFoundError('gone'))
        monkeypatch.setattr(user_services.firebase_auth, 'delete_user', delete_user)
        service.delete_user_account('alice')

    def test_location_cleanup_failure_keeps_auth_user(self, service, fake_db, monkeypatch):
        delete_user = MagicMock()
        monkeypatch.setattr(user_services.firebase_auth, 'delete_user', delete_user)
        fake_db.fail_writes_for.add('user_locations')

        with pytest.raises(RuntimeError):
            service.delete_user_account('alice')
        delete_user.assert_not_called()
