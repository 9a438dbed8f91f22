# shaka/api/follows/test_services.py

import pytest
from unittest.mock import MagicMock

from conftest import seed_user, seed_follow
from shaka.api.follows.services import FollowService, mutual_followers, chunked


class TestMutualFollowers:
    def test_intersection(self):
        assert mutual_followers({'a', 'b', 'c'}, {'b', 'c', 'd'}) == {'b', 'c'}

    @pytest.mark.parametrize("following, followers", [
        (set(), set()),
        ({'a'}, set()),
        (set(), {'a'}),
    ])
    def test_empty_sides(self, following, followers):
        assert mutual_followers(following, followers) == set()

    def test_chunked(self):
        ids = [str(i) for i in range(61)]
        assert [len(c) for c in chunked(ids)] == [30, 30, 1]
        assert chunked([]) == []


@pytest.fixture
def notifications():
    return MagicMock()


@pytest.fixture
def service(fake_db, notifications):
    seed_user(fake_db, 'alice', 'Alice')
    seed_user(fake_db, 'bob', 'Bob')
    return FollowService(notification_service=notifications, db=fake_db)


class TestFollow:
    def test_follow_writes_both_sides_and_notifies(self, service, fake_db, notifications):
        assert service.follow('alice', 'bob') is True

        assert fake_db.data('following/alice/users/bob')['uid'] == 'bob'
        assert fake_db.data('followers/bob/users/alice')['uid'] == 'alice'
        assert fake_db.batch_commits == 1
        notifications.notify_follow.assert_called_once_with(actor_id='alice', followed_id='bob')

    def test_follow_twice_is_idempotent(self, service, notifications):
        service.follow('alice', 'bob')
        assert service.follow('alice', 'bob') is False
        assert notifications.notify_follow.call_count == 1

    def test_self_follow_is_rejected(self, service):
        with pytest.raises(ValueError):
            service.follow('alice', 'alice')

    def test_follow_missing_user(self, service):
        with pytest.raises(LookupError):
            service.follow('alice', 'nobody')

    def test_unfollow_removes_both_sides(self, service, fake_db):
        service.follow('alice', 'bob')
        service.unfollow('alice', 'bob')

        assert fake_db.data('following/alice/users/bob') is None
        assert fake_db.data('followers/bob/users/alice') is None
        assert service.is_following('alice', 'bob') is False


class TestMutual:
    def test_mutual_requires_both_directions(self, service, fake_db):
        seed_user(fake_db, 'carol', 'Carol')
        seed_follow(fake_db, 'alice', 'bob')
        seed_follow(fake_db, 'bob', 'alice')
        seed_follow(fake_db, 'alice', 'carol')

        assert service.get_mutual_followers('alice') == {'bob'}
        assert service.get_mutual_followers('carol') == set()

    def test_profiles_for_following(self, service, fake_db):
        seed_follow(fake_db, 'alice', 'bob')

        profiles = service.list_following('alice')
        assert profiles == [{'user_id': 'bob', 'display_name': 'Bob', 'photo_url': None, 'bio': None}]

    def test_profiles_are_fetched_in_chunks(self, service, fake_db):
        for i in range(35):
            seed_user(fake_db, f'user{i:02d}')
            seed_follow(fake_db, f'user{i:02d}', 'alice')

        assert len(service.list_followers('alice')) == 35
