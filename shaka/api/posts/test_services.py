# shaka/api/posts/test_services.py

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from conftest import seed_user
from shaka.api.posts.services import PostService


@pytest.fixture
def notifications():
    return MagicMock()


@pytest.fixture
def service(fake_db, notifications):
    seed_user(fake_db, 'alice', 'Alice')
    seed_user(fake_db, 'bob', 'Bob')
    fake_db.seed('works/w1', {'userID': 'bob', 'displayName': 'Bob', 'title': 'Sunset', 'likeCount': 0, 'commentCount': 0})
    fake_db.seed('questions/q1', {'userID': 'bob', 'displayName': 'Bob', 'title': 'Which lens?'})
    return PostService(notification_service=notifications, db=fake_db)


class TestLikes:
    def test_like_then_unlike(self, service, fake_db):
        assert service.toggle_like('alice', 'work', 'w1') == (True, 1)
        assert fake_db.data('works/w1')['likeCount'] == 1
        assert fake_db.data('works/w1/likes/alice')['userID'] == 'alice'
        assert service.is_liked('alice', 'work', 'w1') is True

        assert service.toggle_like('alice', 'work', 'w1') == (False, 0)
        assert fake_db.data('works/w1')['likeCount'] == 0
        assert fake_db.data('works/w1/likes/alice') is None

    def test_like_notifies_owner_once(self, service, notifications):
        service.toggle_like('alice', 'work', 'w1')
        service.toggle_like('alice', 'work', 'w1')

        notifications.notify_like.assert_called_once_with(
            actor_id='alice', owner_id='bob', target_type='work', target_id='w1', snippet='Sunset'
        )

    def test_like_missing_post(self, service):
        with pytest.raises(ValueError):
            service.toggle_like('alice', 'work', 'missing')

    def test_unknown_post_type(self, service):
        with pytest.raises(ValueError):
            service.toggle_like('alice', 'story', 'w1')


class TestComments:
    def test_create_comment_counts_and_notifies(self, service, fake_db, notifications):
        comment = service.create_comment('work', 'w1', 'alice', 'Beautiful colors')

        assert comment['displayName'] == 'Alice'
        assert comment['isPrivate'] is False
        assert fake_db.data('works/w1')['commentCount'] == 1
        notifications.notify_comment.assert_called_once_with(
            actor_id='alice', owner_id='bob', target_type='work', target_id='w1', comment_text='Beautiful colors'
        )

    def test_question_comments_are_private(self, service):
        service.create_comment('question', 'q1', 'alice', 'Try a 50mm')

        assert len(service.get_comments('question', 'q1', 'alice')) == 1
        assert len(service.get_comments('question', 'q1', 'bob')) == 1
        assert service.get_comments('question', 'q1', 'carol') == []

    def test_comments_are_listed_oldest_first(self, service, fake_db):
        for i, minute in enumerate([5, 1, 3]):
            fake_db.seed(f'works/w1/comments/c{i}', {
                'userID': 'alice', 'displayName': 'Alice', 'text': f'comment {i}',
                'createdAt': datetime(2025, 1, 1, 0, minute, tzinfo=timezone.utc),
            })
        comments = service.get_comments('work', 'w1', 'bob')
        assert [c['comment_id'] for c in comments] == ['c1', 'c2', 'c0']

    def test_only_author_can_delete(self, service, fake_db):
        comment = service.create_comment('work', 'w1', 'alice', 'hello')

        with pytest.raises(PermissionError):
            service.delete_comment('work', 'w1', comment['comment_id'], 'bob')

        service.delete_comment('work', 'w1', comment['comment_id'], 'alice')
        assert fake_db.data(f"works/w1/comments/{comment['comment_id']}") is None
        assert fake_db.data('works/w1')['commentCount'] == 0

    def test_delete_missing_comment(self, service):
        with pytest.raises(ValueError):
            service.delete_comment('work', 'w1', 'missing', 'alice')

    def test_comment_on_missing_post(self, service):
        with pytest.raises(ValueError):
            service.create_comment('work', 'missing', 'alice', 'hello')


def test_count_posts_by_user(service, fake_db):
    fake_db.seed('works/w2', {'userID': 'bob'})
    fake_db.seed('works/w3', {'userID': 'alice'})
    assert service.count_posts_by_user('work', 'bob') == 2
    assert service.count_posts_by_user('question', 'bob') == 1
