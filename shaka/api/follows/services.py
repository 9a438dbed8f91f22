# shaka/api/follows/services.py
import logging
from typing import Optional, Dict, Any, List, Set, Iterable
from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from shaka.services.notification_service import NotificationService
from shaka.utils.datetime_utils import DateTimeUtils

# Firestore 'in' 쿼리 한 번에 넣을 수 있는 값의 최대 개수
IN_QUERY_LIMIT = 30


def mutual_followers(following: Iterable[str], followers: Iterable[str]) -> Set[str]:
    """내가 팔로우하면서 동시에 나를 팔로우하는 사용자 집합"""
    return set(following) & set(followers)


def chunked(items: List[str], size: int = IN_QUERY_LIMIT) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class FollowService:
    """
    팔로우 관계 관련 비즈니스 로직을 담당하는 서비스 클래스.
    - 'following/{uid}/users/{target}' 와 'followers/{target}/users/{uid}' 를 함께 관리합니다.
    - 상호 팔로워 집합은 저장하지 않고 요청 때마다 다시 계산합니다.
    """
    def __init__(self, notification_service: Optional[NotificationService] = None, db=None):
        self.db = db or firestore.client()
        self.following_ref = self.db.collection('following')
        self.followers_ref = self.db.collection('followers')
        self.users_ref = self.db.collection('users')
        self.notification_service = notification_service

    def _following_doc(self, user_id: str, target_id: str):
        return self.following_ref.document(user_id).collection('users').document(target_id)

    def _follower_doc(self, user_id: str, follower_id: str):
        return self.followers_ref.document(user_id).collection('users').document(follower_id)

    def follow(self, user_id: str, target_id: str) -> bool:
        """
        target_id 사용자를 팔로우합니다.
        :return: 새로 팔로우했으면 True, 이미 팔로우 중이면 False
        """
        if user_id == target_id:
            raise ValueError("자기 자신을 팔로우할 수 없습니다.")

        if not self.users_ref.document(target_id).get().exists:
            raise LookupError("팔로우할 사용자를 찾을 수 없습니다.")

        if self._following_doc(user_id, target_id).get().exists:
            return False

        now = DateTimeUtils.now()
        batch = self.db.batch()
        batch.set(self._following_doc(user_id, target_id), {'uid': target_id, 'createdAt': now})
        batch.set(self._follower_doc(target_id, user_id), {'uid': user_id, 'createdAt': now})
        batch.commit()
        logging.info(f"팔로우 완료: {user_id} -> {target_id}")

        if self.notification_service:
            self.notification_service.notify_follow(actor_id=user_id, followed_id=target_id)
        return True

    def unfollow(self, user_id: str, target_id: str) -> None:
        batch = self.db.batch()
        batch.delete(self._following_doc(user_id, target_id))
        batch.delete(self._follower_doc(target_id, user_id))
        batch.commit()
        logging.info(f"언팔로우 완료: {user_id} -> {target_id}")

    def is_following(self, user_id: str, target_id: str) -> bool:
        return self._following_doc(user_id, target_id).get().exists

    def get_following_ids(self, user_id: str) -> Set[str]:
        docs = self.following_ref.document(user_id).collection('users').stream()
        return {doc.id for doc in docs}

    def get_follower_ids(self, user_id: str) -> Set[str]:
        docs = self.followers_ref.document(user_id).collection('users').stream()
        return {doc.id for doc in docs}

    def get_mutual_followers(self, user_id: str) -> Set[str]:
        """following 과 followers 를 각각 조회한 뒤 교집합을 돌려줍니다."""
        following = self.get_following_ids(user_id)
        followers = self.get_follower_ids(user_id)
        mutual = mutual_followers(following, followers)
        logging.info(f"상호 팔로워 {len(mutual)}명 (user_id: {user_id})")
        return mutual

    def get_user_profiles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """uid 목록의 공개 프로필을 'in' 쿼리 제한에 맞춰 나눠서 조회합니다."""
        ids = sorted(set(user_ids))
        profiles = []
        for chunk in chunked(ids):
            refs = [self.users_ref.document(uid) for uid in chunk]
            docs = self.users_ref.where(filter=FieldFilter('__name__', 'in', refs)).stream()
            for doc in docs:
                public = (doc.to_dict() or {}).get('public') or {}
                profiles.append({
                    'user_id': doc.id,
                    'display_name': public.get('displayName'),
                    'photo_url': public.get('photoURL'),
                    'bio': public.get('bio'),
                })
        return profiles

    def list_following(self, user_id: str) -> List[Dict[str, Any]]:
        return self.get_user_profiles(self.get_following_ids(user_id))

    def list_followers(self, user_id: str) -> List[Dict[str, Any]]:
        return self.get_user_profiles(self.get_follower_ids(user_id))

