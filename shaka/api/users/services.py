# shaka/api/users/services.py
import logging
from typing import Optional, Dict, Any, List
from firebase_admin import firestore, auth as firebase_auth

from shaka.api.posts.services import PostService, POST_COLLECTIONS
from shaka.models.user import default_display_name
from shaka.services.location_sharing_service import LocationSharingService
from shaka.services.notification_service import NotificationService
from shaka.services.push_service import PushService
from shaka.utils.datetime_utils import DateTimeUtils

# Firestore 배치 한 번에 넣는 최대 쓰기 수 (한도 500 중 1개 여유)
SYNC_BATCH_LIMIT = 499


def profile_display_name(user_id: str, data: Optional[Dict[str, Any]]) -> str:
    """public.displayName, 예전 구조의 displayName, 기본 이름 순으로 표시 이름을 정합니다."""
    data = data or {}
    return ((data.get('public') or {}).get('displayName') or data.get('displayName')
            or default_display_name(user_id))


def update_posts_display_name(db, user_id: str, display_name: str, only_stale: bool = False) -> int:
    """
    작품/질문 중 userID 가 user_id 인 문서의 displayName 을 갱신합니다.
    배치당 최대 499건씩 나눠 커밋합니다.

    :param only_stale: True 면 이미 같은 이름인 문서는 건너뜁니다.
    :return: 갱신한 문서 수
    """
    docs = []
    for collection in POST_COLLECTIONS.values():
        for doc in db.collection(collection).where('userID', '==', user_id).stream():
            if only_stale and (doc.to_dict() or {}).get('displayName') == display_name:
                continue
            docs.append(doc)

    for i in range(0, len(docs), SYNC_BATCH_LIMIT):
        batch = db.batch()
        for doc in docs[i:i + SYNC_BATCH_LIMIT]:
            batch.update(doc.reference, {'displayName': display_name, 'updatedAt': firestore.SERVER_TIMESTAMP})
        batch.commit()
    return len(docs)


class UserService:
    """
    사용자 관련 비즈니스 로직을 담당하는 서비스 클래스.
    - 프로필은 'users/{uid}' 의 public/private/stats 구조를 사용합니다.
    - 공용 서비스(알림, 푸시, 위치 공유)는 의존성 주입을 통해 받습니다.
    """
    def __init__(self, post_service: PostService, notification_service: NotificationService,
                 push_service: PushService, location_service: LocationSharingService, db=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.post_service = post_service
        self.notification_service = notification_service
        self.push_service = push_service
        self.location_service = location_service

    def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        사용자 ID로 공개 프로필과 작품/질문 수를 함께 조회합니다.
        :return: 프로필 딕셔너리 또는 None
        """
        try:
            user_doc = self.users_ref.document(user_id).get()
            if not user_doc.exists:
                return None
            data = DateTimeUtils.from_firestore(user_doc.to_dict() or {})
            public = data.get('public') or {}
            return {
                'user_id': user_id,
                'display_name': profile_display_name(user_id, data),
                'photo_url': public.get('photoURL') or data.get('photoURL'),
                'bio': public.get('bio'),
                'links': public.get('links') or [],
                'works_count': self.post_service.count_posts_by_user('work', user_id),
                'questions_count': self.post_service.count_posts_by_user('question', user_id),
            }
        except Exception as e:
            logging.error(f"사용자 프로필 조회 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise

    def update_profile(self, user_id: str, display_name: Optional[str] = None, photo_url: Optional[str] = None,
                       bio: Optional[str] = None, links: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        공개 프로필을 수정합니다.
        표시 이름이 바뀌면 사용자의 모든 작품/질문에도 반영합니다.
        """
        user_ref = self.users_ref.document(user_id)
        user_doc = user_ref.get()
        if not user_doc.exists:
            raise ValueError("사용자를 찾을 수 없습니다.")
        old_name = ((user_doc.to_dict() or {}).get('public') or {}).get('displayName')

        updates = {}
        if display_name is not None:
            updates['public.displayName'] = display_name
        if photo_url is not None:
            updates['public.photoURL'] = photo_url
        if bio is not None:
            updates['public.bio'] = bio
        if links is not None:
            updates['public.links'] = links
        if updates:
            user_ref.update(updates)
            logging.info(f"프로필 수정 완료 (user_id: {user_id}, fields: {list(updates)})")

        if display_name is not None and display_name != old_name:
            self.sync_display_name(user_id, display_name)
        return self.get_user_profile(user_id)

    def sync_display_name(self, user_id: str, display_name: str) -> int:
        """
        사용자의 모든 작품/질문 문서의 displayName 을 갱신합니다.
        :return: 갱신한 게시물 수
        """
        updated = update_posts_display_name(self.db, user_id, display_name)
        logging.info(f"게시물 {updated}건의 표시 이름 갱신 (user_id: {user_id})")
        return updated

    def recount_stats(self, user_id: str) -> Dict[str, int]:
        """저장된 작품/질문 수가 실제와 다르면 바로잡습니다."""
        user_ref = self.users_ref.document(user_id)
        user_doc = user_ref.get()
        if not user_doc.exists:
            raise ValueError("사용자를 찾을 수 없습니다.")
        saved = (user_doc.to_dict() or {}).get('stats') or {}
        actual = {
            'worksCount': self.post_service.count_posts_by_user('work', user_id),
            'questionsCount': self.post_service.count_posts_by_user('question', user_id),
        }
        if saved.get('worksCount', 0) != actual['worksCount'] or saved.get('questionsCount', 0) != actual['questionsCount']:
            user_ref.update({
                'stats.worksCount': actual['worksCount'],
                'stats.questionsCount': actual['questionsCount'],
            })
            logging.info(f"통계 불일치 수정 (user_id: {user_id}): {saved} -> {actual}")
        return actual

    # --- 디바이스 토큰 ---
    def register_device_token(self, user_id: str, token: str, platform: str = "ios") -> None:
        self.push_service.register_token(user_id, token, platform)

    def delete_device_token(self, user_id: str, token: str) -> None:
        self.push_service.delete_token(user_id, token)

    # --- 회원 탈퇴 ---
    def delete_user_account(self, user_id: str) -> None:
        """
        사용자의 알림, 디바이스 토큰, 위치 기록을 지우고 Firebase Auth 에서 사용자를 삭제합니다.
        :param user_id: 삭제할 사용자의 ID
        """
        deleted_notifications = self.notification_service.delete_all_for_user(user_id)
        deleted_tokens = self.push_service.delete_all_tokens(user_id)
        if not self.location_service.stop(user_id):
            raise RuntimeError("위치 기록을 삭제하지 못했습니다.")
        self.location_service.sessions.pop(user_id, None)
        logging.info(
            f"사용자 데이터 정리 완료 (user_id: {user_id}): 알림 {deleted_notifications}건, 토큰 {deleted_tokens}건"
        )

        try:
            firebase_auth.delete_user(user_id)
            logging.info(f"Firebase Auth 사용자 삭제 성공 (user_id: {user_id}).")
        except firebase_auth.UserNotFoundError:
            logging.warning(f"Firebase Auth에서 이미 삭제된 사용자입니다 (user_id: {user_id}).")
        except Exception as e:
            logging.error(f"회원 탈퇴 처리 중 Firebase Auth 사용자 삭제 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise
