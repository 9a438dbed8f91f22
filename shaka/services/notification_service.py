# shaka/services/notification_service.py
import logging
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, Dict, Any, List, Iterable

from shaka.models.notification import NotificationItem, NotificationType
from shaka.services.push_service import PushService
from shaka.utils.datetime_utils import DateTimeUtils

FALLBACK_ACTOR_NAME = "Someone"
SNIPPET_LENGTH = 50

TARGET_LABELS = {
    "work": "work",
    "question": "question",
}


def build_message(n_type: NotificationType, actor_name: str, target_type: Optional[str]) -> str:
    """알림 목록과 푸시 본문에 쓰일 문구를 만듭니다."""
    label = TARGET_LABELS.get(target_type, "post")
    if n_type == NotificationType.LIKE:
        return f"{actor_name} liked your {label}"
    if n_type == NotificationType.COMMENT:
        return f"{actor_name} commented on your {label}"
    if n_type == NotificationType.FOLLOW:
        return f"{actor_name} started following you"
    if n_type == NotificationType.REPORT:
        return f"{actor_name} submitted a report ({target_type})"
    return f"{actor_name} sent you a notification"


class NotificationService:
    """
    알림 팬아웃과 알림함 관리를 담당하는 공용 서비스 클래스.
    - 좋아요/댓글/팔로우/신고 이벤트마다 수신자 알림 문서를 만들고 푸시를 보냅니다.
    - 자기 자신에게 보내는 알림은 만들지 않습니다.
    - 같은 이벤트가 두 번 들어오면 알림도 두 번 생성됩니다. (멱등성 없음)
    """
    def __init__(self, push_service: PushService, db=None, list_limit: int = 50,
                 report_reviewer_uids: Optional[Iterable[str]] = None):
        self.db = db or firestore.client()
        self.notifications_ref = self.db.collection('notifications')
        self.users_ref = self.db.collection('users')
        self.push_service = push_service
        self.list_limit = list_limit
        self.report_reviewer_uids = list(report_reviewer_uids or [])

    def _items_ref(self, user_id: str):
        return self.notifications_ref.document(user_id).collection('items')

    def resolve_actor_name(self, actor_id: str) -> str:
        """발신자 표시 이름을 조회합니다. 실패하면 기본 문구를 사용합니다."""
        try:
            actor_doc = self.users_ref.document(actor_id).get()
            if not actor_doc.exists:
                return FALLBACK_ACTOR_NAME
            data = actor_doc.to_dict() or {}
            public = data.get('public') or {}
            return public.get('displayName') or data.get('displayName') or FALLBACK_ACTOR_NAME
        except Exception as e:
            logging.warning(f"발신자 이름 조회 실패, 기본값 사용 (actor_id: {actor_id}): {e}")
            return FALLBACK_ACTOR_NAME

    # --- 팬아웃 ---
    def create_notification(self, recipient_id: str, actor_id: str, n_type: NotificationType,
                            target_type: Optional[str] = None, target_id: Optional[str] = None,
                            snippet: Optional[str] = None) -> Optional[str]:
        """
        알림 문서를 생성하고 수신자의 모든 기기로 푸시를 보냅니다.

        :param recipient_id: 알림을 받을 사용자 ID
        :param actor_id: 알림을 유발한 사용자 ID
        :param n_type: 알림 유형 (NotificationType Enum)
        :param target_type: 대상 종류 (work, question, user, report)
        :param target_id: 대상 객체 ID
        :param snippet: 미리보기 텍스트 (최대 50자)
        :return: 생성된 알림 문서 ID, 생성하지 않았으면 None
        """
        if not recipient_id or recipient_id == actor_id:
            return None  # 자기 자신에게는 알림을 생성하지 않음

        try:
            actor_name = self.resolve_actor_name(actor_id)
            message = build_message(n_type, actor_name, target_type)
            item = NotificationItem(
                type=n_type,
                actorUid=actor_id,
                actorName=actor_name,
                message=message,
                targetType=target_type,
                targetId=target_id,
                snippet=snippet[:SNIPPET_LENGTH] if snippet else None,
                createdAt=DateTimeUtils.now(),
            )

            # Enum 멤버를 문자열 값으로 변환하여 저장
            item_dict = asdict(item)
            item_dict['type'] = item.type.value

            doc_ref = self._items_ref(recipient_id).document()
            doc_ref.set(item_dict)
            logging.info(f"{n_type.value} 알림 생성 완료: {actor_id} -> {recipient_id}")
        except Exception as e:
            logging.error(f"알림 생성 중 오류 발생: {e}", exc_info=True)
            return None

        push_data = {
            "type": n_type.value,
            "actorUid": actor_id,
            "targetType": target_type,
            "targetId": target_id,
            "notificationId": doc_ref.id,
        }
        self.push_service.send_to_user(recipient_id, title="Shaka", body=message, data=push_data)
        return doc_ref.id

    def notify_like(self, actor_id: str, owner_id: str, target_type: str, target_id: str,
                    snippet: Optional[str] = None) -> Optional[str]:
        return self.create_notification(owner_id, actor_id, NotificationType.LIKE,
                                        target_type=target_type, target_id=target_id, snippet=snippet)

    def notify_comment(self, actor_id: str, owner_id: str, target_type: str, target_id: str,
                       comment_text: str) -> Optional[str]:
        return self.create_notification(owner_id, actor_id, NotificationType.COMMENT,
                                        target_type=target_type, target_id=target_id, snippet=comment_text)

    def notify_follow(self, actor_id: str, followed_id: str) -> Optional[str]:
        return self.create_notification(followed_id, actor_id, NotificationType.FOLLOW,
                                        target_type="user", target_id=actor_id)

    def notify_report(self, reporter_id: str, report_id: str, report_data: Dict[str, Any]) -> List[str]:
        """신고가 접수되면 운영자들에게 알립니다."""
        created = []
        for reviewer_id in self.report_reviewer_uids:
            notification_id = self.create_notification(
                reviewer_id, reporter_id, NotificationType.REPORT,
                target_type=report_data.get('targetType'), target_id=report_id,
                snippet=report_data.get('reason')
            )
            if notification_id:
                created.append(notification_id)
        return created

    # --- 알림함 ---
    def list_notifications(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """최신순으로 알림을 조회합니다."""
        query = (self._items_ref(user_id)
                 .order_by('createdAt', direction=firestore.Query.DESCENDING)
                 .limit(limit or self.list_limit))
        notifications = []
        for doc in query.stream():
            data = DateTimeUtils.from_firestore(doc.to_dict())
            data['id'] = doc.id
            notifications.append(data)
        return notifications

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self.list_notifications(user_id) if not n.get('read', False))

    def mark_as_read(self, user_id: str, notification_id: str, read: bool = True) -> None:
        doc_ref = self._items_ref(user_id).document(notification_id)
        if not doc_ref.get().exists:
            raise ValueError("알림을 찾을 수 없습니다.")
        doc_ref.update({'read': read})

    def mark_all_as_read(self, user_id: str) -> int:
        """읽지 않은 알림을 한 번의 배치로 모두 읽음 처리합니다."""
        unread = [n for n in self.list_notifications(user_id) if not n.get('read', False)]
        if not unread:
            return 0
        batch = self.db.batch()
        for notification in unread:
            batch.update(self._items_ref(user_id).document(notification['id']), {'read': True})
        batch.commit()
        logging.info(f"알림 {len(unread)}건 읽음 처리 (user_id: {user_id})")
        return len(unread)

    def delete_notification(self, user_id: str, notification_id: str) -> None:
        doc_ref = self._items_ref(user_id).document(notification_id)
        if not doc_ref.get().exists:
            raise ValueError("알림을 찾을 수 없습니다.")
        doc_ref.delete()

    def delete_all_for_user(self, user_id: str) -> int:
        """계정 삭제 시 사용자의 알림을 모두 지웁니다. (배치당 최대 500건)"""
        docs = list(self._items_ref(user_id).stream())
        for i in range(0, len(docs), 500):
            batch = self.db.batch()
            for doc in docs[i:i + 500]:
                batch.delete(doc.reference)
            batch.commit()
        return len(docs)
