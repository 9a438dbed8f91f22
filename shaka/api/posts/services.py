# shaka/api/posts/services.py
import logging
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, Dict, Any, List, Tuple

from shaka.models.comment import Comment
from shaka.services.notification_service import NotificationService
from shaka.utils.datetime_utils import DateTimeUtils

# 게시물 종류별 Firestore 컬렉션
POST_COLLECTIONS = {
    "work": "works",
    "question": "questions",
}


class PostService:
    """
    작품(works)과 질문(questions) 게시물의 좋아요/댓글 로직을 담당하는 서비스 클래스.
    - 좋아요는 '{type}/{id}/likes/{uid}' 문서와 likeCount 필드로 관리합니다.
    - 댓글은 '{type}/{id}/comments' 하위 컬렉션과 commentCount 필드로 관리합니다.
    - 좋아요/댓글이 생기면 게시물 작성자(userID)에게 알림을 보냅니다.
    """
    def __init__(self, notification_service: Optional[NotificationService] = None, db=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.notification_service = notification_service

    def _post_ref(self, post_type: str, post_id: str):
        collection = POST_COLLECTIONS.get(post_type)
        if not collection:
            raise ValueError(f"지원하지 않는 게시물 종류입니다: {post_type}")
        return self.db.collection(collection).document(post_id)

    def _display_name(self, user_id: str) -> str:
        doc = self.users_ref.document(user_id).get()
        if not doc.exists:
            raise ValueError("작성자 정보를 찾을 수 없습니다.")
        data = doc.to_dict() or {}
        return (data.get('public') or {}).get('displayName') or data.get('displayName') or "Unknown"

    def get_post(self, post_type: str, post_id: str, current_user_id: Optional[str] = None) -> Dict[str, Any]:
        post_doc = self._post_ref(post_type, post_id).get()
        if not post_doc.exists:
            raise ValueError("게시물을 찾을 수 없습니다.")
        post = DateTimeUtils.from_firestore(post_doc.to_dict())
        post['post_id'] = post_doc.id
        post['post_type'] = post_type
        post['is_liked'] = self.is_liked(current_user_id, post_type, post_id) if current_user_id else False
        return post

    def count_posts_by_user(self, post_type: str, user_id: str) -> int:
        collection = self.db.collection(POST_COLLECTIONS[post_type])
        result = collection.where('userID', '==', user_id).count().get()
        return result[0][0].value

    # --- 좋아요 ---
    def is_liked(self, user_id: str, post_type: str, post_id: str) -> bool:
        like_ref = self._post_ref(post_type, post_id).collection('likes').document(user_id)
        return like_ref.get().exists

    def toggle_like(self, user_id: str, post_type: str, post_id: str) -> Tuple[bool, int]:
        """
        게시물 좋아요를 누르거나 취소합니다.
        :return: (변경 후 좋아요 여부, 변경 후 likeCount)
        """
        post_ref = self._post_ref(post_type, post_id)
        like_ref = post_ref.collection('likes').document(user_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _toggle_like_in_transaction(transaction):
            post_doc = post_ref.get(transaction=transaction)
            if not post_doc.exists:
                raise ValueError("게시물을 찾을 수 없습니다.")
            like_doc = like_ref.get(transaction=transaction)
            post_data = post_doc.to_dict()
            like_count = post_data.get('likeCount', 0)

            if like_doc.exists:
                transaction.delete(like_ref)
                transaction.update(post_ref, {'likeCount': firestore.Increment(-1)})
                return False, max(like_count - 1, 0), post_data

            transaction.set(like_ref, {'userID': user_id, 'createdAt': DateTimeUtils.now()})
            transaction.update(post_ref, {'likeCount': firestore.Increment(1)})
            return True, like_count + 1, post_data

        is_liked, like_count, post_data = _toggle_like_in_transaction(transaction)
        logging.info(f"좋아요 {'추가' if is_liked else '취소'} (user_id: {user_id}, {post_type}: {post_id})")

        if is_liked and self.notification_service:
            self.notification_service.notify_like(
                actor_id=user_id, owner_id=post_data.get('userID'),
                target_type=post_type, target_id=post_id, snippet=post_data.get('title')
            )
        return is_liked, like_count

    # --- 댓글 ---
    def create_comment(self, post_type: str, post_id: str, user_id: str, text: str) -> Dict[str, Any]:
        """댓글을 작성하고 게시물 작성자에게 알림을 보냅니다."""
        display_name = self._display_name(user_id)
        post_ref = self._post_ref(post_type, post_id)
        comment_ref = post_ref.collection('comments').document()
        transaction = self.db.transaction()

        @firestore.transactional
        def _create_in_transaction(transaction):
            post_doc = post_ref.get(transaction=transaction)
            if not post_doc.exists:
                raise ValueError("댓글을 작성할 게시물이 존재하지 않습니다.")
            post_data = post_doc.to_dict()
            comment = Comment(
                comment_id=comment_ref.id,
                post_id=post_id,
                post_type=post_type,
                userID=user_id,
                displayName=display_name,
                text=text,
                postUserID=post_data.get('userID', ""),
                isPrivate=post_type == "question",
                createdAt=DateTimeUtils.now(),
            )
            transaction.set(comment_ref, asdict(comment))
            transaction.update(post_ref, {'commentCount': firestore.Increment(1)})
            return comment

        comment = _create_in_transaction(transaction)

        if self.notification_service:
            self.notification_service.notify_comment(
                actor_id=user_id, owner_id=comment.postUserID,
                target_type=post_type, target_id=post_id, comment_text=text
            )
        return asdict(comment)

    def get_comments(self, post_type: str, post_id: str, current_user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """작성 순으로 댓글을 조회합니다. 비공개 댓글은 볼 수 있는 사용자에게만 포함됩니다."""
        query = (self._post_ref(post_type, post_id).collection('comments')
                 .order_by('createdAt')
                 .limit(limit))
        comments = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            comment = Comment(
                comment_id=doc.id,
                post_id=post_id,
                post_type=post_type,
                userID=data.get('userID', ""),
                displayName=data.get('displayName', "Unknown"),
                text=data.get('text', ""),
                postUserID=data.get('postUserID', ""),
                isPrivate=data.get('isPrivate', post_type == "question"),
                createdAt=data.get('createdAt') or DateTimeUtils.now(),
            )
            if comment.is_visible_to(current_user_id):
                comments.append(asdict(comment))
        return comments

    def delete_comment(self, post_type: str, post_id: str, comment_id: str, user_id: str) -> None:
        """댓글을 삭제합니다. (작성자 본인만 가능)"""
        post_ref = self._post_ref(post_type, post_id)
        comment_ref = post_ref.collection('comments').document(comment_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _delete_in_transaction(transaction):
            comment_doc = comment_ref.get(transaction=transaction)
            if not comment_doc.exists:
                raise ValueError("삭제할 댓글이 없습니다.")
            if comment_doc.to_dict().get('userID') != user_id:
                raise PermissionError("댓글을 삭제할 권한이 없습니다.")
            transaction.delete(comment_ref)
            transaction.update(post_ref, {'commentCount': firestore.Increment(-1)})

        _delete_in_transaction(transaction)
        logging.info(f"댓글 삭제 완료 (comment_id: {comment_id})")
