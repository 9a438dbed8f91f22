# shaka/models/comment.py
from dataclasses import dataclass, field
from datetime import datetime, timezone

@dataclass
class Comment:
    """
    Firestore '{works|questions}/{post_id}/comments' 컬렉션의 문서 구조.
    질문 게시물의 댓글은 비공개이며, 작성자와 게시물 작성자만 볼 수 있습니다.
    """
    comment_id: str
    post_id: str
    post_type: str
    userID: str
    displayName: str
    text: str
    postUserID: str = ""
    isPrivate: bool = False
    createdAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_visible_to(self, user_id: str) -> bool:
        if not self.isPrivate:
            return True
        return user_id in (self.userID, self.postUserID)
