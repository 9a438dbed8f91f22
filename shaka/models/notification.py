# shaka/models/notification.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

class NotificationType(Enum):
    """알림 유형을 정의하는 Enum 클래스"""
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    REPORT = "report"

@dataclass
class NotificationItem:
    """
    Firestore 'notifications/{uid}/items' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    수신자만 read 값을 바꿀 수 있습니다.
    """
    type: NotificationType
    actorUid: str          # 알림을 유발한 사용자 ID
    actorName: str
    message: str
    targetType: Optional[str] = None  # work, question, user, report
    targetId: Optional[str] = None
    snippet: Optional[str] = None     # 댓글 내용 등 미리보기 텍스트
    read: bool = False
    createdAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
