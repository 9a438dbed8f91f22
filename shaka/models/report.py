# shaka/models/report.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

class ReportReason(Enum):
    """신고 사유. value는 앱에 표시되는 이름입니다."""
    SPAM = "Spam"
    INAPPROPRIATE = "Inappropriate Content"
    HARASSMENT = "Harassment or Bullying"
    VIOLENCE = "Violence or Dangerous Content"
    MISINFORMATION = "Misinformation"
    COPYRIGHT = "Copyright Violation"
    OTHER = "Other"

    @property
    def description(self) -> str:
        return REPORT_REASON_DESCRIPTIONS[self]

REPORT_REASON_DESCRIPTIONS = {
    ReportReason.SPAM: "Unwanted commercial content or spam",
    ReportReason.INAPPROPRIATE: "Sexually explicit or adult content",
    ReportReason.HARASSMENT: "Bullying, harassment, or hate speech",
    ReportReason.VIOLENCE: "Violence, self-harm, or dangerous activities",
    ReportReason.MISINFORMATION: "False or misleading information",
    ReportReason.COPYRIGHT: "Copyright or intellectual property violation",
    ReportReason.OTHER: "Other reason not listed",
}

REPORT_TARGET_TYPES = ("work", "question", "comment", "user")

@dataclass
class Report:
    """Firestore 'reports' 컬렉션의 문서 구조를 정의하는 데이터클래스."""
    reporterId: str
    targetId: str
    targetType: str
    targetUserId: str
    reason: str
    reasonDescription: str
    targetTitle: str = ""
    additionalDetails: str = ""
    status: str = "pending"
    reviewed: bool = False
    createdAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
