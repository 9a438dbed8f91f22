# shaka/api/reports/services.py
import logging
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, Dict, Any

from shaka.models.report import Report, ReportReason, REPORT_TARGET_TYPES
from shaka.services.notification_service import NotificationService
from shaka.utils.datetime_utils import DateTimeUtils


class ReportService:
    """
    신고 접수를 담당하는 서비스 클래스.
    - 'reports' 컬렉션에 pending 상태로 저장하고 운영자에게 알립니다.
    """
    def __init__(self, notification_service: Optional[NotificationService] = None, db=None):
        self.db = db or firestore.client()
        self.reports_ref = self.db.collection('reports')
        self.notification_service = notification_service

    def submit_report(self, reporter_id: str, target_id: str, target_type: str, target_user_id: str,
                      reason: str, target_title: str = "", additional_details: str = "") -> Dict[str, Any]:
        """
        신고를 저장합니다.

        :param reason: ReportReason 의 value (예: "Spam")
        :raises ValueError: 대상 종류나 사유가 잘못된 경우, 자기 자신을 신고한 경우
        """
        if target_type not in REPORT_TARGET_TYPES:
            raise ValueError(f"신고할 수 없는 대상입니다: {target_type}")
        try:
            report_reason = ReportReason(reason)
        except ValueError:
            raise ValueError(f"알 수 없는 신고 사유입니다: {reason}")
        if target_user_id == reporter_id:
            raise ValueError("자기 자신을 신고할 수 없습니다.")

        report = Report(
            reporterId=reporter_id,
            targetId=target_id,
            targetType=target_type,
            targetUserId=target_user_id,
            reason=report_reason.value,
            reasonDescription=report_reason.description,
            targetTitle=target_title or "",
            additionalDetails=(additional_details or "").strip(),
            createdAt=DateTimeUtils.now(),
        )
        report_data = asdict(report)
        doc_ref = self.reports_ref.document()
        doc_ref.set(report_data)
        logging.info(f"신고 접수 완료 (report_id: {doc_ref.id}, {target_type}: {target_id}, reason: {report.reason})")

        if self.notification_service:
            self.notification_service.notify_report(reporter_id, doc_ref.id, report_data)

        report_data['report_id'] = doc_ref.id
        return report_data
