# shaka/api/reports/schemas.py
from marshmallow import Schema, fields, validate

from shaka.models.report import ReportReason, REPORT_TARGET_TYPES


class ReportCreateSchema(Schema):
    """POST /api/reports 요청 본문의 유효성을 검사합니다."""
    target_id = fields.Str(required=True, validate=validate.Length(min=1))
    target_type = fields.Str(required=True, validate=validate.OneOf(REPORT_TARGET_TYPES))
    target_user_id = fields.Str(required=True, validate=validate.Length(min=1))
    reason = fields.Str(required=True, validate=validate.OneOf([r.value for r in ReportReason]))
    target_title = fields.Str(load_default="")
    additional_details = fields.Str(load_default="", validate=validate.Length(max=1000))


class ReportResponseSchema(Schema):
    report_id = fields.Str(required=True)
    target_id = fields.Str(attribute='targetId')
    target_type = fields.Str(attribute='targetType')
    reason = fields.Str()
    status = fields.Str()
    created_at = fields.DateTime(attribute='createdAt')


class ReportReasonSchema(Schema):
    reason = fields.Str(required=True)
    description = fields.Str(required=True)
