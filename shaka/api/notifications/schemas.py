# shaka/api/notifications/schemas.py
from marshmallow import Schema, fields


class NotificationResponseSchema(Schema):
    """알림 목록 응답. 필드명은 저장된 문서와 같습니다."""
    id = fields.Str(required=True)
    type = fields.Str(required=True)
    actorUid = fields.Str(required=True)
    actorName = fields.Str(required=True)
    message = fields.Str(required=True)
    targetType = fields.Str(allow_none=True)
    targetId = fields.Str(allow_none=True)
    snippet = fields.Str(allow_none=True)
    read = fields.Bool(dump_default=False)
    createdAt = fields.DateTime(allow_none=True)


class MarkReadSchema(Schema):
    read = fields.Bool(load_default=True)
