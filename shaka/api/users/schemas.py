# shaka/api/users/schemas.py
from marshmallow import Schema, fields, validate

class UserPublicResponseSchema(Schema):
    """
    GET /api/users/{user_id}
    다른 사용자의 프로필 정보를 응답할 때 사용하는 스키마.
    이메일 등 private 영역의 정보는 포함하지 않습니다.
    """
    user_id = fields.Str(required=True, dump_only=True)
    display_name = fields.Str(required=True)
    photo_url = fields.Str(allow_none=True)
    bio = fields.Str(allow_none=True)
    links = fields.List(fields.Str(), dump_default=list)
    works_count = fields.Int(required=True)
    questions_count = fields.Int(required=True)

class ProfileUpdateSchema(Schema):
    """PATCH /api/users/me 요청 본문. 보낸 필드만 수정합니다."""
    display_name = fields.Str(validate=validate.Length(min=1, max=30))
    photo_url = fields.Str(allow_none=True)
    bio = fields.Str(validate=validate.Length(max=300))
    links = fields.List(fields.Str(), validate=validate.Length(max=5))

class FCMTokenSchema(Schema):
    """
    POST /api/users/me/fcm-token
    FCM 토큰 등록/업데이트 요청 본문의 유효성을 검사하는 스키마.
    """
    fcm_token = fields.Str(required=True, error_messages={"required": "fcm_token은 필수 항목입니다."})
    platform = fields.Str(load_default="ios", validate=validate.OneOf(["ios", "android"]))
