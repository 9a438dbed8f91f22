# shaka/api/follows/schemas.py
from marshmallow import Schema, fields


class UserSummarySchema(Schema):
    """팔로잉/팔로워 목록에 들어가는 공개 프로필 요약"""
    user_id = fields.Str(required=True)
    display_name = fields.Str(allow_none=True)
    photo_url = fields.Str(allow_none=True)
    bio = fields.Str(allow_none=True)


class FollowStatusSchema(Schema):
    target_id = fields.Str(required=True)
    is_following = fields.Bool(required=True)
    is_followed_by = fields.Bool(dump_default=False)
