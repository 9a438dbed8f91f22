# shaka/api/locations/schemas.py
from marshmallow import Schema, fields, validate


class CoordinateUpdateSchema(Schema):
    """
    PUT /api/locations/me/coordinate
    기기에서 측정한 현재 좌표
    """
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))


class StartSharingSchema(Schema):
    """
    POST /api/locations/me/start
    duration_seconds 를 생략하면 서버 기본값(1시간)을 사용합니다.
    """
    duration_seconds = fields.Int(load_default=None, validate=validate.Range(min=1))


class LiveActivitySchema(Schema):
    remaining_minutes = fields.Int(required=True)
    shared_with_count = fields.Int(required=True)


class SharingStatusSchema(Schema):
    user_id = fields.Str(required=True)
    state = fields.Str(required=True)
    is_sharing = fields.Bool(required=True)
    expires_at = fields.DateTime(allow_none=True)
    last_end_reason = fields.Str(allow_none=True)
    live_activity = fields.Nested(LiveActivitySchema, required=True)


class CoordinateSchema(Schema):
    latitude = fields.Float(required=True)
    longitude = fields.Float(required=True)


class LocationShareSchema(Schema):
    """상호 팔로워 지도에 표시할 위치 한 건"""
    user_id = fields.Str(required=True)
    coordinate = fields.Nested(CoordinateSchema, required=True)
    display_name = fields.Str(required=True)
    photo_url = fields.Str(allow_none=True)
    updated_at = fields.DateTime(required=True)
    expires_at = fields.DateTime(required=True)
