# shaka/api/auth/schemas.py
from marshmallow import Schema, fields

class FirebaseLoginSchema(Schema):
    """Firebase 로그인(애플/이메일 등) 후 받은 ID 토큰 교환 요청"""
    id_token = fields.Str(
        required=True,
        metadata={"description": "Firebase Auth ID 토큰"}
    )

class LogoutRequestSchema(Schema):
    """로그아웃 요청의 유효성을 검사하는 스키마"""
    access_token = fields.Str(required=True)
    refresh_token = fields.Str(required=True)
