# shaka/api/auth/services.py
import logging
from datetime import datetime, timezone
from dataclasses import asdict
from typing import Dict, Any, Tuple, Optional
from firebase_admin import firestore, auth as firebase_auth
from flask import Flask

from shaka.models.user import User, UserPublic, UserPrivate, default_display_name
from shaka.utils.datetime_utils import DateTimeUtils

class AuthService:
    def __init__(self):
        self.db = None
        self.users_ref = None
        self.revoked_tokens_ref = None
        self.app: Optional[Flask] = None

    def init_app(self, app: Flask, db=None):
        """앱 초기화 과정에서 호출되어 DB 연결 및 앱 컨텍스트를 설정합니다."""
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.revoked_tokens_ref = self.db.collection('revoked_tokens')
        self.app = app

    def verify_firebase_token(self, id_token: str) -> Dict[str, Any]:
        """
        앱에서 받은 Firebase ID 토큰을 검증합니다.
        :raises ValueError: 토큰이 유효하지 않거나 만료된 경우
        """
        try:
            return firebase_auth.verify_id_token(id_token)
        except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError) as e:
            logging.warning(f"Firebase ID 토큰 검증 실패: {e}")
            raise ValueError("유효하지 않은 Firebase ID 토큰입니다.")

    def get_or_create_user(self, decoded_token: Dict[str, Any]) -> Tuple[str, bool]:
        """
        'users/{uid}' 문서가 없으면 public/private/stats 구조로 새로 만듭니다.
        :return: (uid, 신규 가입 여부)
        """
        uid = decoded_token.get('uid')
        if not uid:
            raise ValueError("ID 토큰에 uid 가 없습니다.")

        user_ref = self.users_ref.document(uid)
        if user_ref.get().exists:
            return uid, False

        new_user = User(
            public=UserPublic(
                displayName=decoded_token.get('name') or default_display_name(uid),
                photoURL=decoded_token.get('picture'),
            ),
            private=UserPrivate(joinedAt=DateTimeUtils.now(), email=decoded_token.get('email')),
        )
        user_ref.set(DateTimeUtils.for_firestore(asdict(new_user)))
        logging.info(f"신규 사용자 생성 (uid: {uid})")
        return uid, True

    # --- Blocklist 관련 로직 ---
    def add_token_to_blocklist(self, jti: str, expires: datetime):
        """전달받은 토큰의 jti를 만료 시간과 함께 Firestore에 저장합니다."""
        try:
            token_data = {
                'revoked_at': DateTimeUtils.now(),
                'expires_at': expires
            }
            self.revoked_tokens_ref.document(jti).set(DateTimeUtils.for_firestore(token_data))
        except Exception as e:
            logging.error(f"Blocklist 토큰 추가 실패 (jti: {jti}): {e}")

    def is_token_revoked(self, jwt_payload: dict) -> bool:
        """jti를 이용해 해당 토큰이 무효화 목록에 있는지 확인합니다."""
        jti = jwt_payload['jti']
        doc = self.revoked_tokens_ref.document(jti).get()
        return doc.exists

    def logout_user(self, access_jti: str, access_exp: int, refresh_jti: str, refresh_exp: int):
        """Access 토큰과 Refresh 토큰을 모두 Blocklist에 추가합니다."""
        self.add_token_to_blocklist(access_jti, datetime.fromtimestamp(access_exp, tz=timezone.utc))
        self.add_token_to_blocklist(refresh_jti, datetime.fromtimestamp(refresh_exp, tz=timezone.utc))
        logging.info(f"사용자 로그아웃 처리 완료. JTI: {access_jti[:8]}..., {refresh_jti[:8]}...")

auth_service = AuthService()
