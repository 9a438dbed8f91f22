# shaka/services/push_service.py
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, List

from firebase_admin import firestore, messaging
from firebase_admin import exceptions as firebase_exceptions

from shaka.models.device_token import DeviceToken
from shaka.utils.datetime_utils import DateTimeUtils

# 토큰 자체가 더 이상 유효하지 않음을 뜻하는 FCM 오류들
PERMANENT_PUSH_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
    firebase_exceptions.InvalidArgumentError,
    firebase_exceptions.NotFoundError,
)

PRUNE_ALL = 'all'
PRUNE_PERMANENT = 'permanent'


@dataclass
class PushFailure:
    token: str
    error: str
    permanent: bool


@dataclass
class PushResult:
    """한 사용자에 대한 푸시 전송 결과"""
    sent: List[str] = field(default_factory=list)
    failed: List[PushFailure] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.sent)


def is_permanent_push_error(error: Exception) -> bool:
    return isinstance(error, PERMANENT_PUSH_ERRORS)


class PushService:
    """
    디바이스 토큰 관리와 FCM 푸시 전송을 담당하는 공용 서비스 클래스.
    - 토큰은 'users_private/{uid}/fcmTokens/{token}' 에 저장됩니다.
    - 전송에 실패한 토큰은 prune_policy 에 따라 삭제됩니다.
    """
    def __init__(self, db=None, prune_policy: str = PRUNE_ALL):
        self.db = db or firestore.client()
        self.private_ref = self.db.collection('users_private')
        if prune_policy not in (PRUNE_ALL, PRUNE_PERMANENT):
            raise ValueError(f"알 수 없는 토큰 정리 정책입니다: {prune_policy}")
        self.prune_policy = prune_policy

    def _tokens_ref(self, user_id: str):
        return self.private_ref.document(user_id).collection('fcmTokens')

    def register_token(self, user_id: str, token: str, platform: str = "ios") -> None:
        """디바이스 토큰을 등록하거나 갱신합니다."""
        device_token = DeviceToken(token=token, platform=platform, updatedAt=DateTimeUtils.now())
        data = asdict(device_token)
        data.pop('token')  # 문서 ID가 토큰 값입니다
        try:
            self._tokens_ref(user_id).document(token).set(data)
            logging.info(f"FCM 토큰 등록 완료 (user_id: {user_id}, platform: {platform})")
        except Exception as e:
            logging.error(f"FCM 토큰 등록 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise

    def delete_token(self, user_id: str, token: str) -> None:
        """로그아웃 시 해당 기기의 토큰을 삭제합니다."""
        try:
            self._tokens_ref(user_id).document(token).delete()
            logging.info(f"FCM 토큰 삭제 완료 (user_id: {user_id})")
        except Exception as e:
            logging.error(f"FCM 토큰 삭제 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise

    def get_tokens(self, user_id: str) -> List[str]:
        return [doc.id for doc in self._tokens_ref(user_id).stream()]

    def delete_all_tokens(self, user_id: str) -> int:
        """계정 삭제 시 사용자의 모든 토큰을 지웁니다."""
        tokens = self.get_tokens(user_id)
        self._delete_tokens(user_id, tokens)
        return len(tokens)

    def _should_prune(self, failure: PushFailure) -> bool:
        if self.prune_policy == PRUNE_ALL:
            return True
        return failure.permanent

    def _delete_tokens(self, user_id: str, tokens: List[str]) -> None:
        if not tokens:
            return
        batch = self.db.batch()
        for token in tokens:
            batch.delete(self._tokens_ref(user_id).document(token))
        batch.commit()

    def send_to_user(self, user_id: str, title: str, body: str,
                     data: Optional[Dict[str, str]] = None) -> PushResult:
        """
        사용자의 모든 디바이스 토큰으로 푸시를 보냅니다.
        실패한 토큰은 정책에 따라 삭제하고 결과를 PushResult 로 돌려줍니다.
        """
        result = PushResult()
        try:
            tokens = self.get_tokens(user_id)
        except Exception as e:
            logging.error(f"FCM 토큰 조회 실패 (user_id: {user_id}): {e}", exc_info=True)
            return result

        if not tokens:
            logging.info(f"등록된 FCM 토큰이 없어 푸시를 건너뜁니다 (user_id: {user_id})")
            return result

        payload = {k: str(v) for k, v in (data or {}).items() if v is not None}
        for token in tokens:
            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data=payload,
                token=token,
                apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound='default'))),
            )
            try:
                messaging.send(message)
                result.sent.append(token)
            except Exception as e:
                failure = PushFailure(token=token, error=str(e), permanent=is_permanent_push_error(e))
                result.failed.append(failure)
                logging.warning(f"푸시 전송 실패 (user_id: {user_id}, permanent: {failure.permanent}): {e}")

        to_prune = [f.token for f in result.failed if self._should_prune(f)]
        try:
            self._delete_tokens(user_id, to_prune)
            result.pruned.extend(to_prune)
        except Exception as e:
            logging.error(f"실패한 FCM 토큰 삭제 실패 (user_id: {user_id}): {e}", exc_info=True)

        logging.info(
            f"푸시 전송 완료 (user_id: {user_id}): 성공 {len(result.sent)}, "
            f"실패 {len(result.failed)}, 삭제 {len(result.pruned)}"
        )
        return result
