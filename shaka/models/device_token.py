# shaka/models/device_token.py
from dataclasses import dataclass, field
from datetime import datetime, timezone

@dataclass
class DeviceToken:
    """
    'users_private/{uid}/fcmTokens/{token}' 문서. 문서 ID가 곧 토큰 값입니다.
    """
    token: str
    platform: str = "ios"
    updatedAt: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
