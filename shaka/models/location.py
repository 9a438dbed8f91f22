# shaka/models/location.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

class SharingState(Enum):
    """위치 공유 세션 상태"""
    IDLE = "IDLE"
    SHARING = "SHARING"
    STOPPED = "STOPPED"
    EXPIRED = "EXPIRED"

@dataclass
class Coordinate:
    latitude: float
    longitude: float

@dataclass
class LocationShare:
    """
    Firestore 'user_locations/{uid}' 문서 구조를 정의하는 데이터클래스.
    소유자 본인만 쓰며, expires_at 이 지나면 다른 사용자에게 보이지 않습니다.
    """
    user_id: str
    coordinate: Coordinate
    updated_at: datetime
    expires_at: datetime
    display_name: str = "Unknown"
    photo_url: Optional[str] = None
    seq: int = 0  # 기록마다 1씩 증가

    def is_visible(self, now: datetime) -> bool:
        return self.expires_at > now

@dataclass
class LiveActivityState:
    """기기 잠금화면 카운트다운에 보여줄 정보. 권위 있는 상태가 아닙니다."""
    remaining_minutes: int
    shared_with_count: int

@dataclass
class LocationSession:
    """사용자별 위치 공유 세션의 서버 측 상태"""
    user_id: str
    state: SharingState = SharingState.IDLE
    coordinate: Optional[Coordinate] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    duration_seconds: int = 0
    shared_with_count: int = 0
    seq: int = 0
    last_end_reason: Optional[SharingState] = None
