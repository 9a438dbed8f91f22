# shaka/utils/datetime_utils.py
"""
시간 처리 유틸리티

- 서버에서 다루는 시각은 모두 UTC aware datetime 입니다.
- Firestore 에서 읽은 DatetimeWithNanoseconds 도 같은 규칙으로 맞춥니다.
- 위치 공유의 만료 계산(남은 초, 남은 분)을 여기서 합니다.
"""

import logging
import math
from datetime import datetime, date, timezone, time, timedelta
from typing import Union, Any
from dateutil import parser as dateutil_parser


class DateTimeUtils:

    @staticmethod
    def now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """naive 값은 UTC 로 간주합니다."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def parse_iso_datetime(value: str) -> datetime:
        """
        ISO 8601 문자열을 UTC datetime 으로 읽습니다.
        예전 사용자 문서에 문자열로 남아 있는 joinedAt 같은 값을 읽을 때 씁니다.
        """
        if not value:
            raise ValueError("빈 문자열은 날짜로 읽을 수 없습니다")
        try:
            parsed = dateutil_parser.isoparse(value)
        except (ValueError, OverflowError) as e:
            logging.warning(f"날짜 파싱 실패: {value} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {value}")
        return DateTimeUtils.ensure_utc(parsed)

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        return DateTimeUtils.ensure_utc(dt).isoformat().replace('+00:00', 'Z')

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """저장 직전 값의 date/naive datetime 을 UTC datetime 으로 바꿉니다. dict/list 는 재귀 처리."""
        if isinstance(obj, datetime):
            return DateTimeUtils.ensure_utc(obj)
        if isinstance(obj, date):
            return datetime.combine(obj, time.min, tzinfo=timezone.utc)
        if isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [DateTimeUtils.for_firestore(v) for v in obj]
        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        if isinstance(obj, datetime):
            return DateTimeUtils.ensure_utc(obj)
        if isinstance(obj, dict):
            return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [DateTimeUtils.from_firestore(v) for v in obj]
        return obj

    # --- 위치 공유 만료 계산 ---
    @staticmethod
    def add_seconds(dt: datetime, seconds: Union[int, float]) -> datetime:
        return DateTimeUtils.ensure_utc(dt) + timedelta(seconds=seconds)

    @staticmethod
    def remaining_seconds(expires_at: datetime, now: datetime) -> int:
        """만료까지 남은 초 (올림, 지났으면 0)"""
        delta = DateTimeUtils.ensure_utc(expires_at) - DateTimeUtils.ensure_utc(now)
        return max(0, math.ceil(delta.total_seconds()))

    @staticmethod
    def ceil_minutes(seconds: int) -> int:
        """61초 -> 2분, 0초 -> 0분"""
        if seconds <= 0:
            return 0
        return (seconds + 59) // 60

    @staticmethod
    def to_timestamp_ms(dt: datetime) -> int:
        return int(DateTimeUtils.ensure_utc(dt).timestamp() * 1000)
