# shaka/services/location_sharing_service.py
"""
상호 팔로워 간 위치 공유 서비스

- 공유 시작 시 'user_locations/{uid}' 에 좌표와 만료 시각을 기록하고,
  주기적으로(기본 30초) 좌표를 다시 기록합니다.
- 만료 시각이 되면 기록을 지우고 세션을 종료합니다.
- 다른 사용자는 상호 팔로워의 기록 중 만료되지 않은 것만 볼 수 있습니다.

세션 상태: IDLE -> SHARING -> (STOPPED | EXPIRED) -> IDLE
"""

import logging
import threading
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Tuple

from apscheduler.jobstores.base import JobLookupError
from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from shaka.api.follows.services import FollowService, chunked
from shaka.models.location import (
    Coordinate, LocationShare, LocationSession, LiveActivityState, SharingState
)
from shaka.utils.datetime_utils import DateTimeUtils


UNKNOWN_DISPLAY_NAME = "Unknown"


def _tick_job_id(user_id: str) -> str:
    return f"location-tick:{user_id}"


def _expire_job_id(user_id: str) -> str:
    return f"location-expire:{user_id}"


def validate_coordinate(latitude: float, longitude: float) -> Coordinate:
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise ValueError("위도/경도 값이 범위를 벗어났습니다.")
    return Coordinate(latitude=latitude, longitude=longitude)


def parse_location_doc(doc_id: str, data: Optional[Dict[str, Any]], now: datetime) -> Optional[LocationShare]:
    """
    위치 문서를 LocationShare 로 변환합니다.
    좌표나 만료 시각이 없거나 이미 만료된 문서는 None 을 돌려줍니다.
    """
    if not data:
        return None
    geo_point = data.get('location')
    expires_at = data.get('expiresAt')
    if geo_point is None or not isinstance(expires_at, datetime):
        return None

    expires_at = DateTimeUtils.ensure_utc(expires_at)
    updated_at = data.get('updatedAt')
    share = LocationShare(
        user_id=doc_id,
        coordinate=Coordinate(latitude=geo_point.latitude, longitude=geo_point.longitude),
        updated_at=DateTimeUtils.ensure_utc(updated_at) if isinstance(updated_at, datetime) else now,
        expires_at=expires_at,
        display_name=data.get('displayName') or UNKNOWN_DISPLAY_NAME,
        photo_url=data.get('photoURL') or None,
        seq=data.get('seq', 0),
    )
    return share if share.is_visible(now) else None


def visible_locations(docs, now: datetime) -> List[LocationShare]:
    """스냅샷 문서 목록에서 만료되지 않은 위치만 골라냅니다."""
    locations = []
    for doc in docs:
        share = parse_location_doc(doc.id, doc.to_dict(), now)
        if share:
            locations.append(share)
    return locations


class LocationSubscription:
    """상호 팔로워 위치 리스너 묶음. 'in' 쿼리 제한 때문에 여러 개일 수 있습니다."""
    def __init__(self, watches: List[Any]):
        self._watches = watches

    @property
    def active(self) -> bool:
        return bool(self._watches)

    def unsubscribe(self) -> None:
        for watch in self._watches:
            try:
                watch.unsubscribe()
            except Exception as e:
                logging.warning(f"위치 리스너 해제 실패: {e}")
        self._watches = []


class LocationSharingService:
    """
    위치 공유 세션을 관리하는 서비스 클래스.
    - 세션 상태는 사용자별로 메모리에 두고, 문서 기록은 Firestore 에 합니다.
    - tick 과 stop 은 같은 락 안에서 실행되므로 종료 후에 좌표가 다시 기록되지 않습니다.
    - 기록마다 seq 를 1씩 올려서 문서 자체로도 순서를 확인할 수 있습니다.
    """
    def __init__(self, follow_service: FollowService, scheduler=None, db=None,
                 clock: Callable[[], datetime] = DateTimeUtils.now,
                 publish_interval_seconds: int = 30,
                 default_duration_seconds: int = 3600,
                 max_duration_seconds: int = 86400):
        self.db = db or firestore.client()
        self.locations_ref = self.db.collection('user_locations')
        self.users_ref = self.db.collection('users')
        self.follow_service = follow_service
        self.scheduler = scheduler
        self.clock = clock
        self.publish_interval_seconds = publish_interval_seconds
        self.default_duration_seconds = default_duration_seconds
        self.max_duration_seconds = max_duration_seconds
        self.sessions: Dict[str, LocationSession] = {}
        self._lock = threading.RLock()

    def _session(self, user_id: str) -> LocationSession:
        session = self.sessions.get(user_id)
        if session is None:
            session = LocationSession(user_id=user_id)
            self.sessions[user_id] = session
        return session

    def _known_session(self, user_id: str) -> LocationSession:
        """
        메모리에 세션이 없으면 먼저 남아 있는 기록으로 복구를 시도합니다.
        서버 재시작 후 첫 요청이 좌표 갱신이어도 공유 상태를 이어받습니다.
        """
        with self._lock:
            if user_id not in self.sessions:
                try:
                    self.restore(user_id)
                except Exception as e:
                    logging.warning(f"위치 공유 복구 실패 (user_id: {user_id}): {e}")
            return self._session(user_id)

    def _load_profile(self, user_id: str) -> Tuple[str, str]:
        """공유 기록에 넣을 표시 이름과 사진 URL. 조회 실패 시 기본값을 씁니다."""
        try:
            doc = self.users_ref.document(user_id).get()
            public = ((doc.to_dict() or {}).get('public') or {}) if doc.exists else {}
            return public.get('displayName') or UNKNOWN_DISPLAY_NAME, public.get('photoURL') or ""
        except Exception as e:
            logging.warning(f"프로필 조회 실패, 기본값 사용 (user_id: {user_id}): {e}")
            return UNKNOWN_DISPLAY_NAME, ""

    # --- 타이머 ---
    def _schedule_jobs(self, user_id: str, expires_at: datetime) -> None:
        if self.scheduler is None:
            return
        self.scheduler.add_job(
            self.tick, 'interval', seconds=self.publish_interval_seconds,
            args=[user_id], id=_tick_job_id(user_id), replace_existing=True
        )
        self.scheduler.add_job(
            self.expire, 'date', run_date=expires_at,
            args=[user_id], id=_expire_job_id(user_id), replace_existing=True
        )

    def _cancel_jobs(self, user_id: str) -> None:
        if self.scheduler is None:
            return
        for job_id in (_tick_job_id(user_id), _expire_job_id(user_id)):
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass  # 이미 실행이 끝난 date 작업

    # --- 발행 ---
    def update_coordinate(self, user_id: str, latitude: float, longitude: float) -> LocationSession:
        """기기에서 받은 최신 좌표를 저장합니다. 공유 중이면 바로 기록합니다."""
        coordinate = validate_coordinate(latitude, longitude)
        with self._lock:
            session = self._known_session(user_id)
            session.coordinate = coordinate
            if session.state == SharingState.SHARING:
                self._publish_locked(session)
            return session

    def _publish_locked(self, session: LocationSession) -> bool:
        if session.coordinate is None:
            return False
        seq = session.seq + 1
        try:
            self.locations_ref.document(session.user_id).update({
                'location': firestore.GeoPoint(session.coordinate.latitude, session.coordinate.longitude),
                'updatedAt': firestore.SERVER_TIMESTAMP,
                'seq': seq,
            })
            session.seq = seq
            return True
        except Exception as e:
            # 재시도하지 않고 다음 tick 에 다시 기록합니다.
            logging.warning(f"위치 갱신 실패 (user_id: {session.user_id}): {e}")
            return False

    def start(self, user_id: str, duration_seconds: Optional[int] = None) -> Optional[LocationSession]:
        """
        위치 공유를 시작합니다.

        :param user_id: 공유하는 사용자 ID
        :param duration_seconds: 공유 기간(초). 없으면 기본값을 씁니다.
        :return: SHARING 상태의 세션, 기록에 실패하면 None
        :raises ValueError: 기간이 잘못됐거나 현재 좌표를 모르는 경우
        """
        duration = self.default_duration_seconds if duration_seconds is None else duration_seconds
        if duration <= 0 or duration > self.max_duration_seconds:
            raise ValueError(f"공유 기간은 1초 이상 {self.max_duration_seconds}초 이하여야 합니다.")

        with self._lock:
            session = self._known_session(user_id)
            coordinate = session.coordinate
        if coordinate is None:
            raise ValueError("현재 위치를 알 수 없어 공유를 시작할 수 없습니다.")

        display_name, photo_url = self._load_profile(user_id)

        with self._lock:
            now = self.clock()
            expires_at = DateTimeUtils.add_seconds(now, duration)
            seq = session.seq + 1
            location_data = {
                'location': firestore.GeoPoint(coordinate.latitude, coordinate.longitude),
                'updatedAt': firestore.SERVER_TIMESTAMP,
                'expiresAt': expires_at,
                'displayName': display_name,
                'photoURL': photo_url,
                'seq': seq,
            }
            try:
                self.locations_ref.document(user_id).set(location_data)
            except Exception as e:
                logging.error(f"위치 공유 시작 실패 (user_id: {user_id}): {e}", exc_info=True)
                return None

            session.state = SharingState.SHARING
            session.started_at = now
            session.expires_at = expires_at
            session.duration_seconds = duration
            session.seq = seq
            session.last_end_reason = None
            self._schedule_jobs(user_id, expires_at)

        try:
            session.shared_with_count = len(self.follow_service.get_mutual_followers(user_id))
        except Exception as e:
            logging.warning(f"상호 팔로워 수 조회 실패 (user_id: {user_id}): {e}")
            session.shared_with_count = 0

        logging.info(f"위치 공유 시작 (user_id: {user_id}, expires_at: {DateTimeUtils.to_iso_string(expires_at)})")
        return session

    def tick(self, user_id: str) -> bool:
        """
        주기적 발행. 공유 중이고 만료 전이면 좌표를 다시 기록합니다.
        만료 시각이 지났으면 세션을 종료합니다.
        """
        with self._lock:
            session = self.sessions.get(user_id)
            if session is None or session.state != SharingState.SHARING:
                return False
            if self.clock() >= session.expires_at:
                self._end_locked(session, SharingState.EXPIRED)
                return False
            return self._publish_locked(session)

    def stop(self, user_id: str) -> bool:
        """공유를 중단합니다. 기록 삭제에 실패하면 상태를 바꾸지 않고 False 를 돌려줍니다."""
        with self._lock:
            return self._end_locked(self._session(user_id), SharingState.STOPPED)

    def expire(self, user_id: str) -> bool:
        """만료 타이머 콜백. 동작은 stop 과 같습니다."""
        with self._lock:
            session = self.sessions.get(user_id)
            if session is None or session.state != SharingState.SHARING:
                return False
            return self._end_locked(session, SharingState.EXPIRED)

    def _end_locked(self, session: LocationSession, reason: SharingState) -> bool:
        try:
            self.locations_ref.document(session.user_id).delete()
        except Exception as e:
            logging.error(f"위치 공유 종료 실패 (user_id: {session.user_id}): {e}", exc_info=True)
            return False

        self._cancel_jobs(session.user_id)
        was_sharing = session.state == SharingState.SHARING
        session.state = SharingState.IDLE
        session.started_at = None
        session.expires_at = None
        session.duration_seconds = 0
        session.shared_with_count = 0
        if was_sharing:
            session.last_end_reason = reason
            logging.info(f"위치 공유 종료 (user_id: {session.user_id}, reason: {reason.value})")
        return True

    def restore(self, user_id: str) -> Optional[LocationSession]:
        """
        서버 재시작 등으로 메모리 세션이 없을 때, 남아 있는 기록으로 공유 상태를 복구합니다.
        이미 만료된 기록은 지웁니다.
        """
        doc = self.locations_ref.document(user_id).get()
        if not doc.exists:
            return None

        now = self.clock()
        share = parse_location_doc(doc.id, doc.to_dict(), now)
        if share is None:
            self.locations_ref.document(user_id).delete()
            logging.info(f"만료된 위치 기록 정리 (user_id: {user_id})")
            return None

        with self._lock:
            session = self._session(user_id)
            session.state = SharingState.SHARING
            session.coordinate = session.coordinate or share.coordinate
            session.expires_at = share.expires_at
            session.started_at = session.started_at or now
            session.seq = max(session.seq, share.seq)
            self._schedule_jobs(user_id, share.expires_at)
        return session

    # --- 조회 ---
    def live_activity(self, session: LocationSession) -> LiveActivityState:
        if session.state != SharingState.SHARING or session.expires_at is None:
            return LiveActivityState(remaining_minutes=0, shared_with_count=0)
        remaining = DateTimeUtils.remaining_seconds(session.expires_at, self.clock())
        return LiveActivityState(
            remaining_minutes=DateTimeUtils.ceil_minutes(remaining),
            shared_with_count=session.shared_with_count,
        )

    def status(self, user_id: str) -> Dict[str, Any]:
        with self._lock:
            session = self._known_session(user_id)
            activity = self.live_activity(session)
            return {
                'user_id': user_id,
                'state': session.state.value,
                'is_sharing': session.state == SharingState.SHARING,
                'expires_at': session.expires_at,
                'last_end_reason': session.last_end_reason.value if session.last_end_reason else None,
                'live_activity': {
                    'remaining_minutes': activity.remaining_minutes,
                    'shared_with_count': activity.shared_with_count,
                },
            }

    def _mutual_queries(self, user_id: str):
        mutual = sorted(self.follow_service.get_mutual_followers(user_id))
        queries = []
        for chunk in chunked(mutual):
            refs = [self.locations_ref.document(uid) for uid in chunk]
            queries.append(self.locations_ref.where(filter=FieldFilter('__name__', 'in', refs)))
        return queries

    def get_mutual_locations(self, user_id: str) -> List[LocationShare]:
        """상호 팔로워 중 현재 위치를 공유 중인 사용자들의 위치를 한 번 조회합니다."""
        locations = []
        now = self.clock()
        for query in self._mutual_queries(user_id):
            locations.extend(visible_locations(query.stream(), now))
        return locations

    def listen_mutual_locations(self, user_id: str,
                                callback: Callable[[List[LocationShare]], None]) -> LocationSubscription:
        """
        상호 팔로워 위치 문서에 실시간 리스너를 붙입니다.
        변경이 있을 때마다 만료되지 않은 전체 위치 목록으로 callback 을 호출합니다.
        """
        queries = self._mutual_queries(user_id)
        if not queries:
            callback([])
            return LocationSubscription([])

        results: Dict[int, List[LocationShare]] = {}
        results_lock = threading.Lock()

        def make_handler(index: int):
            def on_snapshot(docs, changes, read_time):
                with results_lock:
                    results[index] = visible_locations(docs, self.clock())
                    merged = [share for chunk in sorted(results) for share in results[chunk]]
                callback(merged)
            return on_snapshot

        watches = [query.on_snapshot(make_handler(i)) for i, query in enumerate(queries)]
        logging.info(f"상호 팔로워 위치 리스너 {len(watches)}개 등록 (user_id: {user_id})")
        return LocationSubscription(watches)
