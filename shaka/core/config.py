# shaka/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.


def _int_env(key: str, default: int) -> int:
    """정수형 환경 변수를 읽습니다. 비어 있거나 잘못된 값이면 기본값을 사용합니다."""
    value = os.getenv(key)
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _list_env(key: str) -> list:
    """쉼표로 구분된 환경 변수를 리스트로 읽습니다."""
    value = os.getenv(key, '')
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명 키. 토큰 위변조를 방지합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # --- 위치 공유 ---
    # 공유 중 위치를 다시 기록하는 주기(초)
    LOCATION_PUBLISH_INTERVAL_SECONDS = _int_env('LOCATION_PUBLISH_INTERVAL_SECONDS', 30)
    # 기간을 지정하지 않은 공유의 기본 길이(초)
    LOCATION_DEFAULT_DURATION_SECONDS = _int_env('LOCATION_DEFAULT_DURATION_SECONDS', 3600)
    LOCATION_MAX_DURATION_SECONDS = _int_env('LOCATION_MAX_DURATION_SECONDS', 86400)

    # --- 알림 ---
    NOTIFICATION_LIST_LIMIT = _int_env('NOTIFICATION_LIST_LIMIT', 50)
    # 'all': 전송 실패 시 항상 토큰 삭제, 'permanent': 영구 오류일 때만 삭제
    PUSH_TOKEN_PRUNE_POLICY = os.getenv('PUSH_TOKEN_PRUNE_POLICY', 'all')
    # 신고 알림을 받을 운영자 uid 목록
    REPORT_REVIEWER_UIDS = _list_env('REPORT_REVIEWER_UIDS')


class DevelopmentConfig(Config):
    """개발 환경 설정. 디버그 모드를 켭니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')


class TestingConfig(Config):
    """테스트 환경 설정."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY') or 'testing-secret-key-with-enough-length'


class ProductionConfig(Config):
    """운영 환경 설정."""
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('PROD_FIREBASE_CREDENTIALS_PATH')


# FLASK_ENV 값에 따라 create_app에서 설정 클래스를 고르는 데 사용합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
