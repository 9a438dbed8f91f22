# shaka/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
from apscheduler.schedulers.background import BackgroundScheduler
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정
from shaka.core.config import config_by_name

# - API 블루프린트
from shaka.api.auth.routes import auth_bp
from shaka.api.users.routes import users_bp
from shaka.api.follows.routes import follows_bp
from shaka.api.posts.routes import posts_bp
from shaka.api.reports.routes import reports_bp
from shaka.api.notifications.routes import notifications_bp
from shaka.api.locations.routes import locations_bp

# - 서비스 모듈
from shaka.services.push_service import PushService
from shaka.services.notification_service import NotificationService
from shaka.services.location_sharing_service import LocationSharingService
from shaka.api.auth.services import auth_service
from shaka.api.follows.services import FollowService
from shaka.api.posts.services import PostService
from shaka.api.reports.services import ReportService
from shaka.api.users.services import UserService

def create_app(config_name=None, db=None, scheduler=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development' | 'testing' | 'production'. 없으면 FLASK_ENV 를 따릅니다.
    :param db: Firestore 클라이언트. 주어지면 Firebase 초기화를 건너뜁니다.
    :param scheduler: APScheduler 스케줄러. 없으면 BackgroundScheduler 를 만듭니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    jwt = JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        db = firestore.client()

    if scheduler is None:
        scheduler = BackgroundScheduler(timezone='UTC')
        if not app.config.get('TESTING'):
            scheduler.start()
            logging.info("위치 공유 스케줄러 시작")
    app.scheduler = scheduler

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용 서비스 먼저 생성
    app.services['push'] = PushService(db=db, prune_policy=app.config['PUSH_TOKEN_PRUNE_POLICY'])
    app.services['notifications'] = NotificationService(
        push_service=app.services['push'],
        db=db,
        list_limit=app.config['NOTIFICATION_LIST_LIMIT'],
        report_reviewer_uids=app.config['REPORT_REVIEWER_UIDS'],
    )

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    app.services['follows'] = FollowService(notification_service=app.services['notifications'], db=db)
    app.services['locations'] = LocationSharingService(
        follow_service=app.services['follows'],
        scheduler=scheduler,
        db=db,
        publish_interval_seconds=app.config['LOCATION_PUBLISH_INTERVAL_SECONDS'],
        default_duration_seconds=app.config['LOCATION_DEFAULT_DURATION_SECONDS'],
        max_duration_seconds=app.config['LOCATION_MAX_DURATION_SECONDS'],
    )
    app.services['posts'] = PostService(notification_service=app.services['notifications'], db=db)
    app.services['reports'] = ReportService(notification_service=app.services['notifications'], db=db)
    app.services['users'] = UserService(
        post_service=app.services['posts'],
        notification_service=app.services['notifications'],
        push_service=app.services['push'],
        location_service=app.services['locations'],
        db=db,
    )

    # - 인증 서비스 (앱 컨텍스트 필요)
    auth_service.init_app(app, db=db)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return auth_service.is_token_revoked(jwt_payload)

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(follows_bp, url_prefix='/api/follows')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(locations_bp, url_prefix='/api/locations')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return err
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
