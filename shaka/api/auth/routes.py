# shaka/api/auth/routes.py

import logging
import jwt
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
)
from marshmallow import ValidationError

from shaka.api.auth.schemas import FirebaseLoginSchema, LogoutRequestSchema
from .services import auth_service

auth_bp = Blueprint('auth_bp', __name__)

@auth_bp.route('/firebase', methods=['POST'])
def firebase_login():
    """Firebase ID 토큰을 검증하고 서버용 JWT 를 발급합니다. 최초 로그인이면 사용자 문서를 만듭니다."""
    try:
        validated_data = FirebaseLoginSchema().load(request.get_json())
        decoded_token = auth_service.verify_firebase_token(validated_data['id_token'])
        user_id, is_new_user = auth_service.get_or_create_user(decoded_token)

        return jsonify({
            "access_token": create_access_token(identity=user_id),
            "refresh_token": create_refresh_token(identity=user_id),
            "user_id": user_id,
            "is_new_user": is_new_user,
        }), 200
    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_ID_TOKEN", "message": str(e)}), 401
    except Exception as e:
        logging.error(f"Firebase 로그인 중 예외 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부 오류가 발생했습니다."}), 500


# --- 토큰 재발급 엔드포인트 ---
@auth_bp.route('/token/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_token():
    """유효한 Refresh Token으로 새로운 Access Token을 발급합니다."""
    current_user_id = get_jwt_identity()
    new_access_token = create_access_token(identity=current_user_id)
    return jsonify(access_token=new_access_token), 200


# --- 로그아웃 엔드포인트 ---
@auth_bp.route('/logout', methods=['POST'])
def logout():
    """로그아웃. 전달받은 Access/Refresh 토큰을 무효화 목록에 추가합니다."""
    try:
        data = LogoutRequestSchema().load(request.get_json())
        secret_key = current_app.config['JWT_SECRET_KEY']
        algorithm = current_app.config.get('JWT_ALGORITHM', 'HS256')

        # 만료된 토큰도 해독할 수 있도록 서명만 검증합니다.
        decoded_access = jwt.decode(data['access_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})
        decoded_refresh = jwt.decode(data['refresh_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})

        auth_service.logout_user(
            decoded_access['jti'], decoded_access['exp'],
            decoded_refresh['jti'], decoded_refresh['exp']
        )
        return jsonify({"message": "로그아웃 되었습니다."}), 200

    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except jwt.PyJWTError as e:
        logging.error(f"JWT 해독 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INVALID_TOKEN", "message": "유효하지 않은 토큰입니다."}), 422
    except Exception as e:
        logging.error(f"로그아웃 처리 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "LOGOUT_FAILED", "message": "로그아웃 처리 중 오류가 발생했습니다."}), 500
