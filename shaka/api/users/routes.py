# shaka/api/users/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from shaka.api.users.schemas import UserPublicResponseSchema, ProfileUpdateSchema, FCMTokenSchema

users_bp = Blueprint('users_bp', __name__)

@users_bp.route('/<string:user_id>', methods=['GET'])
@jwt_required(optional=True)
def get_user_profile(user_id: str):
    """특정 사용자의 공개 프로필 정보(작품/질문 수 포함)를 조회합니다."""
    user_service = current_app.services['users']
    try:
        user_profile = user_service.get_user_profile(user_id)
        if not user_profile:
            return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
        return jsonify(UserPublicResponseSchema().dump(user_profile)), 200
    except Exception as e:
        logging.error(f"사용자 프로필 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "프로필 조회 중 오류가 발생했습니다."}), 500


@users_bp.route('/me', methods=['PATCH'])
@jwt_required()
def update_my_profile():
    """
    현재 로그인된 사용자의 공개 프로필을 수정합니다.
    - 표시 이름이 바뀌면 모든 작품/질문의 displayName 도 함께 갱신됩니다.
    """
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = ProfileUpdateSchema().load(request.get_json())
        profile = user_service.update_profile(user_id, **data)
        return jsonify(UserPublicResponseSchema().dump(profile)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"프로필 수정 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "프로필 수정 중 서버 오류가 발생했습니다."}), 500


@users_bp.route('/me', methods=['DELETE'])
@jwt_required()
def delete_my_account():
    """현재 로그인된 사용자 본인의 계정을 영구적으로 삭제합니다."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        user_service.delete_user_account(user_id)
        return Response(status=204)
    except Exception as e:
        logging.error(f"회원 탈퇴 처리 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "ACCOUNT_DELETION_FAILED", "message": "회원 탈퇴 처리 중 서버 오류가 발생했습니다."}), 500


@users_bp.route('/me/fcm-token', methods=['POST'])
@jwt_required()
def register_fcm_token():
    """클라이언트의 FCM 토큰을 등록/업데이트합니다."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = FCMTokenSchema().load(request.get_json())
        user_service.register_device_token(user_id, data['fcm_token'], data['platform'])
        return jsonify({"message": "FCM 토큰이 성공적으로 등록되었습니다."}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"FCM 토큰 등록 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "FCM 토큰 등록 중 서버 오류가 발생했습니다."}), 500


@users_bp.route('/me/fcm-token/<string:token>', methods=['DELETE'])
@jwt_required()
def delete_fcm_token(token: str):
    """로그아웃한 기기의 FCM 토큰을 삭제합니다."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        user_service.delete_device_token(user_id, token)
        return Response(status=204)
    except Exception as e:
        logging.error(f"FCM 토큰 삭제 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "FCM 토큰 삭제 중 서버 오류가 발생했습니다."}), 500


@users_bp.route('/me/stats/recount', methods=['POST'])
@jwt_required()
def recount_my_stats():
    """작품/질문 수를 실제 게시물 수로 다시 계산합니다."""
    user_service = current_app.services['users']
    try:
        stats = user_service.recount_stats(get_jwt_identity())
        return jsonify({"works_count": stats['worksCount'], "questions_count": stats['questionsCount']}), 200
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
