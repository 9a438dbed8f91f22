# shaka/api/follows/routes.py
import logging
from flask import Blueprint, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from shaka.api.follows.schemas import UserSummarySchema, FollowStatusSchema

follows_bp = Blueprint('follows_bp', __name__)


@follows_bp.route('/<string:target_id>', methods=['POST'])
@jwt_required()
def follow(target_id: str):
    """
    target_id 사용자를 팔로우합니다.
    - 새로 팔로우하면 201, 이미 팔로우 중이면 200을 반환합니다.
    """
    follow_service = current_app.services['follows']
    user_id = get_jwt_identity()
    try:
        created = follow_service.follow(user_id, target_id)
        return jsonify({"target_id": target_id, "is_following": True}), 201 if created else 200
    except ValueError as e:
        return jsonify({"error_code": "INVALID_REQUEST", "message": str(e)}), 400
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"팔로우 처리 중 오류 발생 ({user_id} -> {target_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FOLLOW_FAILED", "message": "팔로우 처리 중 오류가 발생했습니다."}), 500


@follows_bp.route('/<string:target_id>', methods=['DELETE'])
@jwt_required()
def unfollow(target_id: str):
    follow_service = current_app.services['follows']
    user_id = get_jwt_identity()
    try:
        follow_service.unfollow(user_id, target_id)
        return Response(status=204)
    except Exception as e:
        logging.error(f"언팔로우 처리 중 오류 발생 ({user_id} -> {target_id}): {e}", exc_info=True)
        return jsonify({"error_code": "UNFOLLOW_FAILED", "message": "언팔로우 처리 중 오류가 발생했습니다."}), 500


@follows_bp.route('/<string:target_id>/status', methods=['GET'])
@jwt_required()
def follow_status(target_id: str):
    follow_service = current_app.services['follows']
    user_id = get_jwt_identity()
    status = {
        "target_id": target_id,
        "is_following": follow_service.is_following(user_id, target_id),
        "is_followed_by": follow_service.is_following(target_id, user_id),
    }
    return jsonify(FollowStatusSchema().dump(status)), 200


@follows_bp.route('/me/following', methods=['GET'])
@jwt_required()
def list_following():
    follow_service = current_app.services['follows']
    users = follow_service.list_following(get_jwt_identity())
    return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200


@follows_bp.route('/me/followers', methods=['GET'])
@jwt_required()
def list_followers():
    follow_service = current_app.services['follows']
    users = follow_service.list_followers(get_jwt_identity())
    return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200


@follows_bp.route('/me/mutual', methods=['GET'])
@jwt_required()
def list_mutual():
    """상호 팔로워(위치를 공유할 수 있는 사용자) 목록"""
    follow_service = current_app.services['follows']
    mutual = follow_service.get_mutual_followers(get_jwt_identity())
    users = follow_service.get_user_profiles(mutual)
    return jsonify({"users": UserSummarySchema(many=True).dump(users), "count": len(mutual)}), 200
