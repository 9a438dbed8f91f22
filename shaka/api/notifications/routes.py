# shaka/api/notifications/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from shaka.api.notifications.schemas import NotificationResponseSchema, MarkReadSchema

notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def list_notifications():
    """내 알림 목록을 최신순으로 조회합니다."""
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()
    limit = request.args.get('limit', None, type=int)
    try:
        notifications = notification_service.list_notifications(user_id, limit)
        unread = sum(1 for n in notifications if not n.get('read', False))
        return jsonify({
            "notifications": NotificationResponseSchema(many=True).dump(notifications),
            "unread_count": unread,
        }), 200
    except Exception as e:
        logging.error(f"알림 목록 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "알림 목록 조회 중 오류가 발생했습니다."}), 500


@notifications_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def unread_count():
    notification_service = current_app.services['notifications']
    return jsonify({"unread_count": notification_service.unread_count(get_jwt_identity())}), 200


@notifications_bp.route('/<string:notification_id>/read', methods=['PATCH'])
@jwt_required()
def mark_as_read(notification_id: str):
    notification_service = current_app.services['notifications']
    try:
        data = MarkReadSchema().load(request.get_json(silent=True) or {})
        notification_service.mark_as_read(get_jwt_identity(), notification_id, data['read'])
        return jsonify({"id": notification_id, "read": data['read']}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "NOTIFICATION_NOT_FOUND", "message": str(e)}), 404


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_as_read():
    notification_service = current_app.services['notifications']
    updated = notification_service.mark_all_as_read(get_jwt_identity())
    return jsonify({"updated": updated}), 200


@notifications_bp.route('/<string:notification_id>', methods=['DELETE'])
@jwt_required()
def delete_notification(notification_id: str):
    notification_service = current_app.services['notifications']
    try:
        notification_service.delete_notification(get_jwt_identity(), notification_id)
        return Response(status=204)
    except ValueError as e:
        return jsonify({"error_code": "NOTIFICATION_NOT_FOUND", "message": str(e)}), 404
