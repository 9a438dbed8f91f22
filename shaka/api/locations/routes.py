# shaka/api/locations/routes.py
import logging
import queue
from flask import Blueprint, request, jsonify, json, Response, current_app, stream_with_context
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from shaka.api.locations.schemas import (
    CoordinateUpdateSchema, StartSharingSchema, SharingStatusSchema, LocationShareSchema
)

locations_bp = Blueprint('locations_bp', __name__)


@locations_bp.route('/me/coordinate', methods=['PUT'])
@jwt_required()
def update_coordinate():
    """최신 좌표를 저장합니다. 공유 중이면 바로 다시 기록됩니다."""
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    try:
        data = CoordinateUpdateSchema().load(request.get_json())
        location_service.update_coordinate(user_id, data['latitude'], data['longitude'])
        return jsonify(SharingStatusSchema().dump(location_service.status(user_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_COORDINATE", "message": str(e)}), 400


@locations_bp.route('/me/start', methods=['POST'])
@jwt_required()
def start_sharing():
    """
    상호 팔로워에게 위치 공유를 시작합니다.
    - 기록에 실패하면 상태는 바뀌지 않고 503을 반환합니다.
    """
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    try:
        data = StartSharingSchema().load(request.get_json(silent=True) or {})
        session = location_service.start(user_id, data.get('duration_seconds'))
        if session is None:
            return jsonify({"error_code": "SHARING_START_FAILED", "message": "위치 공유를 시작하지 못했습니다."}), 503
        return jsonify(SharingStatusSchema().dump(location_service.status(user_id))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_REQUEST", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"위치 공유 시작 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "위치 공유 시작 중 오류가 발생했습니다."}), 500


@locations_bp.route('/me', methods=['DELETE'])
@jwt_required()
def stop_sharing():
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    if not location_service.stop(user_id):
        return jsonify({"error_code": "SHARING_STOP_FAILED", "message": "위치 공유를 중단하지 못했습니다."}), 503
    return jsonify(SharingStatusSchema().dump(location_service.status(user_id))), 200


@locations_bp.route('/me', methods=['GET'])
@jwt_required()
def get_status():
    """현재 공유 상태와 Live Activity 표시 정보를 조회합니다."""
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    return jsonify(SharingStatusSchema().dump(location_service.status(user_id))), 200


@locations_bp.route('/mutual', methods=['GET'])
@jwt_required()
def get_mutual_locations():
    """상호 팔로워 중 위치를 공유 중인 사용자의 최신 위치 목록"""
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    try:
        locations = location_service.get_mutual_locations(user_id)
        return jsonify({"locations": LocationShareSchema(many=True).dump(locations)}), 200
    except Exception as e:
        logging.error(f"상호 팔로워 위치 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "위치 조회 중 오류가 발생했습니다."}), 500


# 스트림이 조용할 때 연결 유지를 위해 주석 이벤트를 보내는 간격(초)
STREAM_KEEPALIVE_SECONDS = 15


@locations_bp.route('/mutual/stream', methods=['GET'])
@jwt_required()
def stream_mutual_locations():
    """
    상호 팔로워 위치를 Server-Sent Events 로 보냅니다.
    - 위치 문서가 바뀔 때마다 만료되지 않은 전체 목록을 'locations' 이벤트로 보냅니다.
    - 클라이언트 연결이 끊기면 Firestore 리스너를 해제합니다.
    """
    location_service = current_app.services['locations']
    user_id = get_jwt_identity()
    updates = queue.Queue()
    subscription = location_service.listen_mutual_locations(user_id, updates.put)

    def generate():
        try:
            while True:
                try:
                    locations = updates.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                payload = json.dumps({"locations": LocationShareSchema(many=True).dump(locations)})
                yield f"event: locations\ndata: {payload}\n\n"
        finally:
            subscription.unsubscribe()
            logging.info(f"상호 팔로워 위치 스트림 종료 (user_id: {user_id})")

    response = Response(stream_with_context(generate()), mimetype='text/event-stream',
                        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})
    # 첫 이벤트 전에 끊겨도 리스너가 남지 않도록 합니다.
    response.call_on_close(subscription.unsubscribe)
    return response
