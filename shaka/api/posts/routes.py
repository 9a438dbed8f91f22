# shaka/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from shaka.api.posts.schemas import (
    CommentCreateSchema, CommentResponseSchema, LikeResponseSchema, PostResponseSchema
)

posts_bp = Blueprint('posts_bp', __name__)


@posts_bp.route('/<string:post_type>/<string:post_id>', methods=['GET'])
@jwt_required()
def get_post(post_type: str, post_id: str):
    post_service = current_app.services['posts']
    try:
        post = post_service.get_post(post_type, post_id, get_jwt_identity())
        return jsonify(PostResponseSchema().dump(post)), 200
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404


@posts_bp.route('/<string:post_type>/<string:post_id>/like', methods=['POST'])
@jwt_required()
def toggle_like(post_type: str, post_id: str):
    """게시물 좋아요를 누르거나 취소합니다. 좋아요를 누르면 작성자에게 알림이 갑니다."""
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        is_liked, like_count = post_service.toggle_like(user_id, post_type, post_id)
        result = {"post_id": post_id, "is_liked": is_liked, "like_count": like_count}
        return jsonify(LikeResponseSchema().dump(result)), 200
    except ValueError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"좋아요 처리 중 오류 발생 ({post_type}: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "LIKE_TOGGLE_FAILED", "message": "좋아요 처리 중 오류가 발생했습니다."}), 500


@posts_bp.route('/<string:post_type>/<string:post_id>/comments', methods=['POST'])
@jwt_required()
def create_comment(post_type: str, post_id: str):
    """
    게시물에 댓글을 작성합니다.
    - 성공 시, 생성된 댓글 정보를 201 Created 상태 코드와 함께 반환합니다.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        data = CommentCreateSchema().load(request.get_json())
        comment = post_service.create_comment(post_type, post_id, user_id, data['text'])
        return jsonify(CommentResponseSchema().dump(comment)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "RESOURCE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"댓글 생성 중 오류 발생 ({post_type}: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "COMMENT_CREATION_FAILED", "message": "댓글 생성 중 오류가 발생했습니다."}), 500


@posts_bp.route('/<string:post_type>/<string:post_id>/comments', methods=['GET'])
@jwt_required()
def get_comments(post_type: str, post_id: str):
    post_service = current_app.services['posts']
    limit = request.args.get('limit', 50, type=int)
    try:
        comments = post_service.get_comments(post_type, post_id, get_jwt_identity(), limit)
        return jsonify({"comments": CommentResponseSchema(many=True).dump(comments)}), 200
    except ValueError as e:
        return jsonify({"error_code": "INVALID_REQUEST", "message": str(e)}), 400


@posts_bp.route('/<string:post_type>/<string:post_id>/comments/<string:comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(post_type: str, post_id: str, comment_id: str):
    """댓글을 삭제합니다. (작성자 본인만 가능)"""
    post_service = current_app.services['posts']
    try:
        post_service.delete_comment(post_type, post_id, comment_id, get_jwt_identity())
        return Response(status=204)
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "NOT_FOUND", "message": str(e)}), 404
