# shaka/api/posts/schemas.py
from marshmallow import Schema, fields, validate

POST_TYPES = ["work", "question"]


class CommentCreateSchema(Schema):
    """
    POST /api/posts/{post_type}/{post_id}/comments
    댓글 생성을 요청할 때의 데이터 형식을 정의하고 유효성을 검사합니다.
    """
    text = fields.Str(required=True, validate=validate.Length(min=1, max=1000, error="댓글은 1~1000자 사이여야 합니다."))


class CommentResponseSchema(Schema):
    comment_id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    post_type = fields.Str(required=True)
    user_id = fields.Str(attribute='userID', required=True)
    display_name = fields.Str(attribute='displayName', required=True)
    text = fields.Str(required=True)
    is_private = fields.Bool(attribute='isPrivate', dump_default=False)
    created_at = fields.DateTime(attribute='createdAt', required=True)


class LikeResponseSchema(Schema):
    post_id = fields.Str(required=True)
    is_liked = fields.Bool(required=True)
    like_count = fields.Int(required=True)


class PostResponseSchema(Schema):
    """작품/질문 게시물 응답. 본문 필드는 앱이 쓰는 이름을 그대로 사용합니다."""
    post_id = fields.Str(required=True)
    post_type = fields.Str(required=True, validate=validate.OneOf(POST_TYPES))
    user_id = fields.Str(attribute='userID', allow_none=True)
    display_name = fields.Str(attribute='displayName', allow_none=True)
    title = fields.Str(allow_none=True)
    like_count = fields.Int(attribute='likeCount', dump_default=0)
    comment_count = fields.Int(attribute='commentCount', dump_default=0)
    created_at = fields.DateTime(attribute='createdAt', allow_none=True)
    is_liked = fields.Bool(dump_only=True, dump_default=False)
