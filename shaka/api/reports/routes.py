# shaka/api/reports/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from shaka.api.reports.schemas import ReportCreateSchema, ReportResponseSchema, ReportReasonSchema
from shaka.models.report import ReportReason

reports_bp = Blueprint('reports_bp', __name__)


@reports_bp.route('/reasons', methods=['GET'])
def list_reasons():
    reasons = [{"reason": r.value, "description": r.description} for r in ReportReason]
    return jsonify({"reasons": ReportReasonSchema(many=True).dump(reasons)}), 200


@reports_bp.route('', methods=['POST'])
@jwt_required()
def submit_report():
    """게시물, 댓글 또는 사용자를 신고합니다."""
    report_service = current_app.services['reports']
    user_id = get_jwt_identity()
    try:
        data = ReportCreateSchema().load(request.get_json())
        report = report_service.submit_report(
            reporter_id=user_id,
            target_id=data['target_id'],
            target_type=data['target_type'],
            target_user_id=data['target_user_id'],
            reason=data['reason'],
            target_title=data['target_title'],
            additional_details=data['additional_details'],
        )
        return jsonify(ReportResponseSchema().dump(report)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_REPORT", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"신고 접수 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "REPORT_FAILED", "message": "신고 접수 중 오류가 발생했습니다."}), 500
