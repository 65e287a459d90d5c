# Overview: Flask API routes for date-range sales reports and CSV export.

from flask import Blueprint, Response, current_app, jsonify, request, g

from ..decorators import require_company_user
from ..services import reporting_service
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/")
@require_company_user
def report_route():
    """
    Paid orders and totals between two business-local date-times.

    Query: start=YYYY-MM-DD[THH:mm:ss], end=YYYY-MM-DD[THH:mm:ss]
    """
    try:
        report = reporting_service.get_report_data(
            g.company_id,
            request.args.get("start"),
            request.args.get("end"),
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": f"Invalid date format: {exc}"}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/export")
@require_company_user
def export_route():
    start = request.args.get("start")
    end = request.args.get("end")
    try:
        content = reporting_service.export_report_csv(g.company_id, start, end)
    except ValidationError as exc:
        return jsonify({"error": f"Invalid date format: {exc}"}), 400
    except Exception:
        current_app.logger.exception("Failed to export sales report")
        return jsonify({"error": "Internal server error"}), 500

    filename = f"sales-report-{start[:10]}-to-{end[:10]}.csv"
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
