from flask import Blueprint, jsonify, request, current_app
from datetime import datetime

from cardclock.models.attendance import DATE_FORMAT
from cardclock.schemas import manual_scan_schema, validate_data
from cardclock.services.attendance_service import attendance_report_service
from cardclock.services.reader_service import get_reader_service, ReaderNotRunningError

bp = Blueprint("attendance", __name__, url_prefix="/")


def _parse_date_args():
    """Read start_date/end_date query args; raises ValueError on a bad format"""
    parsed = []
    for name in ("start_date", "end_date"):
        value = request.args.get(name)
        if value:
            try:
                datetime.strptime(value, DATE_FORMAT)
            except ValueError:
                raise ValueError(f"Invalid {name} format. Use YYYY-MM-DD")
        parsed.append(value or None)
    return parsed


@bp.route("/attendance/logs", methods=["GET"])
def get_attendance_logs():
    """Attendance rows for an optional inclusive date range"""
    try:
        start_date, end_date = _parse_date_args()
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        logs = attendance_report_service.get_logs(start_date, end_date)
        return jsonify(
            {
                "success": True,
                "data": [entry.to_dict() for entry in logs],
                "count": len(logs),
                "filters": {"start_date": start_date, "end_date": end_date},
            }
        )
    except Exception as e:
        current_app.logger.error(f"Error getting attendance logs: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/today", methods=["GET"])
def get_today_attendance():
    try:
        return jsonify({"success": True, "data": attendance_report_service.get_today()})
    except Exception as e:
        current_app.logger.error(f"Error getting today's attendance: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/summary", methods=["GET"])
def get_attendance_summary():
    try:
        start_date, end_date = _parse_date_args()
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        summary = attendance_report_service.get_summary(start_date, end_date)
        return jsonify({"success": True, "data": summary})
    except Exception as e:
        current_app.logger.error(f"Error getting attendance summary: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/scan", methods=["POST"])
def manual_scan():
    """
    Process a scan without hardware, e.g. from a test button.
    Without a card_id a TEST<HHMMSS> id is generated.
    """
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, manual_scan_schema)
    if not is_valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        outcome = get_reader_service().scan(data.get("card_id"))
        return jsonify(
            {
                "success": True,
                "message": outcome.message,
                "data": outcome.to_dict(),
            }
        )
    except ReaderNotRunningError as e:
        return jsonify({"success": False, "error": str(e)}), 503
    except Exception as e:
        current_app.logger.error(f"Error processing manual scan: {e}")
        return jsonify({"success": False, "error": str(e)}), 500
