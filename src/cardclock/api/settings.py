from flask import Blueprint, jsonify, request
from cardclock.config.config_manager import config_manager
from cardclock.schemas import reader_settings_schema, validate_data
from cardclock.services.reader_service import get_reader_service
from cardclock.shared.logger import app_logger

bp = Blueprint('settings', __name__, url_prefix='/')

@bp.route('/settings/reader', methods=['GET'])
def get_reader_settings():
    """Get the reader settings with defaults applied"""
    try:
        return jsonify({
            'success': True,
            'data': config_manager.get_settings().to_dict()
        })

    except Exception as e:
        app_logger.error(f"Error getting reader settings: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500

@bp.route('/settings/reader', methods=['PUT'])
def update_reader_settings():
    """Partially update the reader settings"""
    data = request.get_json(silent=True)

    is_valid, error = validate_data(data, reader_settings_schema)
    if not is_valid:
        return jsonify({
            'success': False,
            'error': error
        }), 400

    try:
        updated = config_manager.update_settings(data)
        app_logger.info(f"Reader settings updated: {', '.join(sorted(data))}")

        service = get_reader_service()
        if service.is_running:
            service.apply_settings()

        return jsonify({
            'success': True,
            'message': 'Settings updated successfully',
            'data': updated.to_dict()
        })

    except Exception as e:
        app_logger.error(f"Error updating reader settings: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500
