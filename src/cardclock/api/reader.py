from flask import Blueprint, jsonify, request, current_app

from cardclock.schemas import reader_connect_schema, reader_keystrokes_schema, validate_data
from cardclock.services.reader_service import get_reader_service, ReaderNotRunningError
from cardclock.services.scan_reader import ConnectError, ReaderBusyError

bp = Blueprint('reader', __name__, url_prefix='/')

def get_service():
    return get_reader_service()

def _not_running(e):
    return jsonify({'success': False, 'error': str(e)}), 503

@bp.route('/reader/status', methods=['GET'])
def get_reader_status():
    try:
        return jsonify({'success': True, 'data': get_service().status()})
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error getting reader status: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/reader/ports', methods=['GET'])
def get_reader_ports():
    """Serial ports present now, with descriptors where the watcher has one"""
    try:
        return jsonify({'success': True, 'data': get_service().ports()})
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error listing serial ports: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/reader/connect', methods=['POST'])
def connect_reader():
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, reader_connect_schema)
    if not is_valid:
        return jsonify({'success': False, 'error': error}), 400

    port = data['port'].strip()
    try:
        state = get_service().connect(port, data.get('baud_rate'))
        return jsonify({
            'success': True,
            'message': f'Connected to {port}',
            'data': state.to_dict()
        })
    except ReaderBusyError as e:
        return jsonify({'success': False, 'error': e.reason, 'detail': e.detail}), 409
    except ConnectError as e:
        current_app.logger.warning(f"[DEVICE] Operator connect to {port} failed: {e.reason}")
        return jsonify({'success': False, 'error': str(e), 'detail': e.detail}), 502
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error connecting reader on {port}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/reader/disconnect', methods=['POST'])
def disconnect_reader():
    try:
        state = get_service().disconnect()
        return jsonify({'success': True, 'message': 'Disconnected', 'data': state.to_dict()})
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error disconnecting reader: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/reader/keystrokes', methods=['POST'])
def feed_keystrokes():
    """Characters typed by a keyboard-emulating reader, Enter ends a card id"""
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, reader_keystrokes_schema)
    if not is_valid:
        return jsonify({'success': False, 'error': error}), 400

    try:
        emitted = get_service().feed_keys(data['keys'])
        return jsonify({'success': True, 'data': {'scans': emitted}}), 202
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error feeding keystrokes: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/reader/recent-scans', methods=['GET'])
def get_recent_scans():
    try:
        scans = get_service().recent_scans()
        return jsonify({'success': True, 'data': scans, 'count': len(scans)})
    except ReaderNotRunningError as e:
        return _not_running(e)
    except Exception as e:
        current_app.logger.error(f"Error getting recent scans: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
