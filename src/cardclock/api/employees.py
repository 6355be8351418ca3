from flask import Blueprint, jsonify, request, current_app
from cardclock.repositories import DuplicateKeyError
from cardclock.schemas import (
    register_employee_schema,
    update_employee_schema,
    update_employee_status_schema,
    validate_data,
)
from cardclock.services.employee_service import employee_service

bp = Blueprint('employees', __name__, url_prefix='/')

@bp.route('/employees', methods=['GET'])
def get_employees():
    """List registered cards, optionally filtered by name or card id"""
    try:
        search = request.args.get('search')
        employees = employee_service.search(search)
        return jsonify({
            'success': True,
            'data': [employee.to_dict() for employee in employees],
            'count': len(employees)
        })
    except Exception as e:
        current_app.logger.error(f"Error getting employees: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/employees', methods=['POST'])
def register_employee():
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, register_employee_schema)
    if not is_valid:
        return jsonify({'success': False, 'error': error}), 400

    try:
        employee = employee_service.register(
            data.get('card_id'), data.get('name'), data.get('department')
        )
        return jsonify({
            'success': True,
            'message': 'Card registered.',
            'data': employee.to_dict()
        }), 201
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except DuplicateKeyError as e:
        return jsonify({'success': False, 'error': str(e)}), 409
    except Exception as e:
        current_app.logger.error(f"Error registering card: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/employees/<card_id>', methods=['GET'])
def get_employee(card_id: str):
    try:
        employee = employee_service.get(card_id)
        if not employee:
            return jsonify({'success': False, 'error': f'Card {card_id} is not registered'}), 404
        return jsonify({'success': True, 'data': employee.to_dict()})
    except Exception as e:
        current_app.logger.error(f"Error getting employee {card_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/employees/<card_id>/status', methods=['PUT'])
def update_employee_status(card_id: str):
    """Activate or deactivate a card"""
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, update_employee_status_schema)
    if not is_valid:
        return jsonify({'success': False, 'error': error}), 400

    try:
        if not employee_service.set_status(card_id, data['status']):
            return jsonify({'success': False, 'error': f'Card {card_id} is not registered'}), 404

        employee = employee_service.get(card_id)
        return jsonify({
            'success': True,
            'message': f'Card {card_id} updated',
            'data': employee.to_dict() if employee else None
        })
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"Error updating employee {card_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

@bp.route('/employees/<card_id>', methods=['PUT'])
def update_employee(card_id: str):
    """Change name or department; the card id itself is fixed"""
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_data(data, update_employee_schema)
    if not is_valid:
        return jsonify({'success': False, 'error': error}), 400

    try:
        employee = employee_service.update(card_id, data.get('name'), data.get('department'))
        if not employee:
            return jsonify({'success': False, 'error': f'Card {card_id} is not registered'}), 404
        return jsonify({'success': True, 'data': employee.to_dict()})
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        current_app.logger.error(f"Error updating employee {card_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
