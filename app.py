"""
Classroom QR Attendance - Main Application

This module is the Flask entry point. It wires the attendance store, the
attendance manager and the JSON routes used by the lecturer and student
apps. Authentication, screens and file sharing live in the client apps.

Routes:
- POST /api/courses/<course_id>/qr   issue a QR code for a new session
- POST /api/scan                     record a student scan
- GET  /api/reports/<course_id>      presence matrix, stats and chart data
- GET  /api/reports/<course_id>/csv  CSV export
- GET  /health                       health check
"""

import logging
from typing import Optional

from flask import Flask, Response, current_app, jsonify, request

from attendance_app.modules import get_module_info
from attendance_app.modules.attendance_manager import (
    NO_RECORDS_MESSAGE,
    AttendanceManager,
    CourseNotFoundError,
)
from attendance_app.modules.attendance_store import AttendanceStore, SQLiteAttendanceStore, StoreError
from attendance_app.modules.models import ScanAttempt
from attendance_app.modules.qr_token import QRTokenIssuer
from attendance_app.modules.scan_verifier import Accept
from attendance_app.modules.timeutils import utcnow
from config import init_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)


def get_manager() -> AttendanceManager:
    return current_app.extensions['attendance_manager']


def create_app(config_name: Optional[str] = None, store: Optional[AttendanceStore] = None) -> Flask:
    """
    Application factory.

    Args:
        config_name (str): Key of the configuration to load
        store (AttendanceStore): Store to use instead of the configured SQLite file

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    config_class = init_config(app, config_name)
    logging.getLogger('attendance_app').setLevel(config_class.LOG_LEVEL)

    if store is None:
        store = SQLiteAttendanceStore(config_class.DATABASE_PATH)

    app.config['REPORTS_FOLDER'] = str(config_class.REPORTS_FOLDER)
    app.extensions['attendance_manager'] = AttendanceManager(
        store,
        qr_issuer=QRTokenIssuer(
            box_size=config_class.QR_CODE_BOX_SIZE,
            border=config_class.QR_CODE_BORDER,
            error_correction=config_class.QR_CODE_ERROR_CORRECT
        ),
        default_expiry_minutes=config_class.QR_CODE_EXPIRY_MINUTES,
        display_timezone=config_class.DISPLAY_TIMEZONE,
        chart_sessions=config_class.REPORT_CHART_SESSIONS
    )

    register_routes(app)
    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CourseNotFoundError)
    def course_not_found(error):
        return jsonify({'success': False, 'message': str(error), 'error_type': 'course_not_found'}), 404

    @app.errorhandler(StoreError)
    def store_unavailable(error):
        logger.error(f"Attendance store error: {str(error)}")
        return jsonify({
            'success': False,
            'message': 'Attendance could not be saved. Please try again.',
            'error_type': 'store_error'
        }), 503


def register_routes(app: Flask) -> None:

    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Classroom QR Attendance',
            'modules': sorted(get_module_info())
        })

    @app.route('/api/courses/<course_id>/qr', methods=['POST'])
    def issue_qr_code(course_id):
        """Open an attendance session and return its QR code"""
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({'success': False, 'message': 'Request body must be a JSON object'}), 400
        expires_in = data.get('expires_in_minutes')
        if expires_in is not None and (
            isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in < 0
        ):
            return jsonify({
                'success': False,
                'message': 'expires_in_minutes must be a non-negative integer'
            }), 400

        with_caption = data.get('with_caption', False)
        if not isinstance(with_caption, bool):
            return jsonify({'success': False, 'message': 'with_caption must be a boolean'}), 400

        result = get_manager().issue_qr_code(
            course_id,
            expires_in_minutes=expires_in,
            with_caption=with_caption
        )
        return jsonify({'success': True, 'data': result}), 201

    @app.route('/api/scan', methods=['POST'])
    def process_scan():
        """Verify a QR code scan and record attendance"""
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({'success': False, 'message': 'Request body must be a JSON object'}), 400
        qr_data = data.get('qr_data')
        student_id = data.get('student_id')
        course_id = data.get('course_id')

        if not isinstance(qr_data, str) or not qr_data.strip():
            return jsonify({'success': False, 'message': 'No QR code data provided'}), 400

        if not student_id or not course_id:
            return jsonify({'success': False, 'message': 'Student and course are required'}), 400

        attempt = ScanAttempt(
            raw_payload=qr_data,
            claimed_course_id=str(course_id),
            student_id=str(student_id),
            presented_at=utcnow()
        )
        result = get_manager().record_scan(attempt)

        if isinstance(result, Accept):
            return jsonify(result.to_dict())

        body = result.to_dict()
        if not result.reason.is_input_error:
            body['already_recorded'] = True
            return jsonify(body)

        return jsonify(body), 400

    @app.route('/api/reports/<course_id>')
    def course_report(course_id):
        """Presence matrix, summary statistics and chart data for a course"""
        manager = get_manager()
        report = manager.generate_report(course_id)
        return jsonify({'success': True, 'data': report.to_dict(manager.display_timezone)})

    @app.route('/api/reports/<course_id>/csv')
    def course_report_csv(course_id):
        """Download the attendance CSV for a course"""
        manager = get_manager()
        report = manager.generate_report(course_id)

        if not report.has_data:
            return jsonify({'success': False, 'message': NO_RECORDS_MESSAGE}), 404

        if request.args.get('save', '').lower() in ('1', 'true', 'yes'):
            manager.save_report(report, current_app.config['REPORTS_FOLDER'])

        return Response(
            report.csv_text,
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename="{report.filename}"'}
        )


if __name__ == '__main__':
    application = create_app()
    application.run(debug=True, host='0.0.0.0', port=5000)
