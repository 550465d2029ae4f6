# Classroom QR Attendance - Modules Package
"""
Core modules for QR attendance verification and reporting.
"""

# Module descriptions
MODULES = {
    'models': 'Students, courses, sessions and scan attempts',
    'timeutils': 'UTC clock and display-time labels',
    'qr_token': 'QR payload model, parsing and image rendering',
    'attendance_store': 'Attendance record store (SQLite and in-memory)',
    'scan_verifier': 'Scan acceptance rules',
    'report_aggregator': 'Presence matrix construction',
    'statistics': 'Attendance summary statistics and chart data',
    'csv_serializer': 'Attendance CSV export',
    'attendance_manager': 'Issuing, scanning and reporting workflows'
}


def get_module_info():
    """Get information about available modules"""
    return MODULES
