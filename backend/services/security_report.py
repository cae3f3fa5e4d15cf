# =============================================================================
# AgriMarket Backend
# services/security_report.py - Security Report Export
#
# Builds login/security activity reports from stored events and renders
# them as CSV or JSON downloads.
# =============================================================================

import csv
import io
import json
from collections import Counter

from models import utcnow
from errors import BadRequestError

EXPORT_FORMATS = {
    'csv': 'text/csv',
    'json': 'application/json'
}

LOGIN_TYPES = {'login', 'failed_login'}


def _summarize(events):
    logins = [e for e in events if e.type in LOGIN_TYPES]
    failed = [e for e in logins if e.status == 'failed']
    successful = len(logins) - len(failed)

    devices = Counter(e.device or 'Unknown' for e in events)
    locations = Counter(e.location or 'Unknown' for e in events)

    last_failed = max((e.timestamp for e in failed if e.timestamp), default=None)

    return {
        'total_logins': successful,
        'failed_attempts': len(failed),
        'success_rate': (successful / len(logins) * 100) if logins else 0.0,
        'unique_devices': len(devices),
        'unique_locations': len(locations),
        'last_failed_attempt': last_failed.isoformat() if last_failed else None,
        'top_locations': [
            {'location': location, 'count': count}
            for location, count in locations.most_common(5)
        ],
        'top_devices': [
            {'device': device, 'count': count}
            for device, count in devices.most_common(5)
        ]
    }


def prepare_security_report(events, period):
    """
    Assemble a security report.

    Args:
        events: SecurityEvent rows, newest first
        period: Free-form label for the covered period (e.g. '30d')

    Returns:
        dict: metadata, summary and serialized events
    """
    return {
        'metadata': {
            'generated_at': utcnow().isoformat(),
            'period': period,
            'total_events': len(events)
        },
        'summary': _summarize(events),
        'events': [event.to_dict() for event in events]
    }


def export_to_csv(report):
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    summary = report['summary']

    writer.writerow(['Security Report'])
    writer.writerow(['Generated', report['metadata']['generated_at']])
    writer.writerow(['Period', report['metadata']['period']])
    writer.writerow([])

    writer.writerow(['Summary Statistics'])
    writer.writerow(['Total Logins', summary['total_logins']])
    writer.writerow(['Failed Attempts', summary['failed_attempts']])
    writer.writerow(['Success Rate', f"{summary['success_rate']:.2f}%"])
    writer.writerow(['Unique Devices', summary['unique_devices']])
    writer.writerow(['Unique Locations', summary['unique_locations']])
    writer.writerow([])

    writer.writerow(['Top Locations'])
    writer.writerow(['Location', 'Count'])
    for row in summary['top_locations']:
        writer.writerow([row['location'], row['count']])
    writer.writerow([])

    writer.writerow(['Top Devices'])
    writer.writerow(['Device', 'Count'])
    for row in summary['top_devices']:
        writer.writerow([row['device'], row['count']])
    writer.writerow([])

    writer.writerow(['Detailed Events'])
    writer.writerow(['Timestamp', 'Type', 'Status', 'IP Address', 'Location', 'Device', 'Reason'])
    for event in report['events']:
        writer.writerow([
            event['timestamp'],
            event['type'],
            event['status'],
            event['ip_address'],
            event['location'] or 'Unknown',
            event['device'] or 'Unknown',
            event['reason'] or ''
        ])

    return buffer.getvalue()


def export_to_json(report):
    return json.dumps(report, indent=2)


def render_report(report, export_format):
    """
    Render a report in the requested format.

    Returns:
        tuple: (content: str, mimetype: str, filename: str)

    Raises:
        BadRequestError: For unsupported formats (pdf included)
    """
    if export_format not in EXPORT_FORMATS:
        raise BadRequestError(
            f'Unsupported export format: {export_format}',
            details={'supported_formats': sorted(EXPORT_FORMATS)}
        )

    if export_format == 'csv':
        content = export_to_csv(report)
    else:
        content = export_to_json(report)

    filename = f"security-report-{utcnow().strftime('%Y-%m-%d')}.{export_format}"
    return content, EXPORT_FORMATS[export_format], filename
