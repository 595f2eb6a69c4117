"""
Admin review actions: Round-2 selection, certificate dispatch and CSV export.
"""
import csv
import io
import logging

from .mailer import DEFAULT_SIGNATURE, certificate_mailto

logger = logging.getLogger(__name__)

EXCLUDED_EXPORT_FIELDS = {'id', '_id', '__v', 'password'}


def promote_to_round2(store, reg_id):
    """Flip the Round-2 flag of a registration."""
    record = store.toggle(reg_id, 'round2')
    logger.info(f'Round 2 for {record.team_name!r} is now {record.round2}')
    return record


def mark_certificate_sent(store, reg_id, signature=DEFAULT_SIGNATURE):
    """Set certificateSent and return (record, mailto link for the head)."""
    record = store.update(reg_id, {'certificateSent': True})
    logger.info(f'Certificate marked as sent for {record.team_name!r}')
    return record, certificate_mailto(record.to_public_dict(), signature)


def filter_by_round2(records, only_round2):
    if not only_round2:
        return list(records)
    return [r for r in records if r.get('round2')]


def _render(value):
    if isinstance(value, bool):
        return 'YES' if value else 'NO'
    if value is None:
        return ''
    return str(value)


def export_snapshot(records) -> str:
    """Render records as CSV text.

    The header comes from the first record's keys, minus the identifier and
    password. Header names are bare; every value is quoted.
    """
    if not records:
        return ''
    headers = [h for h in records[0] if h not in EXCLUDED_EXPORT_FIELDS]

    output = io.StringIO()
    output.write(','.join(headers) + '\n')
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    for record in records:
        writer.writerow([_render(record.get(h)) for h in headers])
    csv_content = output.getvalue()
    output.close()
    return csv_content
