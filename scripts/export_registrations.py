#!/usr/bin/env python3
"""
Registration CSV Export Tool

Downloads all registrations from a running registration server and writes
them as a CSV snapshot (password and internal ids omitted).

Usage:
    python scripts/export_registrations.py --url https://example.org
    python scripts/export_registrations.py --url http://localhost:5001 --output teams.csv --round2-only

Exit codes:
    0: Success
    1: Server connection failed
    2: Export write failure
"""
import argparse
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.admin import export_snapshot, filter_by_round2
from core.client import ApiClient
from core.errors import RegistrationError


def default_output_path() -> str:
    timestamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    return f'hackathon_registrations-{timestamp}.csv'


def fetch_registrations(base_url: str, round2_only: bool = False):
    """Fetch registrations from the server. Returns None on failure."""
    try:
        records = ApiClient(base_url).list_registrations()
    except RegistrationError as e:
        print(f"Error: Failed to fetch registrations from {base_url}: {e.message}", file=sys.stderr)
        return None
    return filter_by_round2(records, round2_only)


def write_export(records, output_path: str) -> bool:
    try:
        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(export_snapshot(records))
    except OSError as e:
        print(f"Error: Failed to write {output_path}: {e}", file=sys.stderr)
        return False
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Export hackathon registrations to CSV.')
    parser.add_argument('--url', required=True, help='Base URL of the registration server')
    parser.add_argument('--output', help='Output CSV path (default: timestamped file in the current directory)')
    parser.add_argument('--round2-only', action='store_true', help='Only export teams selected for Round 2')
    args = parser.parse_args(argv)

    records = fetch_registrations(args.url, args.round2_only)
    if records is None:
        return 1

    output_path = args.output or default_output_path()
    if not write_export(records, output_path):
        return 2

    print(f"Exported {len(records)} registrations to {output_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
