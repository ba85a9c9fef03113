#!/usr/bin/env python3
"""
Schema Anomaly Auditor - Command Line Audit
Applies a schema script to the configured database and prints the anomalies
found in it.

Usage:
    python -m scripts.audit_schema schema.sql
    python -m scripts.audit_schema schema.sql --json
    python -m scripts.audit_schema --skip-upload
    python -m scripts.audit_schema schema.sql --database-url sqlite:///audit.db

Options:
    SCRIPT               Path to the .sql script to apply
    --skip-upload        Analyze the current schema without applying a script
    --json               Output anomalies as JSON instead of the text report
    --database-url URL   Audit this database instead of the configured one

Exit codes:
    0 = No anomalies found
    1 = Script could not be applied, or the analysis aborted
    2 = Anomalies found
"""

import sys
import argparse
import json
from pathlib import Path
from typing import List, Optional

# Add src to path
backend_src = Path(__file__).parent.parent
sys.path.insert(0, str(backend_src.absolute()))

from utils.logger import logger
from database.connection import DatabaseConnection
from database.audit import AuditError, SchemaAuditService, generate_text_report, summarize


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Apply a schema script and audit it for structural anomalies"
    )
    parser.add_argument(
        'script',
        nargs='?',
        help='Path to the .sql script to apply'
    )
    parser.add_argument(
        '--skip-upload',
        action='store_true',
        help='Analyze the current schema without applying a script'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Output anomalies as JSON'
    )
    parser.add_argument(
        '--database-url',
        help='SQLAlchemy URL of the database to audit'
    )
    return parser


def run_audit(service: SchemaAuditService, script_path: Optional[str], as_json: bool) -> int:
    """
    Upload (unless ``script_path`` is None), analyze and print the result.

    Returns:
        Process exit code
    """
    if script_path is not None:
        executed = service.upload_file(script_path)
        logger.info(f"Applied {executed} statements from {script_path}")

    service.analyze()
    anomalies = service.list_anomalies()

    if as_json:
        print(json.dumps({
            "summary": summarize(anomalies),
            "anomalies": [anomaly.to_dict() for anomaly in anomalies]
        }, indent=2))
    else:
        print(generate_text_report(anomalies))

    return 2 if anomalies else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.skip_upload and not args.script:
        parser.error("a script path is required unless --skip-upload is given")

    connection = DatabaseConnection(args.database_url)
    try:
        service = SchemaAuditService(connection.get_engine(), connection.get_session_factory())
        return run_audit(service, None if args.skip_upload else args.script, args.json)
    except (AuditError, OSError) as e:
        logger.error(f"Audit failed: {e}")
        print(f"Audit failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Audit aborted: {e}", exc_info=True)
        print(f"Audit aborted: {e}", file=sys.stderr)
        return 1
    finally:
        connection.close()


if __name__ == '__main__':
    sys.exit(main())
