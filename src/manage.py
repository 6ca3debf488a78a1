"""Hubship management CLI.

Usage:
    python src/manage.py setup-db       # Create all tables
    python src/manage.py drop-db        # Drop all tables
    python src/manage.py sync-returns   # Reconcile in-flight return shipments
"""

import argparse
import sys


def setup_databases():
    from logistics.domain import logistics
    from logistics.utils.db import setup_db

    print("Initializing logistics domain...")
    logistics.init()
    touched = setup_db(logistics)
    print(f"  Schema ready for: {', '.join(touched) or 'no relational providers'}")


def drop_databases():
    from logistics.domain import logistics
    from logistics.utils.db import drop_db

    print("Initializing logistics domain...")
    logistics.init()
    touched = drop_db(logistics)
    print(f"  Schema dropped for: {', '.join(touched) or 'no relational providers'}")


def run_sync(services):
    """Run one reconciliation pass inside the logistics domain context."""
    from logistics.domain import logistics

    with logistics.domain_context():
        summary = services.reconciler.run()
    print(f"Checked {summary.checked}, updated {summary.updated}, skipped {summary.skipped}, failed {summary.failed}")
    return summary


def sync_returns():
    from logistics.config import Settings
    from logistics.domain import logistics
    from logistics.services import Services
    from logistics.utils.logging import configure_logging

    logistics.init()
    settings = Settings()
    configure_logging(settings.log_level, settings.log_format)
    return run_sync(Services.from_settings(settings))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Hubship management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("sync-returns", help="Reconcile in-flight return shipments with the courier")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "sync-returns":
        summary = sync_returns()
        if summary.failed:
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
