"""Ward Pickup management CLI.

Usage:
    python src/manage.py setup-db              # Create all tables
    python src/manage.py drop-db               # Drop all tables
    python src/manage.py seed-wards            # Create the canonical wards
    python src/manage.py reconcile [--apply]   # Recompute denormalized counters
    python src/manage.py complete-elapsed      # Complete past sent pickups
"""

import argparse
import sys


def _domain():
    from pickups.domain import pickups

    pickups.init()
    return pickups


def setup_database():
    from pickups.utils.db import setup_db

    domain = _domain()
    print("Creating pickups database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from pickups.utils.db import drop_db

    domain = _domain()
    print("Dropping pickups database schema...")
    drop_db(domain)
    print("Done.")


def seed_wards():
    from pickups.ward.registry import WardRegistry

    domain = _domain()
    with domain.domain_context():
        created = WardRegistry().seed()
    print(f"Seeded {created} ward(s).")


def reconcile(apply: bool):
    from pickups.maintenance.reconciliation import CounterReconciler

    domain = _domain()
    with domain.domain_context():
        report = CounterReconciler().reconcile(apply=apply)

    for drift in report.notification_drifts + report.ward_drifts:
        print(f"  {drift.entity_id} {drift.counter}: stored={drift.stored} actual={drift.actual}")
    if not report.has_drift:
        print("No drift found.")
    elif apply:
        print("Corrections written.")
    else:
        print("Dry run; re-run with --apply to write corrections.")


def complete_elapsed():
    from pickups.fanout import get_fanout
    from pickups.notification.lifecycle import NotificationLifecycle

    domain = _domain()
    with domain.domain_context():
        completed = NotificationLifecycle(get_fanout()).complete_elapsed()
    print(f"Completed {len(completed)} notification(s).")


def main():
    parser = argparse.ArgumentParser(description="Ward Pickup management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("seed-wards", help="Create the canonical wards that do not exist yet")
    reconcile_parser = subparsers.add_parser("reconcile", help="Recompute response and ward counters")
    reconcile_parser.add_argument("--apply", action="store_true", help="Write corrected counters")
    subparsers.add_parser("complete-elapsed", help="Mark sent pickups whose time has passed as completed")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-wards":
        seed_wards()
    elif args.command == "reconcile":
        reconcile(args.apply)
    elif args.command == "complete-elapsed":
        complete_elapsed()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
