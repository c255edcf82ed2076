#!/usr/bin/env python
"""Idempotent demo seed script for repair tickets.

Usage:
    python backend/scripts/seed_tickets.py                  # seed demo tickets once
    python backend/scripts/seed_tickets.py --show           # print ticket table (after ensuring seed)
    python backend/scripts/seed_tickets.py --dry-run        # run logic then rollback (no DB changes)
    python backend/scripts/seed_tickets.py --token Manager  # print a dev JWT carrying the Manager preset permissions
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from datetime import timedelta
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from flask_jwt_extended import create_access_token  # noqa: E402
from repairdesk import create_app, get_db  # noqa: E402
from repairdesk.constants.permissions import ROLE_PRESETS, expand_role  # noqa: E402
from repairdesk.models.base import Base, utcnow  # noqa: E402
from repairdesk.models.repair_ticket import RepairTicket  # noqa: E402
from repairdesk.services.lifecycle import generate_ticket_number  # noqa: E402
from repairdesk.services.resolver import summarize_tickets  # noqa: E402
from repairdesk.services.ticket_store import SqlTicketStore  # noqa: E402

# (customer, device type, brand, model, issue, status, priority, age in days)
DEMO_TICKETS = [
    ('Jane Doe', 'Smartphone', 'Apple', 'iPhone 13 Pro', 'Cracked screen', 'ready', 'normal', 3),
    ('John Smith', 'Smartphone', 'Samsung', 'Galaxy S21', 'Battery drains quickly', 'repairing', 'high', 9),
    ('Johnny Appleseed', 'Tablet', 'Apple', 'iPad Air', 'Charging port loose', 'awaiting_parts', 'normal', 12),
    ('Maria Garcia', 'Smartphone', 'Google', 'Pixel 7', 'Water damage', 'diagnosing', 'urgent', 1),
    ('Ahmed Khan', 'Smartphone', 'OnePlus', '11', 'Camera not focusing', 'completed', 'low', 30),
    ('Li Wei', 'Smartwatch', 'Apple', 'Watch Series 8', 'Back glass cracked', 'cancelled', 'normal', 15),
]


def ensure_demo_tickets(session, prefix: str) -> int:
    existing = {n for n in session.execute(select(RepairTicket.customer_name)).scalars().all()}
    created = 0
    for customer, dtype, brand, model, issue, status, priority, age in DEMO_TICKETS:
        if customer in existing:
            continue
        created_at = utcnow() - timedelta(days=age)
        session.add(RepairTicket(
            ticket_number=generate_ticket_number(session, prefix, created_at),
            customer_name=customer,
            device_type=dtype,
            device_brand=brand,
            device_model=model,
            issue_description=issue,
            status=status,
            priority=priority,
            created_at=created_at,
            updated_at=created_at,
        ))
        # flush so the next generated number sees this one
        session.flush()
        created += 1
    return created


def print_tickets(session):
    records = SqlTicketStore(session).all_tickets()
    if not records:
        print("[INFO] No tickets present.")
        return
    name_w = max(len(r.customer_name) for r in records)
    print(f"{'Ticket'.ljust(16)} | {'Customer'.ljust(name_w)} | Status")
    print('-' * (name_w + 40))
    for r in records:
        print(f"{r.ticket_number.ljust(16)} | {r.customer_name.ljust(name_w)} | {r.status}")
    summary = summarize_tickets(records)
    print('\n' + ', '.join(f"{k}={v}" for k, v in summary.items()))


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed demo repair tickets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_tickets.py\n  dry run: seed_tickets.py --dry-run\n  dev token: seed_tickets.py --token Owner\n""")
    )
    p.add_argument('--show', action='store_true', help='Print tickets and summary counters after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--token', choices=sorted(ROLE_PRESETS), metavar='ROLE', help='Print a development JWT for a preset role')
    p.add_argument('--user-id', type=int, default=1, help='Identity embedded in --token (default 1)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM repair_tickets LIMIT 1'))
        except OperationalError:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            import repairdesk.models.audit  # noqa: F401
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        try:
            created = ensure_demo_tickets(session, app.config['TICKET_NUMBER_PREFIX'])
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Tickets would create: {created}")
            else:
                session.commit()
                print(f"[DONE] Tickets created: {created}")
            if args.show:
                print('\nTickets:')
                print_tickets(session)
            if args.token:
                token = create_access_token(identity=str(args.user_id), additional_claims={'perms': expand_role(args.token)})
                print(f"\n[TOKEN] {args.token}: {token}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
