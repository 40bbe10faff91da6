from __future__ import annotations

import argparse
from datetime import date, datetime, timedelta
import json
import random
import sys
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from backend.app.domain.contracts import LineItemContract, PurchaseContract
from backend.app.models import utcnow
from backend.app.services.insights_service import list_insights, record_purchase

# (sku, description, category, vendor, cadence_days, base_qty, unit_price_cents)
DEMO_CATALOG: List[Tuple[str, str, str, str, int, int, int]] = [
    ("CHK-01", "Chicken breast 40lb", "Meat", "Sysco", 7, 20, 450),
    ("BEEF-02", "Ground beef 80/20", "Meat", "Sysco", 7, 15, 520),
    ("LET-01", "Romaine hearts", "Produce", "Local Farm", 4, 6, 180),
    ("TOM-01", "Roma tomatoes 25lb", "Produce", "Local Farm", 4, 3, 2400),
    ("OIL-01", "Fryer oil 35lb", "Dry Goods", "Restaurant Depot", 14, 2, 3200),
    ("FLR-01", "All purpose flour 50lb", "Dry Goods", "US Foods", 21, 2, 1900),
    ("NAP-01", "Dinner napkins case", "Paper", "US Foods", 30, 1, 4500),
    ("MAT-01", "Floor mat rental", "Services", "Cintas", 14, 1, 3800),
]


def _demo_purchases(user_id: str, as_of: date, days: int, seed: int) -> List[PurchaseContract]:
    rng = random.Random(seed)
    start = as_of - timedelta(days=days)
    by_visit: Dict[Tuple[str, date], List[LineItemContract]] = {}
    for sku, description, category, vendor, cadence, qty, price in DEMO_CATALOG:
        day = start + timedelta(days=rng.randint(0, cadence - 1))
        while day < as_of:
            drift = 1 + (day - start).days / max(days, 1) * 0.08
            by_visit.setdefault((vendor, day), []).append(
                LineItemContract(
                    sku=sku,
                    description=description,
                    quantity=max(1, qty + rng.randint(-1, 1)),
                    unit_price_cents=int(round(price * drift)),
                    category=category,
                )
            )
            day += timedelta(days=cadence + rng.choice((-1, 0, 0, 1)))

    return [
        PurchaseContract(
            user_id=user_id,
            vendor_name=vendor,
            occurred_at=datetime(day.year, day.month, day.day, 10, 0),
            items=items,
        )
        for (vendor, day), items in sorted(by_visit.items(), key=lambda kv: (kv[0][1], kv[0][0]))
    ]


def seed_demo_kitchen(
    db: Session,
    user_id: str,
    as_of: date,
    *,
    days: int = 180,
    seed: int = 7,
) -> int:
    """Loads a deterministic restaurant purchase history ending the day before as_of."""
    purchases = _demo_purchases(user_id, as_of, days, seed)
    for purchase in purchases:
        record_purchase(db, purchase, commit=False)
    db.commit()
    return len(purchases)


def _parse_date(raw: Optional[str]) -> date:
    if not raw:
        return utcnow().date()
    return date.fromisoformat(raw)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a demo purchase history and print its insights.")
    parser.add_argument("--user-id", default="demo-kitchen", help="Owner of the seeded purchases.")
    parser.add_argument("--as-of", help="YYYY-MM-DD (defaults to today)")
    parser.add_argument("--days", type=int, default=180, help="Days of history to generate.")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--init-db", action="store_true", help="Create tables before seeding.")
    args = parser.parse_args()

    from backend.app.db import SessionLocal, init_db

    if args.init_db:
        init_db()
    as_of = _parse_date(args.as_of)
    with SessionLocal() as session:
        count = seed_demo_kitchen(session, args.user_id, as_of, days=args.days, seed=args.seed)
        feed = list_insights(session, args.user_id, as_of=as_of)

    print(f"Seeded {count} purchases for {args.user_id}")
    print(json.dumps(feed, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
