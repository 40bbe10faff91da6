from datetime import date
import os
from pathlib import Path
import sys
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from backend.app.seed.run import _demo_purchases, seed_demo_kitchen  # noqa: E402
from backend.app.services.insights_service import list_insights  # noqa: E402

AS_OF = date(2024, 6, 3)


def test_demo_history_is_deterministic():
    first = _demo_purchases("demo", AS_OF, 120, seed=7)
    second = _demo_purchases("demo", AS_OF, 120, seed=7)

    assert first == second
    assert all(p.occurred_at.date() < AS_OF for p in first)


def test_seeded_kitchen_produces_a_clean_feed(sqlite_session):
    user_id = f"demo-{uuid.uuid4().hex[:8]}"

    count = seed_demo_kitchen(sqlite_session, user_id, AS_OF)
    feed = list_insights(sqlite_session, user_id, as_of=AS_OF, include_detectors=True)

    assert count > 0
    assert feed["insights"]
    assert not [d["detector_id"] for d in feed["detectors"] if d["failed"]]
    assert all(i["vendor_name"] != "Cintas" for i in feed["insights"])
