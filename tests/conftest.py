"""
Shared fixtures: an in-memory SQLite database per test, a mess with meal
plans and memberships, and an API client bound to the test session.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from smartmess.core.utils import local_today  # noqa: E402
from smartmess.db.init_db import drop_db, init_db  # noqa: E402
from smartmess.db.session import build_engine, get_db  # noqa: E402
from smartmess.models.chat import ChatRoom  # noqa: E402
from smartmess.models.common.enums import (  # noqa: E402
    CreditAccountStatus,
    LeaveStatus,
    MembershipStatus,
    PaymentRequestStatus,
    PricingPeriod,
)
from smartmess.models.credits import CreditSlab, MessCredits  # noqa: E402
from smartmess.models.leave import UserLeave  # noqa: E402
from smartmess.models.mess import MealPlan, MessMembership, MessProfile  # noqa: E402

OWNER_ID = "owner-0001"
ADMIN_ID = "admin-0001"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    drop_db(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    return local_today()


@pytest.fixture
def mess(db):
    profile = MessProfile(owner_id=OWNER_ID, name="Sunrise Mess")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def full_plan(db, mess):
    plan = MealPlan(
        mess_id=mess.id,
        name="Monthly Full",
        pricing_amount=Decimal("2500.00"),
        pricing_period=PricingPeriod.MONTHLY,
        meals_per_day=3,
        breakfast=True,
        lunch=True,
        dinner=True,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def no_dinner_plan(db, mess):
    plan = MealPlan(
        mess_id=mess.id,
        name="Day Scholar",
        pricing_amount=Decimal("1800.00"),
        pricing_period=PricingPeriod.MONTHLY,
        meals_per_day=2,
        breakfast=True,
        lunch=True,
        dinner=False,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def make_membership(db, mess, today):
    counter = {"n": 0}

    def _make(plan, status=MembershipStatus.ACTIVE, end_offset=30, **fields):
        counter["n"] += 1
        fields.setdefault("user_id", f"member-{counter['n']:04d}")
        fields.setdefault("subscription_start_date", today - timedelta(days=1))
        fields.setdefault("subscription_end_date", today + timedelta(days=end_offset))
        membership = MessMembership(
            mess_id=mess.id,
            meal_plan_id=plan.id if plan is not None else None,
            status=status,
            **fields,
        )
        db.add(membership)
        db.commit()
        return membership

    return _make


@pytest.fixture
def membership(make_membership, full_plan):
    return make_membership(full_plan)


@pytest.fixture
def pending_request(make_membership, full_plan):
    return make_membership(
        full_plan,
        status=MembershipStatus.PENDING,
        payment_request_status=PaymentRequestStatus.SENT,
        subscription_start_date=None,
        subscription_end_date=None,
    )


@pytest.fixture
def approved_leave(db, mess):
    def _leave(membership, start, end, meal_types=None, **fields):
        leave = UserLeave(
            user_id=membership.user_id,
            mess_id=mess.id,
            membership_id=membership.id,
            start_date=start,
            end_date=end,
            meal_types=meal_types or ["breakfast", "lunch", "dinner"],
            status=fields.pop("status", LeaveStatus.APPROVED),
            **fields,
        )
        db.add(leave)
        db.commit()
        return leave

    return _leave


@pytest.fixture
def chat_room(db, mess):
    room = ChatRoom(mess_id=mess.id, name="Sunrise Mess", is_default=True, created_by=OWNER_ID)
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def slabs(db):
    rows = [
        CreditSlab(min_users=1, max_users=10, credits_per_user=10, is_active=True),
        CreditSlab(min_users=11, max_users=50, credits_per_user=8, is_active=True),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def funded_credits(db, mess):
    """Credit account past its trial with a positive balance."""

    def _fund(amount):
        credits = MessCredits(
            mess_id=mess.id,
            total_credits=amount,
            used_credits=0,
            available_credits=amount,
            is_trial_active=False,
            status=CreditAccountStatus.ACTIVE,
        )
        db.add(credits)
        db.commit()
        return credits

    return _fund


@pytest.fixture
def client(db):
    from smartmess.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def owner_headers():
    return {"X-User-Id": OWNER_ID, "X-User-Role": "mess-owner"}


@pytest.fixture
def admin_headers():
    return {"X-User-Id": ADMIN_ID, "X-User-Role": "admin"}
