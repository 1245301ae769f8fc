# Overview: Pytest coverage for the quota gate and quota-gated store/user creation.

"""
Quota Gate Tests

1. Decisions reflect the owner's live plan (active or pending)
2. No subscription / broken plan -> denied with max_allowed 0
3. store_service / user_service enforce the gate in the creating transaction
4. Administrators bypass the gate
"""

from conftest import make_plan, make_store, make_subscription, make_user
from posledger.models import CashFlowCategory, Store, User
from posledger.models.auth import ROLE_CASHIER
from posledger.models.subscriptions import SUBSCRIPTION_CANCELLED, SUBSCRIPTION_PENDING
from posledger.services import cashflow_service, quota_service, store_service, user_service

PASSWORD = "correct-horse-battery"


class TestStoreQuota:

    def test_limit_reached(self, db_session, owner, plan):
        """max_stores = 2 with 2 active stores -> allowed False, 2, 2."""
        make_subscription(owner, plan)
        make_store(owner, "One")
        make_store(owner, "Two")

        decision = quota_service.can_create_store(owner.id)
        assert decision.allowed is False
        assert decision.current_count == 2
        assert decision.max_allowed == 2
        assert "Store limit reached" in decision.reason
        assert "Test Plan" in decision.reason

    def test_below_limit(self, db_session, owner, plan):
        make_subscription(owner, plan)
        make_store(owner, "One")
        decision = quota_service.can_create_store(owner.id)
        assert decision.to_dict() == {"allowed": True, "current_count": 1, "max_allowed": 2, "reason": None}

    def test_inactive_stores_do_not_count(self, db_session, owner, plan):
        make_subscription(owner, plan)
        make_store(owner, "Open")
        closed = make_store(owner, "Closed")
        closed.is_active = False
        db_session.commit()

        assert quota_service.can_create_store(owner.id).current_count == 1

    def test_no_subscription(self, db_session, owner):
        decision = quota_service.can_create_store(owner.id)
        assert decision.allowed is False
        assert decision.max_allowed == 0
        assert decision.reason.startswith("No active subscription found")

    def test_pending_subscription_counts_as_live(self, db_session, owner, plan):
        make_subscription(owner, plan, status=SUBSCRIPTION_PENDING)
        assert quota_service.can_create_store(owner.id).allowed is True

    def test_cancelled_subscription_is_not_live(self, db_session, owner, plan):
        make_subscription(owner, plan, status=SUBSCRIPTION_CANCELLED)
        assert quota_service.can_create_store(owner.id).allowed is False

    def test_inactive_plan_is_invalid(self, db_session, owner, plan):
        make_subscription(owner, plan)
        plan.is_active = False
        db_session.commit()

        decision = quota_service.can_create_store(owner.id)
        assert decision.allowed is False
        assert decision.max_allowed == 0
        assert decision.reason.startswith("Invalid subscription plan")


class TestCreateStore:

    def test_creates_store_with_default_categories(self, db_session, owner, plan):
        make_subscription(owner, plan)
        result = store_service.create_store(owner.id, {"name": "Toko Utama", "timezone": "Asia/Jakarta"})
        assert result.ok, result.error

        store = result.value
        assert store.owner_id == owner.id
        categories = cashflow_service.list_categories(store.id)
        expected = len(cashflow_service.DEFAULT_INCOME_CATEGORIES) + len(cashflow_service.DEFAULT_EXPENSE_CATEGORIES)
        assert len(categories) == expected
        assert len(cashflow_service.list_categories(store.id, type="expense")) == len(
            cashflow_service.DEFAULT_EXPENSE_CATEGORIES
        )

    def test_quota_exceeded(self, db_session, owner):
        plan = make_plan(max_stores=1)
        make_subscription(owner, plan)
        assert store_service.create_store(owner.id, {"name": "First"}).ok

        result = store_service.create_store(owner.id, {"name": "Second"})
        assert result.kind == "quota_exceeded"
        assert result.error.details["current_count"] == 1
        assert result.error.details["max_allowed"] == 1
        assert db_session.query(Store).filter_by(owner_id=owner.id).count() == 1

    def test_denied_creation_leaves_no_categories(self, db_session, owner):
        result = store_service.create_store(owner.id, {"name": "Nope"})
        assert result.kind == "quota_exceeded"
        assert db_session.query(CashFlowCategory).count() == 0

    def test_administrator_bypass(self, db_session, admin):
        result = store_service.create_store(admin.id, {"name": "HQ"}, bypass_quota=True)
        assert result.ok

    def test_cashier_cannot_own_store(self, db_session, cashier_a):
        result = store_service.create_store(cashier_a.id, {"name": "Mine"}, bypass_quota=True)
        assert result.kind == "invalid_request"

    def test_invalid_store_fields(self, db_session, owner, plan):
        make_subscription(owner, plan)
        assert store_service.create_store(owner.id, {"name": "Tz", "timezone": "Mars/Olympus"}).kind == "invalid_request"
        assert store_service.create_store(owner.id, {"name": "Tax", "tax_rate_bps": 10001}).kind == "invalid_request"
        assert store_service.create_store(owner.id, {}).kind == "invalid_request"

    def test_unknown_owner(self, db_session):
        assert store_service.create_store(99999, {"name": "Ghost"}).kind == "invalid_request"

    def test_reactivation_refused(self, db_session, owner, store_a):
        assert store_service.update_store(store_a.id, {"is_active": False}).ok
        assert store_service.update_store(store_a.id, {"is_active": True}).kind == "invalid_request"

    def test_list_stores(self, db_session, owner, store_a, store_b):
        assert [s.id for s in store_service.list_stores(owner.id)] == [store_a.id]
        assert len(store_service.list_stores()) == 2


class TestCreateUser:

    def _payload(self, username, **extra):
        payload = {
            "username": username,
            "email": f"{username}@example.com",
            "first_name": username.capitalize(),
            "last_name": "Staff",
            "role": ROLE_CASHIER,
        }
        payload.update(extra)
        return payload

    def test_user_quota(self, db_session, owner):
        plan = make_plan(max_users=2)
        make_subscription(owner, plan)
        store = make_store(owner, "Small")
        make_user("existing", ROLE_CASHIER, store_id=store.id)

        decision = quota_service.can_create_user(owner.id)
        assert (decision.allowed, decision.current_count, decision.max_allowed) == (True, 1, 2)

        created = user_service.create_user(self._payload("second"), PASSWORD, store_id=store.id)
        assert created.ok, created.error
        assert created.value.store_id == store.id

        denied = user_service.create_user(self._payload("third"), PASSWORD, store_id=store.id)
        assert denied.kind == "quota_exceeded"
        assert "User limit reached" in denied.error.message
        assert db_session.query(User).filter_by(store_id=store.id).count() == 2

    def test_password_is_hashed(self, db_session, owner, plan):
        make_subscription(owner, plan)
        store = make_store(owner, "Hashy")
        user = user_service.create_user(self._payload("hashy"), PASSWORD, store_id=store.id).unwrap()
        assert user.password_hash != PASSWORD
        assert user_service.verify_password(PASSWORD, user.password_hash)
        assert not user_service.verify_password("wrong-password", user.password_hash)
        assert "password_hash" not in user.to_dict()

    def test_short_password(self, db_session):
        assert user_service.create_user(self._payload("shorty"), "short").kind == "invalid_request"

    def test_duplicate_username(self, db_session, owner):
        result = user_service.create_user(self._payload("owner", email="other@example.com"), PASSWORD)
        assert result.kind == "invalid_request"

    def test_unknown_role(self, db_session):
        assert user_service.create_user(self._payload("roley", role="king"), PASSWORD).kind == "invalid_request"

    def test_unknown_store(self, db_session):
        assert user_service.create_user(self._payload("lost"), PASSWORD, store_id=99999).kind == "invalid_request"

    def test_unassigned_user_requires_administrator(self, db_session, owner, plan):
        make_subscription(owner, plan)
        denied = user_service.create_user(self._payload("floating"), PASSWORD)
        assert denied.kind == "quota_exceeded"
        assert "without store assignment" in denied.error.message
        assert db_session.query(User).filter_by(username="floating").count() == 0

        allowed = user_service.create_user(self._payload("floating"), PASSWORD, bypass_quota=True)
        assert allowed.ok
        assert allowed.value.store_id is None

    def test_administrator_bypass(self, db_session, owner):
        store = make_store(owner, "Unsubscribed")
        result = user_service.create_user(self._payload("helper"), PASSWORD, store_id=store.id, bypass_quota=True)
        assert result.ok
