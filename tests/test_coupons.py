"""Tests for coupon validation and usage counting."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.core.errors import BackendError, CouponRejected, NotFound, ValidationFailed
from storefront.models.schemas import AppliedCoupon, CouponIn
from storefront.services import coupons
from storefront.services.coupons import apply_coupon, coupon_discount, increment_usage

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def applied(discount_type, value):
    return AppliedCoupon(id="c", code="X", discount_type=discount_type, discount_value=Decimal(value))


class TestDiscount:
    def test_percentage(self):
        assert coupon_discount(applied("percentage", 15), Decimal("900")) == Decimal("135")

    def test_fixed_clamped_to_subtotal(self):
        assert coupon_discount(applied("fixed", 2000), Decimal("900.00")) == Decimal("900.00")

    def test_fixed_below_subtotal(self):
        assert coupon_discount(applied("fixed", 250), Decimal("900")) == Decimal("250")

    def test_no_coupon(self):
        assert coupon_discount(None, Decimal("900")) == 0

    @pytest.mark.parametrize("subtotal", ["0", "0.01", "99.99", "1000", "123456.78"])
    @pytest.mark.parametrize("coupon", [applied("percentage", 100), applied("fixed", 500), applied("percentage", 7)])
    def test_discount_stays_within_subtotal(self, coupon, subtotal):
        discount = coupon_discount(coupon, Decimal(subtotal))
        assert Decimal(0) <= discount <= Decimal(subtotal)


class TestApplyCoupon:
    def test_valid_code_is_case_insensitive(self, db, coupon_factory):
        coupon_factory("SAVE10")
        coupon, discount = apply_coupon(db, "  save10 ", Decimal("900"), now=NOW)

        assert coupon.code == "SAVE10"
        assert coupon.id == "c-save10"
        assert discount == Decimal("90")

    def test_blank_code(self, db):
        with pytest.raises(ValidationFailed):
            apply_coupon(db, "   ", Decimal("900"))

    def test_unknown_code(self, db):
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "NOPE", Decimal("900"), now=NOW)
        assert exc.value.reason == "invalid_code"

    def test_inactive_code_is_invalid(self, db, coupon_factory):
        coupon_factory("OLD", is_active=False)
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "OLD", Decimal("900"), now=NOW)
        assert exc.value.reason == "invalid_code"

    def test_expired(self, db, coupon_factory):
        coupon_factory("GONE", expires_at=(NOW - timedelta(seconds=1)).isoformat())
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "GONE", Decimal("900"), now=NOW)
        assert exc.value.reason == "expired"

    def test_expiry_at_now_still_valid(self, db, coupon_factory):
        coupon_factory("EDGE", expires_at=NOW.isoformat())
        apply_coupon(db, "EDGE", Decimal("900"), now=NOW)

    def test_date_only_expiry(self, db, coupon_factory):
        coupon_factory("DATE", expires_at="2026-12-31")
        apply_coupon(db, "DATE", Decimal("900"), now=NOW)

    def test_usage_limit(self, db, coupon_factory):
        coupon_factory("ONCE", max_uses=1, used_count=1)
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "ONCE", Decimal("900"), now=NOW)
        assert exc.value.reason == "usage_limit_reached"

    def test_minimum_order_mentions_amount(self, db, coupon_factory):
        coupon_factory("BIG", min_order_amount=1000)
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "BIG", Decimal("500"), now=NOW)
        assert exc.value.reason == "minimum_order_not_met"
        assert "1000" in exc.value.message

    def test_first_failing_check_wins(self, db, coupon_factory):
        coupon_factory(
            "ALLBAD", expires_at=(NOW - timedelta(days=1)).isoformat(),
            max_uses=1, used_count=5, min_order_amount=10000,
        )
        with pytest.raises(CouponRejected) as exc:
            apply_coupon(db, "ALLBAD", Decimal("500"), now=NOW)
        assert exc.value.reason == "expired"

    def test_apply_writes_nothing(self, db, coupon_factory):
        coupon_factory("SAVE10")
        apply_coupon(db, "SAVE10", Decimal("900"), now=NOW)

        assert db.writes() == []

    def test_backend_failure(self, db):
        db.fail_on("coupons", "select")
        with pytest.raises(BackendError):
            apply_coupon(db, "SAVE10", Decimal("900"))


class TestIncrementUsage:
    def test_increments(self, db, coupon_factory):
        row = coupon_factory("SAVE10")
        assert increment_usage(db, row["id"]) is True
        assert row["used_count"] == 1

    def test_null_count_starts_at_one(self, db, coupon_factory):
        row = coupon_factory("SAVE10", used_count=None)
        assert increment_usage(db, row["id"]) is True
        assert row["used_count"] == 1

    def test_refuses_past_cap(self, db, coupon_factory):
        row = coupon_factory("ONCE", max_uses=1, used_count=1)
        assert increment_usage(db, row["id"]) is False
        assert row["used_count"] == 1

    def test_retries_when_count_moves(self, db, coupon_factory):
        row = coupon_factory("SAVE10", used_count=3)

        def someone_else(fake):
            row["used_count"] = 4

        db.before("coupons", "update", someone_else)
        assert increment_usage(db, row["id"]) is True
        assert row["used_count"] == 5

    def test_lost_race_at_cap(self, db, coupon_factory):
        row = coupon_factory("LAST", max_uses=2, used_count=1)

        def someone_else(fake):
            row["used_count"] = 2

        db.before("coupons", "update", someone_else)
        assert increment_usage(db, row["id"]) is False
        assert row["used_count"] == 2

    def test_gives_up_after_retries(self, db, coupon_factory):
        row = coupon_factory("BUSY")

        def someone_else(fake):
            row["used_count"] += 1

        for _ in range(3):
            db.before("coupons", "update", someone_else)
        assert increment_usage(db, row["id"], retries=2) is False
        assert row["used_count"] == 2


class TestAdminCoupons:
    def test_create_uppercases_code(self, db):
        row = coupons.create_coupon(db, CouponIn(code=" diwali ", discount_type="fixed", discount_value="250"))

        assert row["code"] == "DIWALI"
        assert row["used_count"] == 0
        assert Decimal(row["discount_value"]) == Decimal("250")

    def test_duplicate_code_rejected(self, db, coupon_factory):
        coupon_factory("DIWALI")
        with pytest.raises(ValidationFailed):
            coupons.create_coupon(db, CouponIn(code="diwali", discount_type="fixed", discount_value=1))

    def test_percentage_over_100_rejected(self):
        with pytest.raises(ValueError):
            CouponIn(code="X", discount_type="percentage", discount_value=150)

    def test_update_keeps_used_count(self, db, coupon_factory):
        row = coupon_factory("SAVE10", used_count=7)
        coupons.update_coupon(db, row["id"], CouponIn(code="SAVE15", discount_type="percentage", discount_value=15))

        assert row["code"] == "SAVE15"
        assert row["used_count"] == 7

    def test_update_and_delete_missing(self, db):
        payload = CouponIn(code="X", discount_type="fixed", discount_value=1)
        with pytest.raises(NotFound):
            coupons.update_coupon(db, "missing", payload)
        with pytest.raises(NotFound):
            coupons.delete_coupon(db, "missing")
