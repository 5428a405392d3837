"""
Tests for split arithmetic and the percentage cascade.

Covers:
- shareAmount rounding (half-up, whole units)
- Percentage range and split balance validation
- Cascade priority: franchise override, then global, then default
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from franchise_kernel.domain.profit_share import (
    DEFAULT_ADMIN_PERCENTAGE,
    PaymentStatus,
    PercentageSource,
    compute_share_amount,
    franchise_percentage_for,
    override_scope_key,
    parse_payment_status,
    resolve_cascade,
    validate_percentage,
    validate_split,
)
from franchise_kernel.exceptions import (
    InvalidArgumentError,
    InvalidPercentageError,
    UnbalancedSplitError,
)

percentages = st.decimals(min_value=0, max_value=100, places=2, allow_nan=False)
revenues = st.decimals(min_value=0, max_value=10**12, places=2, allow_nan=False)


class TestShareAmount:
    def test_default_split(self):
        assert compute_share_amount(Decimal("1500000"), Decimal("20")) == Decimal("300000")

    def test_override_split(self):
        assert compute_share_amount(Decimal("1500000"), Decimal("35")) == Decimal("525000")

    def test_rounds_half_up_to_whole_units(self):
        # 1005 * 10% = 100.5
        assert compute_share_amount(Decimal("1005"), Decimal("10")) == Decimal("101")
        # 1004 * 10% = 100.4
        assert compute_share_amount(Decimal("1004"), Decimal("10")) == Decimal("100")

    def test_zero_revenue_is_zero_share(self):
        assert compute_share_amount(Decimal("0"), Decimal("20")) == Decimal("0")

    @given(revenues, percentages)
    def test_share_never_exceeds_revenue(self, revenue, percentage):
        share = compute_share_amount(revenue, percentage)
        assert Decimal(0) <= share <= revenue.to_integral_value(rounding="ROUND_CEILING")
        assert share == share.to_integral_value()


class TestPercentageValidation:
    @pytest.mark.parametrize("value", ["0", "100", 20, 35.5, Decimal("12.345")])
    def test_accepts_in_range(self, value):
        assert Decimal(0) <= validate_percentage(value) <= Decimal(100)

    def test_quantizes_to_two_places(self):
        assert validate_percentage(Decimal("12.345")) == Decimal("12.35")

    @pytest.mark.parametrize("value", ["-1", "100.01", "abc", None, "NaN", "Infinity", True])
    def test_rejects_out_of_range_or_non_numeric(self, value):
        with pytest.raises(InvalidPercentageError):
            validate_percentage(value)

    def test_split_must_total_100(self):
        with pytest.raises(UnbalancedSplitError) as exc_info:
            validate_split("30", "60")
        assert exc_info.value.code == "UNBALANCED_SPLIT"

    def test_balanced_split_returns_admin_side(self):
        assert validate_split("30", "70") == Decimal("30.00")

    @given(percentages)
    def test_franchise_side_is_complement(self, admin):
        assert admin + franchise_percentage_for(admin) == Decimal(100)


class TestCascade:
    def test_franchise_override_wins(self):
        resolved = resolve_cascade(Decimal("35"), Decimal("25"))

        assert resolved.admin_percentage == Decimal("35")
        assert resolved.source is PercentageSource.FRANCHISE
        assert resolved.franchise_percentage == Decimal("65")

    def test_global_applies_without_franchise_override(self):
        resolved = resolve_cascade(None, Decimal("25"))
        assert resolved.source is PercentageSource.GLOBAL

    def test_default_when_nothing_stored(self):
        resolved = resolve_cascade(None, None)

        assert resolved.admin_percentage == DEFAULT_ADMIN_PERCENTAGE == Decimal("20")
        assert resolved.source is PercentageSource.DEFAULT

    def test_zero_override_is_not_treated_as_missing(self):
        resolved = resolve_cascade(Decimal("0"), Decimal("25"))
        assert resolved.admin_percentage == Decimal("0")
        assert resolved.source is PercentageSource.FRANCHISE


class TestMisc:
    def test_scope_keys(self, test_actor_id):
        assert override_scope_key(None) == "global"
        assert override_scope_key(test_actor_id) == str(test_actor_id)

    def test_payment_status_parsing(self):
        assert parse_payment_status("paid") is PaymentStatus.PAID
        with pytest.raises(InvalidArgumentError):
            parse_payment_status("refunded")
