"""
Severity Policy Resolver.

The policy is a pure function of severity; anything outside 1..5 is a
ValidationError.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from hsse_kernel.domain.severity import resolve_policy, validate_severity
from hsse_kernel.exceptions import InvalidSeverityError, ValidationError


class TestPolicyTable:

    @pytest.mark.parametrize("severity", [1, 2])
    def test_low_severity_allows_self_close(self, severity):
        policy = resolve_policy(severity)
        assert policy.self_close_allowed
        assert not policy.requires_expert_validation
        assert not policy.requires_manager_close

    @pytest.mark.parametrize("severity", [3, 4])
    def test_mid_severity_requires_validation_only(self, severity):
        policy = resolve_policy(severity)
        assert not policy.self_close_allowed
        assert policy.requires_expert_validation
        assert not policy.requires_manager_close

    def test_severity_five_requires_manager_close(self):
        policy = resolve_policy(5)
        assert not policy.self_close_allowed
        assert policy.requires_expert_validation
        assert policy.requires_manager_close


class TestPolicyProperties:

    @given(st.integers(min_value=1, max_value=5))
    def test_deterministic(self, severity):
        assert resolve_policy(severity) == resolve_policy(severity)

    @given(st.integers(min_value=1, max_value=5))
    def test_self_close_and_validation_are_exclusive(self, severity):
        policy = resolve_policy(severity)
        assert policy.self_close_allowed != policy.requires_expert_validation

    @given(st.integers(min_value=1, max_value=5))
    def test_manager_close_implies_validation(self, severity):
        policy = resolve_policy(severity)
        if policy.requires_manager_close:
            assert policy.requires_expert_validation

    @given(st.integers().filter(lambda n: n < 1 or n > 5))
    def test_out_of_range_is_validation_error(self, severity):
        with pytest.raises(ValidationError):
            resolve_policy(severity)


class TestRejectsNonIntegers:

    @pytest.mark.parametrize("value", [True, False, 2.0, "3", None])
    def test_rejected(self, value):
        with pytest.raises(InvalidSeverityError) as exc_info:
            validate_severity(value)
        assert exc_info.value.code == "INVALID_SEVERITY"
        assert exc_info.value.severity == value
