"""Tests for Cochran's Q / I² across ancestry groups."""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from scipy import stats

from prs_portability.exceptions import InvalidInput
from prs_portability.prs.heterogeneity import (
    GroupEstimate,
    estimate_heterogeneity,
    estimate_heterogeneity_from_arrays,
    standard_error_from_p,
)

betas_st = st.builds(
    lambda magnitude, sign: magnitude * sign,
    st.floats(min_value=1e-3, max_value=5.0),
    st.sampled_from([-1.0, 1.0]),
)
p_values_st = st.floats(min_value=1e-300, max_value=1.0, exclude_max=True)


def group_list(min_size=2, max_size=8):
    return st.lists(st.tuples(betas_st, p_values_st), min_size=min_size, max_size=max_size).map(
        lambda pairs: [GroupEstimate(group_id=f"G{i}", beta=b, p_value=p) for i, (b, p) in enumerate(pairs)]
    )


class TestStandardError:
    """Test standard_error_from_p."""

    def test_matches_normal_quantile(self):
        se = standard_error_from_p(0.5, 0.05)
        assert se == pytest.approx(0.5 / stats.norm.ppf(0.975))

    def test_sign_of_beta_ignored(self):
        assert standard_error_from_p(-0.3, 0.01) == standard_error_from_p(0.3, 0.01)

    def test_p_of_one_is_undefined(self):
        assert standard_error_from_p(0.5, 1.0) is None

    @pytest.mark.parametrize("beta,p", [
        (None, 0.01),
        (0.5, None),
        (float("nan"), 0.01),
        (0.5, float("nan")),
    ])
    def test_missing_inputs_are_undefined(self, beta, p):
        assert standard_error_from_p(beta, p) is None

    @pytest.mark.parametrize("p", [0.0, -0.1, 1.5])
    def test_out_of_range_p_is_undefined(self, p):
        assert standard_error_from_p(0.5, p) is None

    def test_zero_beta_is_undefined(self):
        assert standard_error_from_p(0.0, 0.01) is None

    @given(beta=betas_st, p=p_values_st)
    @settings(max_examples=200)
    def test_positive_and_finite(self, beta, p):
        se = standard_error_from_p(beta, p)
        assert se is not None
        assert se > 0
        assert math.isfinite(se)


class TestEstimateHeterogeneity:
    """Test estimate_heterogeneity on concrete scenarios."""

    def test_identical_effects_have_no_heterogeneity(self):
        result = estimate_heterogeneity([
            GroupEstimate("A", 0.5, 0.01),
            GroupEstimate("B", 0.5, 0.02),
            GroupEstimate("C", 0.5, 0.03),
        ])
        assert result.q_statistic == 0.0
        assert result.i_squared == 0.0
        assert result.n_groups == 3

    def test_divergent_effects_give_high_i_squared(self):
        result = estimate_heterogeneity([
            GroupEstimate("EUR", 0.1, 1e-10),
            GroupEstimate("AFR", -0.1, 1e-10),
        ])
        assert result.i_squared > 0.95
        assert result.i_squared <= 1.0
        assert result.q_pvalue < 1e-10

    def test_matches_hand_calculation(self):
        betas = [0.2, 0.4, 0.1]
        ps = [0.01, 0.001, 0.2]
        ses = [abs(b) / abs(stats.norm.ppf(p / 2)) for b, p in zip(betas, ps)]
        w = [1 / s ** 2 for s in ses]
        pooled = sum(wi * bi for wi, bi in zip(w, betas)) / sum(w)
        q = sum(wi * (bi - pooled) ** 2 for wi, bi in zip(w, betas))
        expected_i2 = max(0.0, (q - 2) / q)

        result = estimate_heterogeneity_from_arrays(betas, ps, ["A", "B", "C"])
        assert result.q_statistic == pytest.approx(q)
        assert result.i_squared == pytest.approx(expected_i2)
        assert result.pooled_beta == pytest.approx(pooled)
        assert result.q_pvalue == pytest.approx(stats.chi2.sf(q, 2))

    def test_single_group_is_undefined(self):
        result = estimate_heterogeneity([GroupEstimate("EUR", 0.3, 1e-5)])
        assert result.q_statistic is None
        assert result.i_squared is None
        assert not result.is_defined

    def test_empty_input_is_undefined(self):
        result = estimate_heterogeneity([])
        assert result.q_statistic is None
        assert result.n_groups == 0

    def test_p_of_one_excludes_group(self):
        result = estimate_heterogeneity([
            GroupEstimate("EUR", 0.3, 1e-5),
            GroupEstimate("AFR", 0.1, 1.0),
        ])
        assert result.n_groups == 1
        assert result.i_squared is None

    def test_missing_values_exclude_group(self):
        result = estimate_heterogeneity([
            GroupEstimate("EUR", 0.3, 1e-5),
            GroupEstimate("EAS", 0.25, 1e-4),
            GroupEstimate("AFR", None, None),
            GroupEstimate("AMR", 0.2, None),
            GroupEstimate("SAS", float("nan"), 0.01),
        ])
        assert result.n_groups == 2
        assert result.i_squared is not None

    def test_q_below_degrees_of_freedom_clamps_to_zero(self):
        # Similar effects with wide standard errors: Q < k - 1
        result = estimate_heterogeneity([
            GroupEstimate("A", 0.10, 0.20),
            GroupEstimate("B", 0.12, 0.25),
            GroupEstimate("C", 0.11, 0.30),
        ])
        assert result.q_statistic < 2
        assert result.i_squared == 0.0

    def test_identical_effects_with_uneven_p_values_give_exact_zero(self):
        result = estimate_heterogeneity_from_arrays([0.3, 0.3, 0.3], [0.01, 0.02, 0.037])
        assert result.q_statistic == 0.0
        assert result.i_squared == 0.0
        assert result.pooled_beta == 0.3

    @pytest.mark.parametrize("scale", [1e-170, 1e200])
    def test_extreme_effect_sizes_stay_finite(self, scale):
        # Q is unchanged when every beta is multiplied by the same constant
        reference = estimate_heterogeneity_from_arrays([1.0, 2.0], [0.01, 0.02])
        result = estimate_heterogeneity([
            GroupEstimate("A", 1.0 * scale, 0.01),
            GroupEstimate("B", 2.0 * scale, 0.02),
        ])
        assert result.is_defined
        assert math.isfinite(result.q_statistic)
        assert 0.0 <= result.i_squared <= 1.0
        assert result.q_statistic == pytest.approx(reference.q_statistic, rel=1e-9)
        assert result.i_squared == pytest.approx(reference.i_squared, rel=1e-9, abs=1e-12)
        assert result.pooled_beta == pytest.approx(reference.pooled_beta * scale, rel=1e-9)
        assert math.isfinite(result.q_pvalue)

    def test_non_finite_q_is_undefined(self):
        # The weighted sum of betas overflows float64
        result = estimate_heterogeneity([
            GroupEstimate("A", 1.5e308, 1e-10),
            GroupEstimate("B", 1.7e308, 1e-10),
        ])
        assert result.n_groups == 2
        assert result.q_statistic is None
        assert result.i_squared is None


class TestHeterogeneityProperties:
    """Property-based checks of Q and I²."""

    @given(groups=group_list())
    @settings(max_examples=200)
    def test_i_squared_in_unit_interval(self, groups):
        result = estimate_heterogeneity(groups)
        assert result.q_statistic >= 0
        assert 0.0 <= result.i_squared <= 1.0

    @given(data=st.data(), groups=group_list())
    @settings(max_examples=100)
    def test_order_invariant(self, data, groups):
        shuffled = data.draw(st.permutations(groups))
        a = estimate_heterogeneity(groups)
        b = estimate_heterogeneity(shuffled)
        assert a.q_statistic == b.q_statistic
        assert a.i_squared == b.i_squared

    @given(beta=betas_st, p=p_values_st)
    def test_one_usable_group_always_undefined(self, beta, p):
        result = estimate_heterogeneity([
            GroupEstimate("A", beta, p),
            GroupEstimate("B", None, None),
        ])
        assert result.q_statistic is None
        assert result.i_squared is None

    @given(beta=betas_st, ps=st.lists(p_values_st, min_size=2, max_size=6))
    def test_identical_betas_give_zero(self, beta, ps):
        result = estimate_heterogeneity_from_arrays([beta] * len(ps), ps)
        assert result.q_statistic == 0.0
        assert result.i_squared == 0.0


class TestArrayEntryPoint:
    """Test estimate_heterogeneity_from_arrays input checks."""

    def test_length_mismatch_raises(self):
        with pytest.raises(InvalidInput):
            estimate_heterogeneity_from_arrays([0.1, 0.2], [0.01])

    def test_group_id_length_mismatch_raises(self):
        with pytest.raises(InvalidInput):
            estimate_heterogeneity_from_arrays([0.1, 0.2], [0.01, 0.02], ["A"])

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            estimate_heterogeneity_from_arrays([0.1], [])
