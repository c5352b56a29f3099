import numpy as np
import pytest

from bidcurves import (
    BasisSmoother,
    SmoothingConvergenceError,
    SplineBasis,
    StepFunctionBuilder,
    VolumeNormalizer,
)


def _step_values(ladder, grid):
    step = StepFunctionBuilder().build(VolumeNormalizer().normalize(ladder))
    return step(grid)


class TestSplineBasis:
    def test_default_layout(self, basis):
        assert basis.order == 6
        assert basis.degree == 5
        assert basis.n_basis == 18
        assert len(basis.breaks) == 14
        assert len(basis.knots) == 24
        assert basis.breaks[0] == 0.0 and basis.breaks[-1] == 1.0

    def test_evaluation_matrix_shape_and_partition_of_unity(self, basis, config):
        phi = basis.evaluation_matrix(config.evaluation_grid)
        assert phi.shape == (201, 18)
        np.testing.assert_allclose(phi.sum(axis=1), 1.0, atol=1e-12)
        assert (phi >= -1e-14).all()

    def test_evaluation_matrix_is_cached_and_read_only(self, basis, config):
        phi = basis.evaluation_matrix(config.evaluation_grid)
        assert basis.evaluation_matrix(config.evaluation_grid.copy()) is phi
        with pytest.raises(ValueError):
            phi[0, 0] = 1.0

    def test_points_outside_domain_are_rejected(self, basis):
        with pytest.raises(ValueError):
            basis.evaluate([-0.1, 0.5])
        with pytest.raises(ValueError):
            basis.evaluate([np.nan])

    def test_penalty_is_symmetric_positive_semidefinite(self, basis):
        penalty = basis.penalty_matrix(4)
        assert penalty.shape == (18, 18)
        np.testing.assert_allclose(penalty, penalty.T)
        eigenvalues = np.linalg.eigvalsh(penalty)
        assert eigenvalues.min() > -1e-8 * eigenvalues.max()

    def test_penalty_vanishes_on_cubic_polynomials(self, basis):
        x = np.linspace(0, 1, 401)
        phi = basis.evaluate(x)
        cubic, *_ = np.linalg.lstsq(phi, 3 * x ** 3 - x + 2, rcond=None)
        rough, *_ = np.linalg.lstsq(phi, np.sin(12 * x), rcond=None)
        penalty = basis.penalty_matrix(4)
        assert cubic @ penalty @ cubic < 1e-8 * (rough @ penalty @ rough)

    def test_linear_combination_reproduces_constant(self, basis):
        values = basis.linear_combination(np.full(18, 42.0), [0.0, 0.37, 1.0])
        np.testing.assert_allclose(values, 42.0)

    def test_linear_combination_checks_coefficient_count(self, basis):
        with pytest.raises(ValueError):
            basis.linear_combination(np.ones(17), [0.5])

    def test_dict_round_trip(self, basis):
        restored = SplineBasis.from_dict(basis.to_dict())
        assert restored == basis
        assert hash(restored) == hash(basis)
        assert restored != SplineBasis(order=4, n_basis=18)

    @pytest.mark.parametrize('order, n_basis', [(0, 5), (6, 5)])
    def test_invalid_layouts(self, order, n_basis):
        with pytest.raises(ValueError):
            SplineBasis(order=order, n_basis=n_basis)


class TestBasisSmoother:
    def test_fit_is_deterministic(self, config, basis, smoother, ramp_ladder):
        y = _step_values(ramp_ladder, smoother.grid)
        first = smoother.fit(y)
        second = smoother.fit(y)
        fresh = BasisSmoother(basis, config.evaluation_grid, config.lambda_candidates).fit(y)
        np.testing.assert_array_equal(first.coefficients, second.coefficients)
        np.testing.assert_array_equal(first.coefficients, fresh.coefficients)
        assert first.selected_lambda == second.selected_lambda == fresh.selected_lambda

    def test_selected_lambda_minimizes_gcv(self, smoother, ramp_ladder):
        result = smoother.fit(_step_values(ramp_ladder, smoother.grid))
        assert result.selected_lambda in smoother.lambda_candidates
        assert result.min_gcv == pytest.approx(result.gcv_scores.min())
        assert len(result.gcv_scores) == 13
        assert 0 < result.degrees_of_freedom <= smoother.basis.n_basis

    def test_ramp_is_approximated_closely(self, smoother, ramp_ladder):
        y = _step_values(ramp_ladder, smoother.grid)
        result = smoother.fit(y)
        rmse = np.sqrt(np.mean((result.fitted_values - y) ** 2))
        assert rmse < 2.0
        assert result.coefficients.shape == (18,)

    def test_single_bid_gives_flat_curve(self, smoother):
        result = smoother.fit(np.full(smoother.n_points, 42.0))
        np.testing.assert_allclose(result.fitted_values, 42.0, atol=1e-6)

    def test_fit_tightens_with_more_basis_functions(self, two_bid_ladder):
        grid = np.linspace(0, 1, 201)
        y = _step_values(two_bid_ladder, grid)

        def rmse(n_basis):
            smoother = BasisSmoother(SplineBasis(order=6, n_basis=n_basis), grid, [0.0])
            return np.sqrt(np.mean((smoother.fit(y).fitted_values - y) ** 2))

        assert rmse(21) < rmse(9)

    def test_non_finite_gcv_candidates_are_skipped_in_order(self, config, basis, ramp_ladder):
        class FirstCandidateUndefined(BasisSmoother):
            def gcv_score(self, y, lam):
                return np.nan if lam == self.lambda_candidates[0] else 1.0

        smoother = FirstCandidateUndefined(basis, config.evaluation_grid, config.lambda_candidates)
        selected, scores = smoother.select_lambda(_step_values(ramp_ladder, smoother.grid))
        assert selected == smoother.lambda_candidates[1]
        assert np.isnan(scores.iloc[0])

    def test_no_finite_gcv_raises(self, smoother):
        y = np.full(smoother.n_points, 50.0)
        y[-10:] = np.inf
        with pytest.raises(SmoothingConvergenceError) as excinfo:
            smoother.fit(y, key='2018-01-01 h19')
        assert excinfo.value.key == '2018-01-01 h19'
        assert np.isnan(smoother.gcv_scores(y)).all()

    def test_sample_count_must_match_grid(self, smoother):
        with pytest.raises(ValueError):
            smoother.fit(np.ones(10))

    def test_lambda_candidates_must_be_non_empty_and_non_negative(self, basis, config):
        with pytest.raises(ValueError):
            BasisSmoother(basis, config.evaluation_grid, [])
        with pytest.raises(ValueError):
            BasisSmoother(basis, config.evaluation_grid, [-1.0, 0.1])
