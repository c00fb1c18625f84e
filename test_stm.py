import numpy as np
import pytest

from analyzers.stm import StructuralTopicModel, build_design_matrix, fit_topic_model

def test_design_matrix_standardizes_year_and_codes_concepts(small_covariates):
    design = build_design_matrix(small_covariates)
    assert list(design.columns) == ['year', 'main_concept_Psychology', 'main_concept_Sociology']
    assert design.shape == (30, 3)
    assert abs(design['year'].mean()) < 1e-9

def test_missing_covariate_is_rejected(small_dtm, small_covariates):
    covariates = small_covariates.copy()
    covariates.loc[4, 'year'] = np.nan
    with pytest.raises(ValueError):
        fit_topic_model(small_dtm, covariates, 3, max_em_iter=2)

def test_fit_is_deterministic(small_dtm, small_covariates):
    first = fit_topic_model(small_dtm, small_covariates, 3, seed=42, max_em_iter=4)
    second = fit_topic_model(small_dtm, small_covariates, 3, seed=42, max_em_iter=4)
    np.testing.assert_array_equal(first.beta, second.beta)
    np.testing.assert_array_equal(first.gamma, second.gamma)
    assert first.bound_trace == second.bound_trace

def test_fitted_distributions_are_normalized(small_dtm, small_covariates):
    model = fit_topic_model(small_dtm, small_covariates, 3, max_em_iter=4)
    assert model.beta.shape == (3, small_dtm.n_terms)
    assert model.gamma.shape == (small_dtm.n_docs, 3)
    np.testing.assert_allclose(model.beta.sum(axis=1), 1.0)
    np.testing.assert_allclose(model.gamma.sum(axis=1), 1.0)
    assert (model.beta >= 0).all() and (model.gamma >= 0).all()
    assert model.coefficients.shape == (4, 2)
    assert model.vocab == tuple(small_dtm.vocab)
    assert all(np.isfinite(model.bound_trace))

def test_iteration_budget_is_not_an_error(small_dtm, small_covariates):
    model = fit_topic_model(small_dtm, small_covariates, 3, max_em_iter=1)
    assert model.iterations == 1
    assert not model.converged

def test_at_least_two_topics_required():
    with pytest.raises(ValueError):
        StructuralTopicModel(1)
