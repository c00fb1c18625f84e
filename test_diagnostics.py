import math

import numpy as np
import pytest
from scipy import sparse

from analyzers.diagnostics import (
    DiagnosticsEngine,
    make_heldout,
    evaluate_heldout,
    semantic_coherence,
    exclusivity,
    residual_dispersion,
    corrected_bound
)
from analyzers.vocabulary import DocumentTermMatrix
from configs.topic_config import TOPIC_CONFIG
from conftest import make_model

def test_bound_is_corrected_by_label_permutations():
    model = make_model(5, bound=-1000.0)
    assert corrected_bound(model) == pytest.approx(-1000.0 + math.log(120))

def test_heldout_masks_entries_without_losing_counts(small_dtm):
    split = make_heldout(small_dtm, proportion=0.5, seed=3)
    assert len(split.doc_index) == 3

    restored = split.train.matrix.tolil()
    for row, (terms, counts) in zip(split.doc_index, split.missing):
        assert len(terms) == small_dtm.matrix[row].nnz // 2
        for term, count in zip(terms, counts):
            assert restored[row, term] == 0
            restored[row, term] = count
    assert (restored.tocsr() != small_dtm.matrix).nnz == 0
    assert (np.asarray(split.train.matrix.sum(axis=0)).ravel() > 0).all()

def test_heldout_is_seeded(small_dtm):
    first = make_heldout(small_dtm, seed=11)
    second = make_heldout(small_dtm, seed=11)
    np.testing.assert_array_equal(first.doc_index, second.doc_index)

def test_heldout_refuses_to_empty_a_column():
    dtm = DocumentTermMatrix(sparse.csr_matrix(np.array([[1, 1]])), np.array([1]), ['media', 'user'])
    with pytest.raises(ValueError):
        make_heldout(dtm, proportion=0.5)

def test_heldout_likelihood_is_negative(small_dtm):
    split = make_heldout(small_dtm)
    assert evaluate_heldout(make_model(4), split) < 0

def test_per_topic_scores(small_dtm):
    model = make_model(4)
    excl = exclusivity(model, n_terms=5)
    coherence = semantic_coherence(model, small_dtm, n_terms=5)
    assert excl.shape == (4,)
    assert coherence.shape == (4,)
    assert ((excl > 0) & (excl <= 5)).all()
    assert np.isfinite(coherence).all()

def test_residual_dispersion_without_degrees_of_freedom():
    dtm = DocumentTermMatrix(sparse.csr_matrix(np.array([[2, 1, 0], [0, 1, 3]])),
                             np.array([1, 2]), ['a', 'b', 'c'])
    result = residual_dispersion(make_model(2, n_docs=2, vocab=('a', 'b', 'c')), dtm)
    assert math.isnan(result.dispersion)
    assert result.df <= 0

def test_summary_table_columns(small_dtm):
    split = make_heldout(small_dtm)
    engine = DiagnosticsEngine(n_terms=5)
    records = {k: engine.diagnose(make_model(k), split) for k in (3, 4)}

    summary = DiagnosticsEngine.summary_table(records)
    assert list(summary.columns) == TOPIC_CONFIG['summary_columns']
    assert summary['K'].tolist() == [3, 4]

    topics = DiagnosticsEngine.topic_table(records)
    assert len(topics) == 7
    assert topics[topics['K'] == 4]['topic'].tolist() == [1, 2, 3, 4]

def test_residual_dispersion_matches_dense_statistic(small_dtm):
    model = make_model(3)
    counts = small_dtm.matrix.toarray().astype(float)
    expected = model.gamma @ model.beta
    lengths = counts.sum(axis=1, keepdims=True)
    statistic = np.sum((counts ** 2 - 2 * counts * expected * lengths)
                       / (lengths * expected * (1 - expected)))
    statistic += np.sum(lengths * expected / (1 - expected))
    n_hat = np.sum(expected * lengths > 0.01)
    df = n_hat - small_dtm.n_terms - (small_dtm.n_docs * 2 + 3 * (small_dtm.n_terms - 1))

    result = residual_dispersion(model, small_dtm, tol=0.01)
    assert result.df == df
    assert result.dispersion == pytest.approx(statistic / df)
