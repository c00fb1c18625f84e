import numpy as np
import pandas as pd
import pytest
from scipy import sparse

from analyzers.stm import FittedModel
from analyzers.vocabulary import DocumentTermMatrix

N_DOCS = 30
GROUPS = [
    ['privacy', 'data', 'platform', 'surveillance', 'consent'],
    ['identity', 'self', 'adolescent', 'peer', 'wellbeing'],
    ['politics', 'election', 'news', 'campaign', 'citizen'],
]
VOCAB = sorted(term for group in GROUPS for term in group)

@pytest.fixture
def small_dtm():
    """30 documents over 15 terms drawn from three separable word groups."""
    rng = np.random.default_rng(0)
    counts = np.zeros((N_DOCS, len(VOCAB)), dtype=np.int64)
    for d in range(N_DOCS):
        group = GROUPS[d % 3]
        for term in group:
            counts[d, VOCAB.index(term)] = rng.integers(1, 6)
        stray = GROUPS[(d + 1) % 3][d % 5]
        counts[d, VOCAB.index(stray)] += 1
    return DocumentTermMatrix(sparse.csr_matrix(counts), np.arange(1, N_DOCS + 1), list(VOCAB))

@pytest.fixture
def small_covariates():
    concepts = ['Psychology', 'Sociology', 'Political science']
    return pd.DataFrame({
        'id': np.arange(1, N_DOCS + 1),
        'year': [2010 + d % 8 for d in range(N_DOCS)],
        'main_concept': [concepts[(d // 3) % 3] for d in range(N_DOCS)]
    })

def make_model(k, n_docs=N_DOCS, vocab=tuple(VOCAB), seed=0, bound=-1000.0):
    """A FittedModel with random but valid parameters."""
    rng = np.random.default_rng(seed + k)
    beta = rng.dirichlet(np.ones(len(vocab)), size=k)
    gamma = rng.dirichlet(np.ones(k), size=n_docs)
    return FittedModel(
        k=k,
        beta=beta,
        gamma=gamma,
        coefficients=np.zeros((1, k - 1)),
        sigma=np.eye(k - 1),
        bound_trace=(bound * 2, bound),
        converged=True,
        vocab=tuple(vocab),
        doc_ids=np.arange(1, n_docs + 1),
        covariate_names=(),
        seed=seed
    )
