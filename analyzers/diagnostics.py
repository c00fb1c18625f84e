import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from gensim.corpora import Dictionary
from gensim.matutils import Sparse2Corpus
from gensim.models import CoherenceModel
from scipy import sparse
from scipy.special import gammaln
from scipy.stats import chi2, rankdata

from analyzers.stm import FittedModel
from analyzers.topic import SweepResult, TopicModelSweep
from analyzers.vocabulary import DocumentTermMatrix
from config import (
    RANDOM_SEED,
    HELDOUT_PROPORTION,
    HELDOUT_DOC_SHARE,
    DIAGNOSTIC_TERMS,
    FREX_WEIGHT,
    RESIDUAL_TOLERANCE
)
from configs.topic_config import TOPIC_CONFIG

@dataclass(frozen=True)
class HeldoutSplit:
    """
    Training matrix plus the masked entries removed from it.

    Attributes:
        train: Matrix with the masked entries set to zero.
        doc_index: Row positions of the documents that received masked entries.
        missing: For each of those rows, (term indices, counts) of the masked entries.
    """
    train: DocumentTermMatrix
    doc_index: np.ndarray
    missing: Tuple[Tuple[np.ndarray, np.ndarray], ...]


@dataclass(frozen=True)
class ResidualDispersion:
    dispersion: float
    pvalue: float
    df: float


@dataclass(frozen=True)
class DiagnosticRecord:
    """Diagnostics of one fitted model."""
    k: int
    semantic_coherence: np.ndarray
    exclusivity: np.ndarray
    heldout: float
    residual: ResidualDispersion
    bound: float
    lbound: float
    em_iterations: int

    def as_row(self) -> Dict[str, float]:
        return {
            'K': self.k,
            'exclusivity': float(np.mean(self.exclusivity)),
            'semantic_coherence': float(np.mean(self.semantic_coherence)),
            'heldout': self.heldout,
            'residual': self.residual.dispersion,
            'bound': self.bound,
            'lbound': self.lbound,
            'em_iterations': self.em_iterations
        }


def make_heldout(dtm: DocumentTermMatrix, proportion: float = HELDOUT_PROPORTION,
                 n_docs: Optional[int] = None, seed: int = RANDOM_SEED) -> HeldoutSplit:
    """
    Mask a seeded random subset of matrix entries.

    A share of the documents (HELDOUT_DOC_SHARE by default, at least one) is
    drawn; in each, floor(proportion * number of word types) entries are
    removed from the training matrix and kept as the heldout set.

    Raises:
        ValueError: If masking empties a vocabulary column. Try another seed.
    """
    rng = np.random.default_rng(seed)
    if n_docs is None:
        n_docs = max(1, int(np.floor(HELDOUT_DOC_SHARE * dtm.n_docs)))
    n_docs = min(n_docs, dtm.n_docs)
    doc_index = np.sort(rng.choice(dtm.n_docs, size=n_docs, replace=False))

    train = dtm.matrix.tolil(copy=True)
    csr = dtm.matrix.tocsr()
    missing = []
    for row in doc_index:
        terms = csr.indices[csr.indptr[row]:csr.indptr[row + 1]]
        counts = csr.data[csr.indptr[row]:csr.indptr[row + 1]]
        n_masked = int(np.floor(proportion * len(terms)))
        picked = np.sort(rng.choice(len(terms), size=n_masked, replace=False))
        for position in picked:
            train[row, terms[position]] = 0
        missing.append((terms[picked], counts[picked]))

    train = sparse.csr_matrix(train)
    train.eliminate_zeros()
    column_totals = np.asarray(train.sum(axis=0)).ravel()
    if (column_totals == 0).any():
        emptied = [dtm.vocab[i] for i in np.flatnonzero(column_totals == 0)[:5]]
        raise ValueError(f"Heldout masking removed every occurrence of terms such as {emptied}; "
                         f"use a different seed")

    masked = sum(len(m[0]) for m in missing)
    logging.info(f"Heldout split: {masked} entries masked across {len(doc_index)} documents")
    return HeldoutSplit(DocumentTermMatrix(train, dtm.doc_ids, dtm.vocab), doc_index, tuple(missing))


def evaluate_heldout(model: FittedModel, split: HeldoutSplit) -> float:
    """
    Mean per-document log predictive probability of the masked tokens.
    Higher is better.
    """
    doc_scores = []
    for row, (terms, counts) in zip(split.doc_index, split.missing):
        if len(terms) == 0:
            continue
        probs = model.gamma[row] @ model.beta[:, terms]
        doc_scores.append(np.sum(counts * np.log(probs)) / np.sum(counts))
    return float(np.mean(doc_scores)) if doc_scores else float('nan')


def top_term_indices(model: FittedModel, n_terms: int) -> np.ndarray:
    """K x n_terms term indices ordered by descending probability."""
    return np.argsort(-model.beta, axis=1, kind='stable')[:, :n_terms]


def semantic_coherence(model: FittedModel, dtm: DocumentTermMatrix,
                       n_terms: int = DIAGNOSTIC_TERMS) -> np.ndarray:
    """
    Semantic coherence of each topic: the UMass measure (Mimno et al. 2011)
    over its top terms, i.e. the mean pairwise log conditional probability
    of co-document occurrence.
    """
    n_terms = min(n_terms, len(dtm.vocab))
    dictionary = Dictionary.from_corpus(
        Sparse2Corpus(dtm.matrix, documents_columns=False),
        id2word=dict(enumerate(dtm.vocab))
    )
    topics = [[dtm.vocab[i] for i in row] for row in top_term_indices(model, n_terms)]
    coherence_model = CoherenceModel(
        topics=topics,
        corpus=Sparse2Corpus(dtm.matrix, documents_columns=False),
        dictionary=dictionary,
        coherence=TOPIC_CONFIG['coherence_measure'],
        topn=n_terms
    )
    return np.asarray(coherence_model.get_coherence_per_topic(), dtype=float)


def exclusivity(model: FittedModel, n_terms: int = DIAGNOSTIC_TERMS,
                frex_weight: float = FREX_WEIGHT) -> np.ndarray:
    """
    FREX exclusivity of each topic.

    For every term, exclusivity is its share of probability mass across
    topics and frequency its probability within the topic; both are turned
    into within-topic ECDF ranks and combined by a weighted harmonic mean.
    The score of a topic is the sum over its top terms.
    """
    tbeta = model.beta.T  # V x K
    n_vocab = tbeta.shape[0]
    share = tbeta / tbeta.sum(axis=1, keepdims=True)
    excl_rank = rankdata(share, axis=0) / n_vocab
    freq_rank = rankdata(tbeta, axis=0) / n_vocab
    frex = 1.0 / (frex_weight / excl_rank + (1 - frex_weight) / freq_rank)

    top = top_term_indices(model, min(n_terms, n_vocab))
    return np.array([frex[top[k], k].sum() for k in range(model.k)])


def residual_dispersion(model: FittedModel, dtm: DocumentTermMatrix,
                        tol: float = RESIDUAL_TOLERANCE) -> ResidualDispersion:
    """
    Multinomial dispersion of the residuals (Taddy 2012).

    Values near 1 mean the counts are as dispersed as the model assumes;
    larger values indicate overdispersion, often a sign that K is too small.
    The dispersion is NaN when the degrees of freedom are not positive.
    """
    csr = dtm.matrix.tocsr()
    n_docs, n_vocab = csr.shape

    # One document at a time; only its non-zero counts enter the squared terms
    statistic = 0.0
    n_hat = 0
    for d in range(n_docs):
        terms = csr.indices[csr.indptr[d]:csr.indptr[d + 1]]
        counts = csr.data[csr.indptr[d]:csr.indptr[d + 1]].astype(float)
        length = counts.sum()
        expected = model.gamma[d] @ model.beta  # V
        statistic += np.sum(length * expected / (1 - expected))
        observed = expected[terms]
        statistic += np.sum((counts ** 2 - 2 * counts * observed * length)
                            / (length * observed * (1 - observed)))
        n_hat += int(np.sum(expected * length > tol))

    params = n_docs * (model.k - 1) + model.k * (n_vocab - 1)
    df = n_hat - n_vocab - params
    if df <= 0:
        logging.warning(f"K={model.k}: residual check has {df} degrees of freedom, dispersion undefined")
        return ResidualDispersion(float('nan'), float('nan'), float(df))
    return ResidualDispersion(float(statistic / df), float(chi2.sf(statistic, df)), float(df))


def corrected_bound(model: FittedModel) -> float:
    """Final bound plus log(K!), the topic label permutation correction."""
    return float(model.bound + gammaln(model.k + 1))


class DiagnosticsEngine:
    """
    Computes per-K diagnostics over a completed sweep.

    Args:
        n_terms: Top terms used by semantic coherence and exclusivity.
        frex_weight: Exclusivity weight within FREX.
        residual_tol: Expected-count tolerance of the residual check.
    """

    def __init__(self, n_terms: int = DIAGNOSTIC_TERMS, frex_weight: float = FREX_WEIGHT,
                 residual_tol: float = RESIDUAL_TOLERANCE):
        self.n_terms = n_terms
        self.frex_weight = frex_weight
        self.residual_tol = residual_tol

    def diagnose(self, model: FittedModel, split: HeldoutSplit) -> DiagnosticRecord:
        """Diagnostics of one model fitted on split.train."""
        return DiagnosticRecord(
            k=model.k,
            semantic_coherence=semantic_coherence(model, split.train, self.n_terms),
            exclusivity=exclusivity(model, self.n_terms, self.frex_weight),
            heldout=evaluate_heldout(model, split),
            residual=residual_dispersion(model, split.train, self.residual_tol),
            bound=model.bound,
            lbound=corrected_bound(model),
            em_iterations=model.iterations
        )

    def evaluate(self, sweep: SweepResult, split: HeldoutSplit) -> Dict[int, DiagnosticRecord]:
        """
        Diagnose every available K of the sweep. Failed Ks are skipped and
        logged; they never abort the evaluation.
        """
        if sweep.failures:
            logging.warning(f"No diagnostics for failed K: {sorted(sweep.failures)}")

        records = {}
        for k, model in sweep:
            logging.info(f"Computing diagnostics for K={k}")
            records[k] = self.diagnose(model, split)
        return records

    @staticmethod
    def summary_table(records: Dict[int, DiagnosticRecord]) -> pd.DataFrame:
        """Per-K summary: mean exclusivity and coherence, heldout, residual, bounds, iterations."""
        rows = [record.as_row() for _, record in sorted(records.items())]
        return pd.DataFrame(rows, columns=TOPIC_CONFIG['summary_columns'])

    @staticmethod
    def topic_table(records: Dict[int, DiagnosticRecord]) -> pd.DataFrame:
        """Per-topic coherence and exclusivity, for the coherence/exclusivity scatter."""
        frames = [
            pd.DataFrame({
                'K': k,
                'topic': np.arange(1, k + 1),
                'semantic_coherence': record.semantic_coherence,
                'exclusivity': record.exclusivity
            })
            for k, record in sorted(records.items())
        ]
        if not frames:
            return pd.DataFrame(columns=['K', 'topic', 'semantic_coherence', 'exclusivity'])
        return pd.concat(frames, ignore_index=True)


def search_k(dtm: DocumentTermMatrix, covariates: pd.DataFrame, k_values: Iterable[int],
             sweep: Optional[TopicModelSweep] = None, engine: Optional[DiagnosticsEngine] = None,
             seed: int = RANDOM_SEED, proportion: float = HELDOUT_PROPORTION
             ) -> Tuple[SweepResult, Dict[int, DiagnosticRecord], HeldoutSplit]:
    """
    Split once, sweep K on the training matrix and diagnose every fitted model.

    The final K is chosen by a person from the resulting table and plots.
    """
    split = make_heldout(dtm, proportion=proportion, seed=seed)
    sweep = sweep or TopicModelSweep(k_values, seed=seed)
    engine = engine or DiagnosticsEngine()

    result = sweep.run(split.train, covariates)
    records = engine.evaluate(result, split)
    return result, records, split
