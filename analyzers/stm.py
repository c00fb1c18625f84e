import logging
import warnings
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.linalg import cho_solve
from scipy.optimize import minimize
from sklearn.decomposition import LatentDirichletAllocation
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import Lasso, LinearRegression

from analyzers.vocabulary import DocumentTermMatrix
from config import (
    RANDOM_SEED,
    MAX_EM_ITERATIONS,
    EM_TOLERANCE,
    L1_PENALTY,
    SIGMA_PRIOR
)
from configs.topic_config import TOPIC_CONFIG

@dataclass(frozen=True)
class FittedModel:
    """
    A fitted structural topic model.

    Attributes:
        k: Number of topics.
        beta: K x V topic-term probabilities (rows sum to 1).
        gamma: D x K document-topic proportions (rows sum to 1).
        coefficients: (P + 1) x (K - 1) prevalence coefficients, intercept first.
        sigma: (K - 1) x (K - 1) covariance of the logistic-normal prior.
        bound_trace: Approximate evidence lower bound after each EM iteration.
        converged: Whether the relative bound change fell below the tolerance.
        vocab: Column labels of beta.
        doc_ids: Row labels of gamma.
        covariate_names: Names of the design matrix columns.
        seed: Seed the fit was run with.
    """
    k: int
    beta: np.ndarray
    gamma: np.ndarray
    coefficients: np.ndarray
    sigma: np.ndarray
    bound_trace: Tuple[float, ...]
    converged: bool
    vocab: Tuple[str, ...]
    doc_ids: np.ndarray
    covariate_names: Tuple[str, ...]
    seed: int

    @property
    def iterations(self) -> int:
        return len(self.bound_trace)

    @property
    def bound(self) -> float:
        return self.bound_trace[-1]


def build_design_matrix(covariates: pd.DataFrame,
                        numeric: Sequence[str] = tuple(TOPIC_CONFIG['prevalence_covariates']['numeric']),
                        categorical: Sequence[str] = tuple(TOPIC_CONFIG['prevalence_covariates']['categorical'])
                        ) -> pd.DataFrame:
    """
    Build the prevalence design matrix: a standardized linear term for each
    numeric covariate and treatment-coded dummies for each categorical one.

    Raises:
        ValueError: If a covariate column is absent or has missing values.
            Missing values are reported rather than imputed.
    """
    columns = list(numeric) + list(categorical)
    absent = [column for column in columns if column not in covariates.columns]
    if absent:
        raise ValueError(f"Covariate table lacks columns: {absent}")

    incomplete = int(covariates[columns].isna().any(axis=1).sum())
    if incomplete:
        raise ValueError(f"{incomplete} documents have missing covariate values in {columns}")

    parts = []
    for column in numeric:
        values = covariates[column].astype(float)
        scale = values.std(ddof=0)
        parts.append(((values - values.mean()) / (scale if scale > 0 else 1.0)).rename(column))
    for column in categorical:
        parts.append(pd.get_dummies(covariates[column].astype(str), prefix=column,
                                    drop_first=True, dtype=float))
    if not parts:
        return pd.DataFrame(index=range(len(covariates)))
    return pd.concat(parts, axis=1).reset_index(drop=True)


def _softmax_parts(eta: np.ndarray, beta_doc: np.ndarray):
    full = np.append(eta, 0.0)
    expeta = np.exp(full - full.max())
    weighted = expeta[:, None] * beta_doc
    return expeta, weighted, weighted.sum(axis=0)


def _eta_objective(eta, beta_doc, counts, mu_doc, siginv):
    """Negative log posterior of eta and its gradient."""
    expeta, weighted, word_probs = _softmax_parts(eta, beta_doc)
    total = counts.sum()
    diff = eta - mu_doc
    likelihood = counts @ np.log(word_probs) - total * np.log(expeta.sum())
    value = -(likelihood - 0.5 * diff @ siginv @ diff)

    phi = weighted * (counts / word_probs)
    theta = expeta / expeta.sum()
    grad = -(phi.sum(axis=1)[:-1] - total * theta[:-1] - siginv @ diff)
    return value, grad


def _cholesky_pd(matrix: np.ndarray) -> np.ndarray:
    """Lower Cholesky factor, nudging eigenvalues up when matrix is not positive definite."""
    try:
        return np.linalg.cholesky(matrix)
    except np.linalg.LinAlgError:
        symmetric = (matrix + matrix.T) / 2.0
        values, vectors = np.linalg.eigh(symmetric)
        floor = max(np.abs(values).max(), 1.0) * 1e-8
        repaired = (vectors * np.maximum(values, floor)) @ vectors.T
        return np.linalg.cholesky((repaired + repaired.T) / 2.0)


def _laplace_update(eta, beta_doc, counts, mu_doc, siginv, sigma_entropy):
    """
    Laplace approximation at the optimum eta.

    Returns the posterior covariance nu, the expected topic-word counts phi
    (K x words in the document) and the document's contribution to the bound.
    """
    expeta, weighted, word_probs = _softmax_parts(eta, beta_doc)
    theta = expeta / expeta.sum()
    total = counts.sum()

    responsibilities = weighted / word_probs
    scaled = responsibilities * np.sqrt(counts)
    hessian = scaled @ scaled.T - total * np.outer(theta, theta)
    phi = responsibilities * counts
    hessian[np.diag_indices_from(hessian)] -= phi.sum(axis=1) - total * theta
    hessian = hessian[:-1, :-1] + siginv

    chol = _cholesky_pd(hessian)
    nu = cho_solve((chol, True), np.eye(len(eta)))
    det_term = -np.sum(np.log(np.diag(chol)))
    diff = eta - mu_doc
    bound = counts @ np.log(theta @ beta_doc) + det_term - 0.5 * diff @ siginv @ diff - sigma_entropy
    return nu, phi, bound


class StructuralTopicModel:
    """
    Structural topic model with prevalence covariates, fitted by variational EM.

    Document topic proportions follow a logistic normal whose mean is a
    linear function of document covariates (year, main concept, ...). Topic
    covariate effects get a lasso (L1) penalty, giving the sparsity-inducing
    prior. Each E-step finds the MAP of every document's logit proportions
    with BFGS and a Laplace approximation of its posterior covariance.

    Args:
        n_topics: Number of topics K (at least 2).
        seed: Seed for the LDA initialization; equal seeds and inputs give
            identical fits.
        max_em_iter: EM iteration budget. Reaching it is not an error, the
            last iterate is returned with converged=False.
        em_tol: Relative bound change treated as convergence.
        l1_penalty: Lasso alpha on prevalence coefficients (0 means plain OLS).
        sigma_prior: Weight in [0, 1] shrinking sigma toward its diagonal.

    References:
        - Roberts, Stewart & Airoldi (2016). A model of text for experimentation
          in the social sciences. JASA 111(515).
    """

    def __init__(self, n_topics: int, seed: int = RANDOM_SEED, max_em_iter: int = MAX_EM_ITERATIONS,
                 em_tol: float = EM_TOLERANCE, l1_penalty: float = L1_PENALTY,
                 sigma_prior: float = SIGMA_PRIOR):
        if n_topics < 2:
            raise ValueError("A structural topic model needs at least 2 topics")
        self.n_topics = n_topics
        self.seed = seed
        self.max_em_iter = max_em_iter
        self.em_tol = em_tol
        self.l1_penalty = l1_penalty
        self.sigma_prior = sigma_prior

    def _initial_beta(self, counts) -> np.ndarray:
        lda = LatentDirichletAllocation(
            n_components=self.n_topics,
            learning_method='batch',
            max_iter=TOPIC_CONFIG['init']['lda_iterations'],
            random_state=self.seed
        )
        lda.fit(counts)
        components = lda.components_
        return components / components.sum(axis=1, keepdims=True)

    def _e_step(self, docs, beta, mu, sigma, lambdas):
        n_docs = len(docs)
        dim = self.n_topics - 1
        siginv = np.linalg.inv(sigma)
        sigma_entropy = 0.5 * np.linalg.slogdet(sigma)[1]

        new_lambdas = np.empty_like(lambdas)
        nu_sum = np.zeros((dim, dim))
        beta_ss = np.zeros_like(beta)
        bound = 0.0
        for d in range(n_docs):
            words, counts = docs[d]
            beta_doc = beta[:, words]
            result = minimize(
                _eta_objective, lambdas[d],
                args=(beta_doc, counts, mu[d], siginv),
                jac=True,
                method=TOPIC_CONFIG['estep']['method'],
                options={'maxiter': TOPIC_CONFIG['estep']['max_iterations']}
            )
            eta = result.x
            nu, phi, doc_bound = _laplace_update(eta, beta_doc, counts, mu[d], siginv, sigma_entropy)
            new_lambdas[d] = eta
            nu_sum += nu
            beta_ss[:, words] += phi
            bound += doc_bound
        return new_lambdas, nu_sum, beta_ss, bound

    def _update_mu(self, design: np.ndarray, lambdas: np.ndarray):
        n_docs, dim = lambdas.shape
        if design.shape[1] == 0:
            intercept = lambdas.mean(axis=0)
            return np.tile(intercept, (n_docs, 1)), intercept[None, :]

        coefficients = np.zeros((design.shape[1] + 1, dim))
        for j in range(dim):
            if self.l1_penalty > 0:
                regression = Lasso(alpha=self.l1_penalty, fit_intercept=True, max_iter=10000)
            else:
                regression = LinearRegression(fit_intercept=True)
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', ConvergenceWarning)
                regression.fit(design, lambdas[:, j])
            coefficients[0, j] = regression.intercept_
            coefficients[1:, j] = regression.coef_
        mu = coefficients[0] + design @ coefficients[1:]
        return mu, coefficients

    def _update_sigma(self, nu_sum, lambdas, mu):
        residuals = lambdas - mu
        sigma = (nu_sum + residuals.T @ residuals) / lambdas.shape[0]
        if self.sigma_prior > 0:
            sigma = self.sigma_prior * np.diag(np.diag(sigma)) + (1 - self.sigma_prior) * sigma
        return sigma

    @staticmethod
    def _update_beta(beta_ss):
        beta = beta_ss + TOPIC_CONFIG['beta_floor']
        return beta / beta.sum(axis=1, keepdims=True)

    def fit(self, dtm: DocumentTermMatrix, design: pd.DataFrame) -> FittedModel:
        """
        Fit the model.

        Args:
            dtm: Document-term matrix (rows aligned with design).
            design: Prevalence design matrix from build_design_matrix.

        Returns:
            FittedModel

        Raises:
            ValueError: If the inputs are inconsistent.
            FloatingPointError: If the bound stops being finite.
            numpy.linalg.LinAlgError: If the prior covariance degenerates.
        """
        counts = dtm.matrix.tocsr().astype(float)
        n_docs, n_terms = counts.shape
        if len(design) != n_docs:
            raise ValueError(f"Design matrix has {len(design)} rows for {n_docs} documents")
        if n_terms < self.n_topics:
            raise ValueError(f"Vocabulary of {n_terms} terms is too small for {self.n_topics} topics")

        k = self.n_topics
        x = design.to_numpy(dtype=float)
        docs = [
            (counts.indices[counts.indptr[d]:counts.indptr[d + 1]],
             counts.data[counts.indptr[d]:counts.indptr[d + 1]])
            for d in range(n_docs)
        ]

        beta = self._initial_beta(counts)
        lambdas = np.zeros((n_docs, k - 1))
        mu = np.zeros_like(lambdas)
        coefficients = np.zeros((x.shape[1] + 1, k - 1))
        sigma = np.eye(k - 1) * TOPIC_CONFIG['init']['sigma_scale']

        trace: List[float] = []
        converged = False
        for iteration in range(1, self.max_em_iter + 1):
            lambdas, nu_sum, beta_ss, bound = self._e_step(docs, beta, mu, sigma, lambdas)
            if not np.isfinite(bound):
                raise FloatingPointError(f"K={k}: bound became {bound} at EM iteration {iteration}")
            trace.append(float(bound))

            mu, coefficients = self._update_mu(x, lambdas)
            sigma = self._update_sigma(nu_sum, lambdas, mu)
            beta = self._update_beta(beta_ss)

            logging.debug(f"K={k} EM iteration {iteration}: bound {bound:.4f}")
            if len(trace) > 1 and abs((trace[-1] - trace[-2]) / trace[-2]) < self.em_tol:
                converged = True
                break

        if not converged:
            logging.info(f"K={k}: EM stopped after {len(trace)} iterations without converging")

        full = np.hstack([lambdas, np.zeros((n_docs, 1))])
        gamma = np.exp(full - full.max(axis=1, keepdims=True))
        gamma /= gamma.sum(axis=1, keepdims=True)

        return FittedModel(
            k=k,
            beta=beta,
            gamma=gamma,
            coefficients=coefficients,
            sigma=sigma,
            bound_trace=tuple(trace),
            converged=converged,
            vocab=tuple(dtm.vocab),
            doc_ids=np.asarray(dtm.doc_ids),
            covariate_names=tuple(design.columns),
            seed=self.seed
        )


def fit_topic_model(dtm: DocumentTermMatrix, covariates: pd.DataFrame, k: int,
                    l1_penalty: float = L1_PENALTY, seed: int = RANDOM_SEED,
                    max_em_iter: int = MAX_EM_ITERATIONS, em_tol: float = EM_TOLERANCE,
                    sigma_prior: float = SIGMA_PRIOR) -> FittedModel:
    """
    Fit one structural topic model with prevalence ~ year + main_concept.

    Args:
        dtm: Document-term matrix.
        covariates: One row per matrix row, in matrix order.
        k: Number of topics.
        l1_penalty: Strength of the sparsity prior on covariate effects.
        seed: Random seed.
    """
    design = build_design_matrix(covariates)
    model = StructuralTopicModel(k, seed=seed, max_em_iter=max_em_iter, em_tol=em_tol,
                                 l1_penalty=l1_penalty, sigma_prior=sigma_prior)
    return model.fit(dtm, design)
