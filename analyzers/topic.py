import logging
from functools import partial
from multiprocessing import Pool
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from analyzers.stm import FittedModel, build_design_matrix, fit_topic_model
from analyzers.vocabulary import DocumentTermMatrix
from config import (
    MIN_TOPICS,
    MAX_TOPICS,
    RANDOM_SEED,
    MAX_EM_ITERATIONS,
    EM_TOLERANCE,
    L1_PENALTY,
    SIGMA_PRIOR,
    SWEEP_WORKERS
)

class SweepResult:
    """
    Partial mapping from topic count K to a fitted model.

    Ks whose fit raised are kept in `failures` (K -> error message) and are
    absent from the models.
    """

    def __init__(self, models: Dict[int, FittedModel], failures: Dict[int, str]):
        self.models = dict(sorted(models.items()))
        self.failures = dict(sorted(failures.items()))

    def __getitem__(self, k: int) -> FittedModel:
        return self.models[k]

    def __contains__(self, k: int) -> bool:
        return k in self.models

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self):
        return iter(self.models.items())

    @property
    def ks(self) -> List[int]:
        return list(self.models)

    def summary(self) -> pd.DataFrame:
        """One row per attempted K with convergence information."""
        rows = [
            {'K': k, 'status': 'fitted', 'converged': m.converged,
             'em_iterations': m.iterations, 'bound': m.bound, 'error': None}
            for k, m in self.models.items()
        ]
        rows += [
            {'K': k, 'status': 'failed', 'converged': False,
             'em_iterations': 0, 'bound': float('nan'), 'error': error}
            for k, error in self.failures.items()
        ]
        return pd.DataFrame(rows).sort_values('K').reset_index(drop=True)


def _fit_one(k: int, dtm: DocumentTermMatrix, covariates: pd.DataFrame,
             settings: Dict) -> Tuple[int, Optional[FittedModel], Optional[str]]:
    """
    Fit a single K. Any exception is turned into an error message so one
    failing K never aborts the rest of the sweep.
    """
    try:
        model = fit_topic_model(dtm, covariates, k, **settings)
        return k, model, None
    except Exception as e:
        logging.error(f"Fit for K={k} failed: {type(e).__name__}: {str(e)}", exc_info=True)
        return k, None, f"{type(e).__name__}: {str(e)}"


class TopicModelSweep:
    """
    Fits one structural topic model per candidate topic count.

    Every K is fitted independently with the same seed; with more than one
    worker the fits run in a multiprocessing pool and complete in any order.

    Args:
        k_values: Candidate topic counts (defaults to MIN_TOPICS..MAX_TOPICS).
        seed: Seed shared by all fits.
        n_workers: Pool size. 1 runs every fit in the calling process.
        max_em_iter: EM iteration budget per fit.
        em_tol: Convergence tolerance.
        l1_penalty: Sparsity prior strength on covariate effects.
        sigma_prior: Shrinkage of the topic covariance toward its diagonal.
        verbose: If True, shows a progress bar.
    """

    def __init__(self, k_values: Optional[Iterable[int]] = None, seed: int = RANDOM_SEED,
                 n_workers: int = SWEEP_WORKERS, max_em_iter: int = MAX_EM_ITERATIONS,
                 em_tol: float = EM_TOLERANCE, l1_penalty: float = L1_PENALTY,
                 sigma_prior: float = SIGMA_PRIOR, verbose: bool = True):
        k_values = range(MIN_TOPICS, MAX_TOPICS + 1) if k_values is None else k_values
        self.k_values = sorted(set(int(k) for k in k_values))
        if not self.k_values:
            raise ValueError("At least one topic count is required")
        if self.k_values[0] < 2:
            raise ValueError("Topic counts must be at least 2")

        self.n_workers = max(1, int(n_workers))
        self.verbose = verbose
        self.settings = {
            'seed': seed,
            'max_em_iter': max_em_iter,
            'em_tol': em_tol,
            'l1_penalty': l1_penalty,
            'sigma_prior': sigma_prior
        }

    def run(self, dtm: DocumentTermMatrix, covariates: pd.DataFrame) -> SweepResult:
        """
        Fit all candidate Ks and block until every fit has finished.

        Args:
            dtm: Document-term matrix.
            covariates: One row per matrix row, in matrix order
                (see DocumentTermMatrix.align).

        Returns:
            SweepResult holding the fitted models and the failed Ks.

        Raises:
            ValueError: If the covariate table does not match the matrix or
                has missing values. These are the same for every K, so they
                abort the sweep instead of being recorded per K.
        """
        if len(covariates) != dtm.n_docs:
            raise ValueError(
                f"Covariate table has {len(covariates)} rows for {dtm.n_docs} matrix rows"
            )
        build_design_matrix(covariates)

        fit_func = partial(_fit_one, dtm=dtm, covariates=covariates, settings=self.settings)
        n_workers = min(self.n_workers, len(self.k_values))
        logging.info(
            f"Fitting {len(self.k_values)} models (K={self.k_values[0]}..{self.k_values[-1]}) "
            f"with {n_workers} worker(s)"
        )

        models, failures = {}, {}
        with tqdm(total=len(self.k_values), desc="Fitting topic models", disable=not self.verbose) as pbar:
            if n_workers == 1:
                outcomes = map(fit_func, self.k_values)
                self._collect(outcomes, models, failures, pbar)
            else:
                with Pool(n_workers) as pool:
                    outcomes = pool.imap_unordered(fit_func, self.k_values)
                    self._collect(outcomes, models, failures, pbar)

        if failures:
            logging.warning(f"Sweep finished with {len(failures)} failed K: {sorted(failures)}")
        logging.info(f"Sweep finished: {len(models)} models fitted")
        return SweepResult(models, failures)

    @staticmethod
    def _collect(outcomes, models, failures, pbar) -> None:
        for k, model, error in outcomes:
            if error is None:
                models[k] = model
            else:
                failures[k] = error
            pbar.update(1)
            pbar.set_postfix({'failed': len(failures), 'last_k': k})
