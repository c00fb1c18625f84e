import json
import logging
import pickle
from pathlib import Path
from typing import Any, Iterable, Union

import numpy as np
import pandas as pd
from scipy import sparse

from analyzers.vocabulary import DocumentTermMatrix
from config import ARTIFACT_FOLDER

class ArtifactStore:
    """
    Reads and writes pipeline artifacts under one folder.

    Frames are pickled with pandas, matrices use scipy's npz format with a
    JSON sidecar for labels, fitted models and sweep results are pickled.
    """

    def __init__(self, root: Union[str, Path] = ARTIFACT_FOLDER):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path(self, name: str) -> Path:
        return self.root / name

    def save_frame(self, frame: pd.DataFrame, name: str) -> Path:
        path = self.path(f"{name}.pkl")
        frame.to_pickle(path)
        logging.info(f"Saved {len(frame)} rows to {path}")
        return path

    def load_frame(self, name: str) -> pd.DataFrame:
        return pd.read_pickle(self.path(f"{name}.pkl"))

    def save_matrix(self, dtm: DocumentTermMatrix, name: str) -> Path:
        path = self.path(f"{name}.npz")
        sparse.save_npz(path, dtm.matrix)
        with open(self.path(f"{name}.labels.json"), 'w', encoding='utf-8') as f:
            json.dump({'doc_ids': [int(i) for i in dtm.doc_ids], 'vocab': list(dtm.vocab)}, f)
        logging.info(f"Saved {dtm.n_docs}x{dtm.n_terms} matrix to {path}")
        return path

    def load_matrix(self, name: str) -> DocumentTermMatrix:
        matrix = sparse.load_npz(self.path(f"{name}.npz")).tocsr()
        with open(self.path(f"{name}.labels.json"), 'r', encoding='utf-8') as f:
            labels = json.load(f)
        return DocumentTermMatrix(matrix, np.asarray(labels['doc_ids']), labels['vocab'])

    def save_object(self, obj: Any, name: str) -> Path:
        path = self.path(f"{name}.pickle")
        with open(path, 'wb') as f:
            pickle.dump(obj, f, protocol=pickle.HIGHEST_PROTOCOL)
        logging.info(f"Saved {type(obj).__name__} to {path}")
        return path

    def load_object(self, name: str) -> Any:
        with open(self.path(f"{name}.pickle"), 'rb') as f:
            return pickle.load(f)

    def exists(self, name: str) -> bool:
        return any(self.root.glob(f"{name}.*"))


def load_id_set(path: Union[str, Path]) -> set:
    """Read a JSON list of document ids (e.g. documents citing a seminal work)."""
    with open(path, 'r', encoding='utf-8') as f:
        return set(json.load(f))


def save_id_set(ids: Iterable, path: Union[str, Path]) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sorted(ids), f, indent=2)
