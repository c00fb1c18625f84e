import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set

import nltk
import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.feature_extraction.text import CountVectorizer

from config import RESERVED_STEMS
from configs.vocabulary import load_common_words

TOKEN_PATTERN = re.compile(r'\b[^\W\d_]{2,}\b')

def load_stopwords(language: str = 'english') -> Set[str]:
    """
    Load NLTK stopwords, downloading the corpus on first use.
    """
    try:
        nltk.data.find('corpora/stopwords')
    except LookupError:
        nltk.download('stopwords', quiet=True)
    from nltk.corpus import stopwords
    return set(stopwords.words(language))

def select_terms(frequencies: Mapping[str, int], threshold: int, strict: bool = False) -> List[str]:
    """
    Terms whose frequency passes the threshold, in sorted order.

    Args:
        frequencies: term -> document frequency.
        threshold: The cut-off value.
        strict: If True keep frequency > threshold, otherwise frequency >= threshold.
    """
    if strict:
        return sorted(term for term, freq in frequencies.items() if freq > threshold)
    return sorted(term for term, freq in frequencies.items() if freq >= threshold)


@dataclass(frozen=True)
class DocumentTermMatrix:
    """
    Sparse document-term counts with their labels.

    Rows follow `doc_ids`, columns follow `vocab`. Builders guarantee that no
    row and no column is entirely zero.
    """
    matrix: sparse.csr_matrix
    doc_ids: np.ndarray
    vocab: List[str]

    @property
    def n_docs(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_terms(self) -> int:
        return self.matrix.shape[1]

    def document_frequencies(self) -> Dict[str, int]:
        counts = np.asarray((self.matrix > 0).sum(axis=0)).ravel()
        return dict(zip(self.vocab, counts.tolist()))

    def align(self, frame: pd.DataFrame, id_column: str = 'id') -> pd.DataFrame:
        """
        Reorder a covariate table to match the matrix rows.

        Rows of frame with no matrix row are dropped; a matrix row with no
        covariate row raises, since the two must always correspond.
        """
        indexed = frame.set_index(id_column)
        if indexed.index.has_duplicates:
            raise ValueError(f"Duplicated '{id_column}' values in covariate table")
        missing = [doc_id for doc_id in self.doc_ids if doc_id not in indexed.index]
        if missing:
            raise ValueError(f"{len(missing)} matrix rows have no covariate row, e.g. {missing[:5]}")
        dropped = len(indexed) - len(self.doc_ids)
        if dropped:
            logging.info(f"Dropped {dropped} covariate rows without matrix rows")
        return indexed.loc[list(self.doc_ids)].reset_index()

    def to_frame(self) -> pd.DataFrame:
        """Long form (document, term, count) of the non-zero cells."""
        coo = self.matrix.tocoo()
        return pd.DataFrame({
            'document': self.doc_ids[coo.row],
            'term': np.asarray(self.vocab, dtype=object)[coo.col],
            'count': coo.data
        })


class VocabularyBuilder:
    """
    Tokenizes a cleaned corpus, removes excluded tokens, applies the document
    frequency threshold and builds the document-term matrix.

    Args:
        stopwords: Tokens always removed (defaults to NLTK English stopwords).
        common_words: Generic academic vocabulary removed from every document.
        reserved_stems: Substrings; any token containing one is removed.
        min_doc_freq: Document frequency threshold.
        strict: Keep terms with frequency > min_doc_freq instead of >=.
    """

    def __init__(self, stopwords: Optional[Iterable[str]] = None,
                 common_words: Optional[Iterable[str]] = None,
                 reserved_stems: Iterable[str] = RESERVED_STEMS,
                 min_doc_freq: int = 1, strict: bool = False):
        self.stopwords = set(load_stopwords() if stopwords is None else stopwords)
        self.common_words = set(load_common_words() if common_words is None else common_words)
        self.reserved_stems = tuple(stem.lower() for stem in reserved_stems)
        self.min_doc_freq = min_doc_freq
        self.strict = strict

    def tokenize(self, text: str) -> List[str]:
        """Lowercase word tokens with stopwords, common words and reserved stems removed."""
        if not isinstance(text, str):
            return []
        return [
            token for token in TOKEN_PATTERN.findall(text.lower())
            if token not in self.stopwords
            and token not in self.common_words
            and not any(stem in token for stem in self.reserved_stems)
        ]

    def build(self, frame: pd.DataFrame, text_column: str = 'lemmas',
              id_column: str = 'id') -> DocumentTermMatrix:
        """
        Build the document-term matrix for the frame.

        Documents left without any token are excluded from the matrix; use
        DocumentTermMatrix.align to drop them from covariate tables as well.

        Raises:
            ValueError: If no term survives the filtering.
        """
        vectorizer = CountVectorizer(analyzer=self.tokenize)
        try:
            counts = vectorizer.fit_transform(frame[text_column].tolist()).tocsr()
        except ValueError as e:
            raise ValueError(f"No tokens left after exclusions: {str(e)}") from e
        terms = vectorizer.get_feature_names_out()

        doc_freq = np.asarray((counts > 0).sum(axis=0)).ravel()
        kept = set(select_terms(dict(zip(terms, doc_freq.tolist())), self.min_doc_freq, self.strict))
        if not kept:
            raise ValueError(
                f"No term passes the document frequency threshold "
                f"({'>' if self.strict else '>='} {self.min_doc_freq})"
            )
        columns = np.array([term in kept for term in terms])
        counts = counts[:, columns]
        vocab = [str(term) for term in terms[columns]]

        non_empty = np.asarray(counts.sum(axis=1)).ravel() > 0
        empty_count = int((~non_empty).sum())
        if empty_count:
            logging.warning(f"{empty_count} documents lost every token and are excluded from the matrix")
        counts = counts[non_empty]
        doc_ids = frame[id_column].to_numpy()[non_empty]

        logging.info(
            f"Built document-term matrix: {counts.shape[0]} documents x {counts.shape[1]} terms "
            f"(dropped {len(terms) - len(vocab)} rare terms)"
        )
        return DocumentTermMatrix(sparse.csr_matrix(counts, dtype=np.int64), doc_ids, vocab)
