import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from configs.concepts import RelevancePatterns, ConceptVocabulary
from config import DOCUMENT_TYPE, SEED_CONCEPT

class RelevanceFilter:
    """
    Selects in-domain documents by matching a compiled, case-insensitive
    disjunction of literal phrases and structured patterns against the
    title and abstract of each document.

    Args:
        phrases: Literal phrases, escaped before compilation.
        structured_patterns: Raw regular expressions (e.g. word-gap patterns).
    """

    def __init__(self, phrases: Optional[Sequence[str]] = None,
                 structured_patterns: Optional[Sequence[str]] = None):
        self.phrases = list(RelevancePatterns.PHRASES if phrases is None else phrases)
        self.structured_patterns = list(
            RelevancePatterns.STRUCTURED if structured_patterns is None else structured_patterns
        )
        alternatives = [re.escape(phrase) for phrase in self.phrases] + self.structured_patterns
        if not alternatives:
            raise ValueError("RelevanceFilter needs at least one phrase or pattern")
        self.pattern = re.compile('|'.join(f'(?:{alt})' for alt in alternatives), re.IGNORECASE)

    def _field_matches(self, value: Any) -> bool:
        # None, NaN and other non-strings never match
        return isinstance(value, str) and self.pattern.search(value) is not None

    def matches(self, title: Any, abstract: Any) -> bool:
        """Return True if either the title or the abstract matches any pattern."""
        return self._field_matches(title) or self._field_matches(abstract)

    def filter(self, frame: pd.DataFrame, title_column: str = 'title',
               abstract_column: str = 'abstract') -> pd.DataFrame:
        """Return a new frame holding only the matching documents."""
        mask = [
            self.matches(title, abstract)
            for title, abstract in zip(frame[title_column], frame[abstract_column])
        ]
        result = frame[mask].reset_index(drop=True)
        logging.info(f"Relevance filter kept {len(result)} of {len(frame)} documents")
        return result


def filter_document_type(frame: pd.DataFrame, document_type: str = DOCUMENT_TYPE) -> pd.DataFrame:
    """Keep documents whose `type` equals document_type."""
    result = frame[frame['type'] == document_type].reset_index(drop=True)
    logging.info(f"Type filter '{document_type}' kept {len(result)} of {len(frame)} documents")
    return result


def resolve_main_concept(candidates: Iterable[Dict[str, Any]],
                         excluded: Iterable[str] = (SEED_CONCEPT,)) -> Optional[str]:
    """
    Resolve the single main concept of a document.

    A document with exactly one candidate keeps it, whatever its level and
    even if it is excluded. Otherwise excluded concepts are skipped and the
    candidate with the lowest specificity level wins, ties going to the one
    encountered first.

    Args:
        candidates: Dicts with at least 'name' and 'level' (and optionally 'score').
        excluded: Concept names ignored when other candidates exist.

    Returns:
        The main concept name, or None when nothing can be resolved.
    """
    candidates = [c for c in candidates or [] if c.get('name')]
    if len(candidates) == 1:
        return candidates[0]['name']

    excluded = set(excluded)
    best = None
    for candidate in candidates:
        if candidate['name'] in excluded or candidate.get('level') is None:
            continue
        # strict comparison keeps the first candidate on ties
        if best is None or candidate['level'] < best['level']:
            best = candidate
    return best['name'] if best else None


def filter_main_concept(frame: pd.DataFrame,
                        vocabulary: Optional[Iterable[str]] = None,
                        excluded: Iterable[str] = (SEED_CONCEPT,)) -> pd.DataFrame:
    """
    Assign `main_concept` from the `concepts` column and keep documents whose
    main concept belongs to the controlled vocabulary.
    """
    vocabulary = set(ConceptVocabulary.MAIN_CONCEPTS if vocabulary is None else vocabulary)
    excluded = tuple(excluded)
    resolved = frame.assign(
        main_concept=[resolve_main_concept(c, excluded) for c in frame['concepts']]
    )
    result = resolved[resolved['main_concept'].isin(vocabulary)].reset_index(drop=True)
    logging.info(f"Concept filter kept {len(result)} of {len(frame)} documents")
    return result


def concept_names(candidates: Iterable[Dict[str, Any]]) -> List[str]:
    """Names of all topical concepts attached to a document, in order."""
    return [c['name'] for c in candidates or [] if c.get('name')]
