import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

COVARIATE_COLUMNS = ('year', 'main_concept')

def reconstruct_abstract(inverted_index: Optional[Dict[str, List[int]]]) -> Optional[str]:
    """
    Rebuild abstract text from an inverted index ({word: [positions]}).

    Returns None when no index is available.
    """
    if not inverted_index:
        return None
    positions = {}
    for word, offsets in inverted_index.items():
        for offset in offsets:
            positions[offset] = word
    return ' '.join(positions[i] for i in sorted(positions))

def _parse_concepts(raw: Any) -> List[Dict[str, Any]]:
    concepts = []
    for concept in raw or []:
        name = concept.get('display_name') or concept.get('name')
        if not name:
            continue
        concepts.append({
            'name': name,
            'level': concept.get('level'),
            'score': concept.get('score')
        })
    return concepts

def _parse_work(work: Dict[str, Any]) -> Dict[str, Any]:
    abstract = work.get('abstract')
    if abstract is None:
        abstract = reconstruct_abstract(work.get('abstract_inverted_index'))
    return {
        'source_id': work.get('id'),
        'title': work.get('title') or work.get('display_name'),
        'abstract': abstract,
        'type': work.get('type'),
        'year': work.get('publication_year', work.get('year')),
        'concepts': _parse_concepts(work.get('concepts'))
    }

def records_to_frame(works: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Turn raw work dictionaries into the document collection.

    Duplicated source ids keep their first occurrence. Each surviving record
    receives a sequential integer `id` starting at 1.
    """
    frame = pd.DataFrame([_parse_work(work) for work in works],
                         columns=['source_id', 'title', 'abstract', 'type', 'year', 'concepts'])
    before = len(frame)
    has_source = frame['source_id'].notna()
    frame = frame[~(has_source & frame['source_id'].duplicated())].reset_index(drop=True)
    if len(frame) < before:
        logging.info(f"Dropped {before - len(frame)} duplicated records")
    frame.insert(0, 'id', range(1, len(frame) + 1))
    frame['year'] = pd.to_numeric(frame['year'], errors='coerce').astype('Int64')
    return frame

def load_records(paths: Union[str, Path, Iterable[Union[str, Path]]]) -> pd.DataFrame:
    """
    Load records from one or more JSON files.

    Each file holds either a list of works or an object with a 'results'
    list (the shape returned by bibliographic API pages).
    """
    if isinstance(paths, (str, Path)):
        paths = [paths]

    works = []
    for path in paths:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        batch = payload.get('results', []) if isinstance(payload, dict) else payload
        logging.info(f"Loaded {len(batch)} records from {path}")
        works.extend(batch)
    return records_to_frame(works)

def report_missing_covariates(frame: pd.DataFrame, stage: str) -> Dict[str, int]:
    """
    Log and return the number of documents missing each covariate.

    Missing values are reported, never dropped or imputed here.
    """
    counts = {}
    for column in COVARIATE_COLUMNS:
        if column not in frame.columns:
            continue
        counts[column] = int(frame[column].isna().sum())

    missing = {column: count for column, count in counts.items() if count}
    if missing:
        logging.warning(f"[{stage}] {len(frame)} documents, missing covariates: {missing}")
    else:
        logging.info(f"[{stage}] {len(frame)} documents, no missing covariates")
    return counts
