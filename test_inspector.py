import json

import numpy as np
import pandas as pd
import pytest

from analyzers.inspector import TopicInspector, load_topic_labels
from analyzers.stm import FittedModel

@pytest.fixture
def inspector():
    model = FittedModel(
        k=3,
        beta=np.array([[0.5, 0.3, 0.2], [0.2, 0.2, 0.6], [0.4, 0.4, 0.2]]),
        gamma=np.array([[0.5, 0.5, 0.0], [0.1, 0.2, 0.7], [0.2, 0.4, 0.4]]),
        coefficients=np.zeros((1, 2)),
        sigma=np.eye(2),
        bound_trace=(-50.0,),
        converged=True,
        vocab=('media', 'privacy', 'self'),
        doc_ids=np.array([10, 20, 30]),
        covariate_names=(),
        seed=0
    )
    return TopicInspector(model)

def test_dominant_topic_ties_go_to_lowest_topic(inspector):
    dominant = inspector.dominant_topics()
    assert dominant['document'].tolist() == [10, 20, 30]
    assert dominant['topic'].tolist() == [1, 3, 2]
    assert dominant['proportion'].tolist() == [0.5, 0.7, 0.4]

def test_top_terms_break_ties_by_term(inspector):
    terms = inspector.top_terms_by_topic(2)
    assert terms == {1: ['media', 'privacy'], 2: ['self', 'media'], 3: ['media', 'privacy']}
    top = inspector.top_terms(1)
    assert top['rank'].tolist() == [1, 1, 1]
    assert top['topic'].tolist() == [1, 2, 3]

def test_long_tables(inspector):
    assert len(inspector.term_table()) == 9
    documents = inspector.document_table()
    assert len(documents) == 9
    assert documents.groupby('document')['proportion'].sum().round(9).tolist() == [1.0, 1.0, 1.0]

def test_citation_share(inspector):
    table = inspector.citation_share({10, 30, 99}, labels={1: 'Privacy', 2: 'Identity'})
    assert table['topic'].tolist() == [1, 2, 3]
    assert table['documents'].tolist() == [1, 1, 1]
    assert table['members'].tolist() == [1, 1, 0]
    assert table['percent'].tolist() == [100.0, 100.0, 0.0]
    assert table['label'].tolist()[:2] == ['Privacy', 'Identity']
    assert table['label'].isna().tolist()[2]

def test_prevalence_by_year(inspector):
    covariates = pd.DataFrame({'id': [10, 20, 30], 'year': [2020, 2020, 2021]})
    table = inspector.prevalence_by(covariates, 'year')
    first_year = table[table['year'] == 2020]['proportion'].tolist()
    assert first_year == pytest.approx([0.3, 0.35, 0.35])
    assert table[table['year'] == 2021]['proportion'].tolist() == pytest.approx([0.2, 0.4, 0.4])

def test_label_prevalence_merges_shared_labels(inspector):
    summary = inspector.label_prevalence({1: 'Privacy', 2: 'Identity', 3: 'Privacy'})
    assert summary['label'].tolist() == ['Privacy', 'Identity']
    assert summary['share'].tolist() == pytest.approx([1.9 / 3, 1.1 / 3])

def test_load_topic_labels_accepts_both_key_forms(tmp_path):
    path = tmp_path / 'labels.json'
    path.write_text(json.dumps({'1': 'Privacy', 'Topic 2': 'Identity'}), encoding='utf-8')
    assert load_topic_labels(path) == {1: 'Privacy', 2: 'Identity'}
