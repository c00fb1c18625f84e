import json

import pandas as pd

from utils.records import (
    reconstruct_abstract,
    records_to_frame,
    load_records,
    report_missing_covariates
)

WORKS = [
    {
        'id': 'W1',
        'title': 'Autonomy on social media',
        'abstract_inverted_index': {'Users': [0], 'value': [1], 'autonomy': [2]},
        'type': 'article',
        'publication_year': 2019,
        'concepts': [{'display_name': 'Psychology', 'level': 1, 'score': 0.7}]
    },
    {
        'id': 'W2',
        'title': 'Platform governance',
        'abstract': 'Platforms govern speech',
        'type': 'book-chapter',
        'publication_year': None,
        'concepts': []
    },
    {
        'id': 'W1',
        'title': 'Duplicate of the first record',
        'type': 'article',
        'publication_year': 2019
    }
]

def test_reconstruct_abstract_orders_by_position():
    index = {'social': [0], 'media': [1, 3], 'use': [2]}
    assert reconstruct_abstract(index) == 'social media use media'
    assert reconstruct_abstract(None) is None
    assert reconstruct_abstract({}) is None

def test_records_to_frame_deduplicates_and_numbers():
    frame = records_to_frame(WORKS)
    assert frame['source_id'].tolist() == ['W1', 'W2']
    assert frame['id'].tolist() == [1, 2]
    assert frame.loc[0, 'abstract'] == 'Users value autonomy'
    assert frame.loc[0, 'concepts'] == [{'name': 'Psychology', 'level': 1, 'score': 0.7}]
    assert pd.isna(frame.loc[1, 'year'])

def test_load_records_accepts_result_pages(tmp_path):
    page = tmp_path / 'page.json'
    page.write_text(json.dumps({'results': WORKS[:1]}), encoding='utf-8')
    listing = tmp_path / 'list.json'
    listing.write_text(json.dumps(WORKS[1:2]), encoding='utf-8')

    frame = load_records([page, listing])
    assert frame['source_id'].tolist() == ['W1', 'W2']

def test_missing_covariates_are_counted_not_dropped():
    frame = pd.DataFrame({
        'id': [1, 2, 3],
        'year': pd.array([2019, None, 2021], dtype='Int64'),
        'main_concept': ['Psychology', 'Sociology', None]
    })
    counts = report_missing_covariates(frame, 'test')
    assert counts == {'year': 1, 'main_concept': 1}
    assert len(frame) == 3
