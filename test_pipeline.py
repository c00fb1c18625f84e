import sys

import pandas as pd
import pytest

import config
import topic_analysis
from analyzers.relevance import RelevanceFilter
from topic_analysis import parse_arguments, select_documents
from utils.storage import ArtifactStore, load_id_set, save_id_set
from conftest import make_model

def test_default_arguments():
    args = parse_arguments([])
    assert args.stage == 'all'
    assert args.corpus == config.DEFAULT_CORPUS
    assert (args.k_min, args.k_max) == (config.MIN_TOPICS, config.MAX_TOPICS)
    assert args.select_k == config.SELECTED_K

def test_inverted_k_range_is_rejected():
    with pytest.raises(SystemExit):
        parse_arguments(['--k-min', '20', '--k-max', '10'])

def test_config_is_valid(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config.validate_config()
    settings = config.get_config()
    assert settings['raw_data_folder'] == config.RAW_DATA_FOLDER
    assert (tmp_path / config.ARTIFACT_FOLDER).is_dir()

def test_select_documents_chains_filters():
    records = pd.DataFrame({
        'id': [1, 2, 3, 4],
        'title': ['Autonomy on Twitter', 'Facebook and the self', 'Classroom autonomy', 'Instagram use'],
        'abstract': ['Users, 2020!', None, 'Teachers', 'Posts'],
        'type': ['article', 'article', 'article', 'book'],
        'year': [2019, None, 2020, 2021],
        'concepts': [
            [{'name': 'Autonomy', 'level': 0}, {'name': 'Psychology', 'level': 1}],
            [{'name': 'Sociology', 'level': 1}],
            [{'name': 'Education', 'level': 1}],
            [{'name': 'Psychology', 'level': 1}],
        ]
    })
    documents = select_documents(records, RelevanceFilter())
    assert documents['id'].tolist() == [1, 2]
    assert documents['main_concept'].tolist() == ['Psychology', 'Sociology']
    assert documents['text'].tolist() == ['Users', '']
    assert documents.loc[0, 'concept_names'] == ['Autonomy', 'Psychology']

def test_artifact_store_round_trip(tmp_path, small_dtm):
    store = ArtifactStore(tmp_path / 'artifacts')
    store.save_matrix(small_dtm, 'dtm')
    loaded = store.load_matrix('dtm')
    assert loaded.vocab == small_dtm.vocab
    assert list(loaded.doc_ids) == list(small_dtm.doc_ids)
    assert (loaded.matrix != small_dtm.matrix).nnz == 0

    store.save_object(make_model(3), 'model')
    assert store.load_object('model').k == 3
    assert store.exists('model')
    assert not store.exists('missing')

    save_id_set({3, 1}, tmp_path / 'ids.json')
    assert load_id_set(tmp_path / 'ids.json') == {1, 3}

def test_logging_is_configured_before_validation(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, 'argv', ['topic-analysis', '--stage', 'search'])
    calls = []

    def record_logging(**kwargs):
        calls.append('logging')
        for handler in kwargs['handlers']:
            handler.close()

    def failing_validation():
        calls.append('validate')
        raise ValueError("bad settings")

    monkeypatch.setattr(topic_analysis.logging, 'basicConfig', record_logging)
    monkeypatch.setattr(topic_analysis, 'validate_config', failing_validation)

    with pytest.raises(SystemExit) as exit_info:
        topic_analysis.main()
    assert exit_info.value.code == 1
    assert calls == ['logging', 'validate']
    assert (tmp_path / config.REPORT_FOLDER).is_dir()
