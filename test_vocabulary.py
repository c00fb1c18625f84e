import pandas as pd
import pytest

from analyzers.vocabulary import VocabularyBuilder, select_terms

STOPWORDS = {'the', 'of'}
COMMON_WORDS = {'study', 'result'}

DOCS = pd.DataFrame({
    'id': [1, 2, 3, 4],
    'lemmas': [
        'media platform user',
        'user media study',
        'the study of autonomy result',
        'platform media users autonomous x'
    ]
})

def builder(min_doc_freq, strict):
    return VocabularyBuilder(stopwords=STOPWORDS, common_words=COMMON_WORDS,
                             reserved_stems=('autonom',), min_doc_freq=min_doc_freq, strict=strict)

def test_select_terms_strict_and_inclusive():
    freqs = {'a': 25, 'b': 19, 'c': 20}
    assert select_terms(freqs, 20, strict=True) == ['a']
    assert select_terms(freqs, 5, strict=False) == ['a', 'b', 'c']
    assert select_terms(freqs, 20, strict=False) == ['a', 'c']

def test_tokenize_removes_excluded_tokens():
    tokens = builder(1, False).tokenize('The Autonomy of users 2024 x media, study result')
    assert tokens == ['users', 'media']

def test_build_excludes_documents_without_tokens():
    dtm = builder(2, False).build(DOCS)
    assert list(dtm.doc_ids) == [1, 2, 4]
    assert dtm.vocab == ['media', 'platform', 'user']
    dense = dtm.matrix.toarray()
    assert (dense.sum(axis=1) > 0).all()
    assert (dense.sum(axis=0) > 0).all()
    assert dtm.document_frequencies() == {'media': 3, 'platform': 2, 'user': 2}

def test_strict_threshold_keeps_fewer_terms():
    dtm = builder(2, True).build(DOCS)
    assert dtm.vocab == ['media']
    assert list(dtm.doc_ids) == [1, 2, 4]

def test_build_raises_when_nothing_survives():
    with pytest.raises(ValueError):
        builder(10, False).build(DOCS)

def test_align_reorders_and_drops_extra_covariate_rows():
    dtm = builder(2, False).build(DOCS)
    covariates = pd.DataFrame({'id': [4, 3, 2, 1], 'year': [2021, 2020, 2019, 2018]})
    aligned = dtm.align(covariates)
    assert aligned['id'].tolist() == [1, 2, 4]
    assert aligned['year'].tolist() == [2018, 2019, 2021]

def test_align_rejects_missing_and_duplicated_rows():
    dtm = builder(2, False).build(DOCS)
    with pytest.raises(ValueError):
        dtm.align(pd.DataFrame({'id': [1, 2], 'year': [2018, 2019]}))
    with pytest.raises(ValueError):
        dtm.align(pd.DataFrame({'id': [1, 1, 2, 4], 'year': [2018, 2018, 2019, 2021]}))

def test_to_frame_lists_nonzero_cells():
    dtm = builder(2, False).build(DOCS)
    cells = dtm.to_frame()
    assert set(cells.columns) == {'document', 'term', 'count'}
    assert cells['count'].sum() == dtm.matrix.sum()
