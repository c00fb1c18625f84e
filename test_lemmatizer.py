from types import SimpleNamespace

import pandas as pd
import pytest

from analyzers.lemmatizer import (
    SpacyLemmatizer,
    LemmatizerUnavailableError,
    lemmatize_documents
)

# word -> (part of speech, lemma)
LEXICON = {
    'Users': ('NOUN', 'user'),
    'shared': ('VERB', 'share'),
    'posts': ('NOUN', 'post'),
    'on': ('ADP', 'on'),
    'Facebook': ('PROPN', 'Facebook'),
    'E-Mails': ('NOUN', 'E-mail'),
    'matter': ('VERB', 'matter'),
}

class FakeNLP:
    """Stands in for a loaded pipeline; tags tokens from LEXICON."""

    def __init__(self):
        self.calls = []

    def pipe(self, texts, batch_size=None, n_process=None):
        self.calls.append((batch_size, n_process))
        for text in texts:
            yield [
                SimpleNamespace(pos_=LEXICON[word][0], lemma_=LEXICON[word][1])
                for word in text.split()
            ]

def test_only_noun_lemmas_are_kept_in_order():
    lemmatizer = SpacyLemmatizer(nlp=FakeNLP(), batch_size=8, n_process=1)
    result = lemmatizer.lemmatize(['Users shared posts on Facebook', '', None])
    assert result == ['user post', '', '']
    assert lemmatizer.nlp.calls == [(8, 1)]

def test_lemmatize_documents_recleans_and_lowercases():
    frame = pd.DataFrame({'id': [1, 2], 'text': ['E-Mails matter', 'Users shared posts']})
    result = lemmatize_documents(frame, SpacyLemmatizer(nlp=FakeNLP()))
    assert result['lemmas'].tolist() == ['e mail', 'user post']
    assert 'lemmas' not in frame.columns

def test_missing_model_is_fatal():
    with pytest.raises(LemmatizerUnavailableError):
        SpacyLemmatizer(model_name='no_such_spacy_model_xx')
