import logging
from typing import List, Optional, Sequence

import pandas as pd
import spacy
from tqdm import tqdm

from config import LANGUAGE_MODEL, LEMMA_BATCH_SIZE, LEMMA_PROCESSES
from utils.text_processing import normalize_text

class LemmatizerUnavailableError(RuntimeError):
    """Raised when the pretrained spaCy pipeline cannot be loaded."""


class SpacyLemmatizer:
    """
    Reduces documents to the lemmas of their common nouns using a pretrained
    spaCy pipeline.

    Args:
        model_name: spaCy package to load (defaults to config.LANGUAGE_MODEL).
        batch_size: Documents per nlp.pipe batch.
        n_process: Worker processes used by nlp.pipe.
        nlp: An already constructed pipeline; skips loading when given.

    Raises:
        LemmatizerUnavailableError: If the model cannot be loaded. The stage
            has no fallback, so callers should let this abort the run.
    """

    NOUN_TAG = 'NOUN'

    def __init__(self, model_name: str = LANGUAGE_MODEL, batch_size: int = LEMMA_BATCH_SIZE,
                 n_process: int = LEMMA_PROCESSES, nlp=None):
        self.model_name = model_name
        self.batch_size = batch_size
        self.n_process = n_process

        if nlp is None:
            try:
                # The parser and NER are not needed for tags and lemmas
                nlp = spacy.load(model_name, disable=['parser', 'ner'])
            except OSError as e:
                logging.error(f"spaCy model '{model_name}' is unavailable: {str(e)}")
                raise LemmatizerUnavailableError(
                    f"Cannot load spaCy model '{model_name}'. "
                    f"Install it with: python -m spacy download {model_name}"
                ) from e
        self.nlp = nlp

    def _noun_lemmas(self, doc) -> str:
        return ' '.join(token.lemma_ for token in doc if token.pos_ == self.NOUN_TAG)

    def lemmatize(self, texts: Sequence[str]) -> List[str]:
        """
        Lemmatize a batch of documents.

        Args:
            texts: Document texts.

        Returns:
            One string per input text: the space-joined lemmas of its common
            nouns, in token order.
        """
        texts = [text if isinstance(text, str) else '' for text in texts]
        logging.info(f"Lemmatizing {len(texts)} documents with {self.model_name}")
        docs = self.nlp.pipe(texts, batch_size=self.batch_size, n_process=self.n_process)
        return [
            self._noun_lemmas(doc)
            for doc in tqdm(docs, total=len(texts), desc="Lemmatizing")
        ]

    def cleanup(self):
        """Release the pipeline reference."""
        self.nlp = None


def lemmatize_documents(frame: pd.DataFrame, lemmatizer: SpacyLemmatizer,
                        text_column: str = 'text', output_column: str = 'lemmas') -> pd.DataFrame:
    """
    Return a copy of the frame with a column of re-cleaned, lowercased noun lemmas.
    """
    lemmas = lemmatizer.lemmatize(frame[text_column].tolist())
    return frame.assign(**{output_column: [normalize_text(lemma).lower() for lemma in lemmas]})


def load_lemmatizer(model_name: Optional[str] = None, **kwargs) -> SpacyLemmatizer:
    """Build the default lemmatizer, trying the GPU first like the rest of the spaCy stages."""
    try:
        spacy.prefer_gpu()
    except Exception as e:
        logging.info(f"spaCy GPU unavailable, using CPU: {str(e)}")
    return SpacyLemmatizer(model_name or LANGUAGE_MODEL, **kwargs)
