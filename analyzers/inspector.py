import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from analyzers.stm import FittedModel
from config import TOP_TERMS

def load_topic_labels(path: Union[str, Path]) -> Dict[int, str]:
    """
    Read a manual label mapping from JSON.

    Keys may be topic numbers ("3") or names in the "Topic 3" form.
    """
    with open(path, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    labels = {}
    for key, label in raw.items():
        number = str(key).replace('Topic', '').strip()
        labels[int(number)] = label
    return labels


class TopicInspector:
    """
    Summaries of one selected model. Topics are numbered 1..K in every table.

    Args:
        model: The selected fitted model.
    """

    def __init__(self, model: FittedModel):
        self.model = model
        self.topics = np.arange(1, model.k + 1)

    def term_table(self) -> pd.DataFrame:
        """Long form topic-term probabilities: topic, term, probability."""
        k, n_vocab = self.model.beta.shape
        return pd.DataFrame({
            'topic': np.repeat(self.topics, n_vocab),
            'term': np.tile(np.asarray(self.model.vocab, dtype=object), k),
            'probability': self.model.beta.ravel()
        })

    def document_table(self) -> pd.DataFrame:
        """Long form document-topic proportions: document, topic, proportion."""
        n_docs, k = self.model.gamma.shape
        return pd.DataFrame({
            'document': np.repeat(self.model.doc_ids, k),
            'topic': np.tile(self.topics, n_docs),
            'proportion': self.model.gamma.ravel()
        })

    def top_terms(self, n: int = TOP_TERMS) -> pd.DataFrame:
        """
        Top n terms of each topic by probability, ties broken by term.

        Returns:
            DataFrame with topic, rank (1-based), term, probability.
        """
        table = self.term_table().sort_values(
            ['topic', 'probability', 'term'], ascending=[True, False, True], kind='mergesort'
        )
        top = table.groupby('topic', sort=True).head(n).copy()
        top['rank'] = top.groupby('topic').cumcount() + 1
        return top[['topic', 'rank', 'term', 'probability']].reset_index(drop=True)

    def top_terms_by_topic(self, n: int = TOP_TERMS) -> Dict[int, list]:
        top = self.top_terms(n)
        return {int(topic): group['term'].tolist() for topic, group in top.groupby('topic')}

    def dominant_topics(self) -> pd.DataFrame:
        """Topic with the largest proportion per document, lowest topic number on ties."""
        gamma = self.model.gamma
        index = np.argmax(gamma, axis=1)  # first maximum
        return pd.DataFrame({
            'document': self.model.doc_ids,
            'topic': self.topics[index],
            'proportion': gamma[np.arange(len(index)), index]
        })

    @staticmethod
    def apply_labels(frame: pd.DataFrame, labels: Mapping[int, str],
                     topic_column: str = 'topic') -> pd.DataFrame:
        """
        Attach manual labels to a table with a topic column.
        Topics without a label get None and are logged.
        """
        labeled = frame.assign(label=frame[topic_column].map(lambda t: labels.get(int(t))))
        unlabeled = sorted(set(labeled.loc[labeled['label'].isna(), topic_column]))
        if unlabeled:
            logging.warning(f"No label for topics {unlabeled}")
        return labeled

    def citation_share(self, members: Iterable, labels: Optional[Mapping[int, str]] = None) -> pd.DataFrame:
        """
        Percent of each topic's documents (by dominant topic) found in an
        external membership set, e.g. documents citing a seminal work.
        """
        members = set(members)
        dominant = self.dominant_topics()
        dominant['member'] = dominant['document'].isin(members)
        table = (dominant.groupby('topic')
                 .agg(documents=('document', 'size'), members=('member', 'sum'))
                 .reindex(self.topics, fill_value=0)
                 .rename_axis('topic')
                 .reset_index())
        table['percent'] = (100.0 * table['members'] / table['documents'].replace(0, np.nan)).fillna(0.0)
        if labels is not None:
            table = self.apply_labels(table, labels)
        return table

    def prevalence_by(self, covariates: pd.DataFrame, column: str, id_column: str = 'id') -> pd.DataFrame:
        """
        Mean topic proportion for each value of a covariate (e.g. year).

        Returns:
            Long form DataFrame: <column>, topic, proportion.
        """
        values = covariates.set_index(id_column)[column]
        table = self.document_table()
        table[column] = table['document'].map(values)
        return (table.groupby([column, 'topic'], as_index=False)['proportion']
                .mean()
                .sort_values([column, 'topic'])
                .reset_index(drop=True))

    def label_prevalence(self, labels: Mapping[int, str]) -> pd.DataFrame:
        """Share of all topic mass per manual label, summing topics that share a label."""
        table = self.apply_labels(self.document_table(), labels)
        summary = table.groupby('label', as_index=False)['proportion'].sum()
        summary['share'] = summary['proportion'] / table['proportion'].sum()
        return summary.sort_values('share', ascending=False).reset_index(drop=True)
