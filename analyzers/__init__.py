from .relevance import RelevanceFilter, resolve_main_concept
from .lemmatizer import SpacyLemmatizer, LemmatizerUnavailableError
from .vocabulary import VocabularyBuilder, DocumentTermMatrix
from .stm import StructuralTopicModel, FittedModel, fit_topic_model
from .topic import TopicModelSweep, SweepResult
from .diagnostics import DiagnosticsEngine, make_heldout, search_k
from .inspector import TopicInspector

__all__ = [
    'RelevanceFilter',
    'resolve_main_concept',
    'SpacyLemmatizer',
    'LemmatizerUnavailableError',
    'VocabularyBuilder',
    'DocumentTermMatrix',
    'StructuralTopicModel',
    'FittedModel',
    'fit_topic_model',
    'TopicModelSweep',
    'SweepResult',
    'DiagnosticsEngine',
    'make_heldout',
    'search_k',
    'TopicInspector'
]
