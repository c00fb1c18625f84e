from pathlib import Path
from typing import Iterable, Set, Union

# Frequent in any academic abstract, carry no topical signal
COMMON_ACADEMIC_WORDS = {
    'study', 'research', 'paper', 'article', 'analysis', 'result', 'finding',
    'method', 'approach', 'data', 'sample', 'participant', 'respondent',
    'effect', 'impact', 'role', 'factor', 'level', 'implication', 'evidence',
    'literature', 'author', 'purpose', 'design', 'methodology', 'value',
    'originality', 'limitation', 'contribution', 'framework', 'model',
    'theory', 'perspective', 'aspect', 'way', 'case', 'use', 'number',
    'part', 'type', 'form', 'term', 'context', 'relationship', 'process',
    'year', 'time', 'survey', 'interview', 'experiment', 'test', 'measure',
    'variable', 'hypothesis', 'review', 'insight', 'understanding', 'issue',
    'question', 'practice', 'field', 'area', 'focus', 'extent', 'present',
    'work', 'set', 'group', 'condition', 'outcome', 'association', 'change'
}


def load_common_words(path: Union[str, Path, None] = None,
                      extra: Iterable[str] = ()) -> Set[str]:
    """
    Return the common-words exclusion list.

    If a path is given, read one word per line from it (blank lines and
    lines starting with '#' are ignored) instead of the built-in list.
    """
    if path is None:
        words = set(COMMON_ACADEMIC_WORDS)
    else:
        with open(path, 'r', encoding='utf-8') as f:
            words = {
                line.strip().lower() for line in f
                if line.strip() and not line.startswith('#')
            }
    words.update(w.lower() for w in extra)
    return words
