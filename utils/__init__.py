from .text_processing import normalize_text, normalize_texts, clean_text, truncate_text

__all__ = [
    'normalize_text',
    'normalize_texts',
    'clean_text',
    'truncate_text'
]

# Note: report_generator and visualization are imported by clients directly to keep matplotlib out of light imports
