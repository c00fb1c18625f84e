import os
import logging
from typing import Dict, Any

# Folder Configuration
RAW_DATA_FOLDER = "Raw Data"
ARTIFACT_FOLDER = "Artifacts"
REPORT_FOLDER = "Report"

# Corpus Selection
DOCUMENT_TYPE = "article"  # Only journal articles survive the type filter
SEED_CONCEPT = "Autonomy"  # Seed concept, skipped when a document has other candidates
RESERVED_STEMS = ("autonom",)  # Tokens containing these stems would form a self-referential topic

# Vocabulary thresholds per corpus (document frequency)
CORPUS_SETTINGS = {
    'main': {'min_doc_freq': 20, 'strict': True},  # keep terms in > 20 documents
    'subset': {'min_doc_freq': 5, 'strict': False}  # keep terms in >= 5 documents
}
DEFAULT_CORPUS = 'main'

# Topic Model Sweep
MIN_TOPICS = 5  # Smallest K in the sweep
MAX_TOPICS = 100  # Largest K in the sweep
RANDOM_SEED = 8458159  # Shared by every fit and by the heldout split
MAX_EM_ITERATIONS = 75  # EM budget per fit; hitting it is not an error
EM_TOLERANCE = 1e-5  # Relative change in the bound treated as convergence
L1_PENALTY = 0.01  # Lasso strength on topic-covariate effects
SIGMA_PRIOR = 0.0  # Weight shrinking the topic covariance to its diagonal

# Diagnostics
HELDOUT_PROPORTION = 0.5  # Share of word types masked in each held document
HELDOUT_DOC_SHARE = 0.1  # Share of documents receiving masked entries
DIAGNOSTIC_TERMS = 10  # Top terms used by coherence and exclusivity
FREX_WEIGHT = 0.7  # Exclusivity weight within FREX
RESIDUAL_TOLERANCE = 0.01  # Minimum expected count counted by the residual check

# Manual model selection (decided after reviewing the diagnostics plots)
SELECTED_K = 14
TOP_TERMS = 20  # Terms reported per topic

# Language Processing
LANGUAGE_MODEL = 'en_core_web_sm'  # Default spaCy model to use
LEMMA_BATCH_SIZE = 500  # Documents per spaCy batch
LEMMA_PROCESSES = 1  # spaCy worker processes

# Resource Management
SWEEP_WORKERS = max(1, os.cpu_count() - 1) if os.cpu_count() else 1

# Report Configuration
MAX_TEXT_LENGTH = 1000  # Maximum length for text snippets in reports
PDF_FONT_SIZE = 12  # Default font size for PDF reports
PDF_TITLE_SIZE = 16  # Font size for PDF titles
PDF_MARGIN = 15  # PDF margin in points

def setup_folders() -> None:
    """Create necessary folders if they don't exist"""
    folders = [RAW_DATA_FOLDER, ARTIFACT_FOLDER, REPORT_FOLDER]
    for folder in folders:
        try:
            os.makedirs(folder, exist_ok=True)
            logging.info(f"Ensured folder exists: {folder}")
        except Exception as e:
            logging.error(f"Failed to create folder {folder}: {str(e)}")
            raise

def validate_corpus_settings() -> None:
    """Validate vocabulary thresholds"""
    if DEFAULT_CORPUS not in CORPUS_SETTINGS:
        raise ValueError(f"DEFAULT_CORPUS must be one of {list(CORPUS_SETTINGS)}")

    for name, settings in CORPUS_SETTINGS.items():
        if settings['min_doc_freq'] < 0:
            raise ValueError(f"min_doc_freq for corpus '{name}' must be non-negative")

def validate_topic_settings() -> None:
    """Validate topic sweep settings"""
    if MIN_TOPICS < 2:
        raise ValueError("MIN_TOPICS must be at least 2")

    if MIN_TOPICS > MAX_TOPICS:
        raise ValueError("MIN_TOPICS must not exceed MAX_TOPICS")

    if MAX_EM_ITERATIONS <= 0:
        raise ValueError("MAX_EM_ITERATIONS must be positive")

    if EM_TOLERANCE <= 0:
        raise ValueError("EM_TOLERANCE must be positive")

    if L1_PENALTY < 0:
        raise ValueError("L1_PENALTY must be non-negative")

    if not 0 <= SIGMA_PRIOR <= 1:
        raise ValueError("SIGMA_PRIOR must be between 0 and 1")

    if SELECTED_K < 2:
        raise ValueError("SELECTED_K must be at least 2")

def validate_diagnostics() -> None:
    """Validate heldout and metric settings"""
    threshold_checks = [
        (HELDOUT_PROPORTION, "HELDOUT_PROPORTION"),
        (HELDOUT_DOC_SHARE, "HELDOUT_DOC_SHARE"),
        (FREX_WEIGHT, "FREX_WEIGHT"),
        (RESIDUAL_TOLERANCE, "RESIDUAL_TOLERANCE")
    ]

    for threshold, name in threshold_checks:
        if not 0 < threshold < 1:
            raise ValueError(f"{name} must be between 0 and 1")

    if DIAGNOSTIC_TERMS < 2 or TOP_TERMS < 1:
        raise ValueError("DIAGNOSTIC_TERMS must be at least 2 and TOP_TERMS positive")

def validate_resource_settings() -> None:
    """Validate resource management settings"""
    if LEMMA_BATCH_SIZE <= 0:
        raise ValueError("LEMMA_BATCH_SIZE must be positive")

    if LEMMA_PROCESSES <= 0 or SWEEP_WORKERS <= 0:
        raise ValueError("Worker counts must be positive")

    if MAX_TEXT_LENGTH <= 0:
        raise ValueError("MAX_TEXT_LENGTH must be positive")

def validate_config() -> None:
    """
    Validate all configuration settings.
    Raises ValueError if any validation fails.
    """
    try:
        setup_folders()
        validate_corpus_settings()
        validate_topic_settings()
        validate_diagnostics()
        validate_resource_settings()
        logging.info("Configuration validated successfully")
    except Exception as e:
        logging.error(f"Configuration validation failed: {str(e)}")
        raise

def get_config() -> Dict[str, Any]:
    """
    Get configuration as a dictionary.
    Validates configuration before returning.
    """
    validate_config()
    return {
        # Folders
        'raw_data_folder': RAW_DATA_FOLDER,
        'artifact_folder': ARTIFACT_FOLDER,
        'report_folder': REPORT_FOLDER,

        # Corpus Selection
        'document_type': DOCUMENT_TYPE,
        'seed_concept': SEED_CONCEPT,
        'reserved_stems': RESERVED_STEMS,
        'corpus_settings': CORPUS_SETTINGS,
        'default_corpus': DEFAULT_CORPUS,

        # Topic Model Sweep
        'min_topics': MIN_TOPICS,
        'max_topics': MAX_TOPICS,
        'random_seed': RANDOM_SEED,
        'max_em_iterations': MAX_EM_ITERATIONS,
        'em_tolerance': EM_TOLERANCE,
        'l1_penalty': L1_PENALTY,
        'sigma_prior': SIGMA_PRIOR,

        # Diagnostics
        'heldout_proportion': HELDOUT_PROPORTION,
        'heldout_doc_share': HELDOUT_DOC_SHARE,
        'diagnostic_terms': DIAGNOSTIC_TERMS,
        'frex_weight': FREX_WEIGHT,
        'residual_tolerance': RESIDUAL_TOLERANCE,

        # Model selection
        'selected_k': SELECTED_K,
        'top_terms': TOP_TERMS,

        # Language Processing
        'language_model': LANGUAGE_MODEL,
        'lemma_batch_size': LEMMA_BATCH_SIZE,
        'lemma_processes': LEMMA_PROCESSES,

        # Resource Management
        'sweep_workers': SWEEP_WORKERS,

        # Report Configuration
        'max_text_length': MAX_TEXT_LENGTH,
        'pdf_font_size': PDF_FONT_SIZE,
        'pdf_title_size': PDF_TITLE_SIZE,
        'pdf_margin': PDF_MARGIN
    }

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    validate_config()
