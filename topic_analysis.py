import argparse
import os
import sys
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from analyzers.relevance import (
    RelevanceFilter,
    filter_document_type,
    filter_main_concept,
    concept_names
)
from analyzers.lemmatizer import load_lemmatizer, lemmatize_documents
from analyzers.vocabulary import VocabularyBuilder, DocumentTermMatrix
from analyzers.stm import fit_topic_model
from analyzers.topic import TopicModelSweep
from analyzers.diagnostics import DiagnosticsEngine, search_k
from analyzers.inspector import TopicInspector, load_topic_labels
from configs.vocabulary import load_common_words
from utils.text_processing import normalize_text
from utils.records import load_records, report_missing_covariates
from utils.storage import ArtifactStore, load_id_set
from utils.visualization import VisualizationGenerator
from utils.report_generator import generate_pdf_report
from config import (
    RAW_DATA_FOLDER,
    ARTIFACT_FOLDER,
    REPORT_FOLDER,
    CORPUS_SETTINGS,
    DEFAULT_CORPUS,
    MIN_TOPICS,
    MAX_TOPICS,
    RANDOM_SEED,
    SELECTED_K,
    SWEEP_WORKERS,
    TOP_TERMS,
    validate_config
)

@contextmanager
def managed_lemmatizer(model_name: Optional[str] = None):
    """
    Context manager for the spaCy lemmatizer, releasing the pipeline afterwards.
    A missing model raises LemmatizerUnavailableError and ends the stage.
    """
    lemmatizer = load_lemmatizer(model_name)
    try:
        yield lemmatizer
    finally:
        lemmatizer.cleanup()

def clean_documents(records: pd.DataFrame) -> pd.DataFrame:
    """Normalize abstracts into a new `text` column and attach concept names."""
    return records.assign(
        text=records['abstract'].map(normalize_text),
        concept_names=records['concepts'].map(concept_names)
    )

def select_documents(records: pd.DataFrame, relevance: RelevanceFilter) -> pd.DataFrame:
    """
    Relevance, type and concept filtering, reporting missing covariates at
    every stage boundary.
    """
    report_missing_covariates(records, 'loaded')
    documents = relevance.filter(records)
    report_missing_covariates(documents, 'relevant')
    documents = filter_document_type(documents)
    report_missing_covariates(documents, 'typed')
    documents = filter_main_concept(documents)
    report_missing_covariates(documents, 'concept')
    return clean_documents(documents)

def build_matrix(documents: pd.DataFrame, corpus: str,
                 common_words_path: Optional[str] = None) -> Tuple[DocumentTermMatrix, pd.DataFrame]:
    """
    Build the document-term matrix and the covariate table aligned with it.
    """
    settings = CORPUS_SETTINGS[corpus]
    builder = VocabularyBuilder(
        common_words=load_common_words(common_words_path),
        min_doc_freq=settings['min_doc_freq'],
        strict=settings['strict']
    )
    dtm = builder.build(documents, text_column='lemmas')
    covariates = dtm.align(documents[['id', 'year', 'main_concept']])
    report_missing_covariates(covariates, 'matrix')
    return dtm, covariates

def prepare_corpus(args, store: ArtifactStore) -> Dict[str, int]:
    """
    Load records, filter, lemmatize and build the matrix. Saves every
    intermediate artifact and returns document counts per stage.
    """
    paths = args.records or sorted(Path(RAW_DATA_FOLDER).glob('*.json'))
    if not paths:
        raise FileNotFoundError(f"No record files given and none found in '{RAW_DATA_FOLDER}'")

    records = load_records(paths)
    store.save_frame(records, 'records')

    documents = select_documents(records, RelevanceFilter())
    if documents.empty:
        raise ValueError("No document survived the relevance filters")

    with managed_lemmatizer(args.language_model) as lemmatizer:
        documents = lemmatize_documents(documents, lemmatizer)
    store.save_frame(documents, 'documents')

    dtm, covariates = build_matrix(documents, args.corpus, args.common_words)
    store.save_matrix(dtm, f'dtm_{args.corpus}')
    store.save_frame(covariates, f'covariates_{args.corpus}')

    return {
        'records': len(records),
        'selected_documents': len(documents),
        'matrix_documents': dtm.n_docs,
        'vocabulary_terms': dtm.n_terms
    }

def run_search(args, store: ArtifactStore, viz: VisualizationGenerator) -> Dict[str, str]:
    """
    Sweep K, compute diagnostics and draw the plots used to pick K.
    """
    dtm = store.load_matrix(f'dtm_{args.corpus}')
    covariates = store.load_frame(f'covariates_{args.corpus}')

    sweep = TopicModelSweep(range(args.k_min, args.k_max + 1), seed=args.seed, n_workers=args.workers)
    engine = DiagnosticsEngine()
    result, records, _ = search_k(dtm, covariates, sweep.k_values, sweep=sweep, engine=engine, seed=args.seed)
    store.save_object(result, f'sweep_{args.corpus}')

    summary = engine.summary_table(records)
    topic_table = engine.topic_table(records)
    store.save_frame(summary, f'diagnostics_{args.corpus}')
    store.save_frame(result.summary(), f'sweep_status_{args.corpus}')
    summary.to_csv(Path(REPORT_FOLDER) / f'diagnostics_{args.corpus}.csv', index=False)

    plots = {}
    if not summary.empty:
        plots['diagnostics'] = viz.generate_diagnostics_plot(summary)
        plots['scatter'] = viz.generate_coherence_exclusivity_plot(topic_table)
    logging.info(f"Diagnostics computed for {len(summary)} K values; review them and pass --select-k")
    return plots

def inspect_model(args, store: ArtifactStore, viz: VisualizationGenerator) -> Dict[str, Any]:
    """
    Fit the selected K on the full matrix and summarize it.
    """
    dtm = store.load_matrix(f'dtm_{args.corpus}')
    covariates = store.load_frame(f'covariates_{args.corpus}')

    logging.info(f"Fitting selected model with K={args.select_k}")
    model = fit_topic_model(dtm, covariates, args.select_k, seed=args.seed)
    store.save_object(model, f'model_{args.corpus}_k{args.select_k}')

    inspector = TopicInspector(model)
    labels = load_topic_labels(args.labels) if args.labels else {}
    top_terms = inspector.top_terms(TOP_TERMS)
    dominant = inspector.dominant_topics()
    if labels:
        dominant = inspector.apply_labels(dominant, labels)
    store.save_frame(inspector.term_table(), 'beta')
    store.save_frame(inspector.document_table(), 'gamma')
    store.save_frame(top_terms, 'top_terms')
    store.save_frame(dominant, 'dominant_topics')

    prevalence = inspector.prevalence_by(covariates, 'year')
    plots = {
        'top_terms': viz.generate_top_terms_plot(top_terms, labels),
        'prevalence': viz.generate_prevalence_plot(prevalence, 'year', labels)
    }

    citation_table = None
    if args.citations:
        citation_table = inspector.citation_share(load_id_set(args.citations), labels or None)
        store.save_frame(citation_table, 'citation_share')
        plots['citations'] = viz.generate_citation_share_plot(
            citation_table, 'Documents Citing the Seminal Work by Topic'
        )

    return {
        'plots': plots,
        'top_terms': inspector.top_terms_by_topic(10),
        'labels': labels,
        'citation_table': citation_table
    }

def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command line arguments for the topic analysis pipeline.

    Returns:
        An argparse.Namespace with the parsed arguments.
    """
    parser = argparse.ArgumentParser(description='Structural Topic Model Analysis of Abstracts')
    parser.add_argument('-s', '--stage',
                        choices=['prepare', 'search', 'inspect', 'all'],
                        default='all',
                        help='Pipeline stage to run')
    parser.add_argument('-r', '--records', nargs='*',
                        help=f"Record JSON files (defaults to every file in '{RAW_DATA_FOLDER}')")
    parser.add_argument('-c', '--corpus',
                        choices=list(CORPUS_SETTINGS.keys()),
                        default=DEFAULT_CORPUS,
                        help='Corpus settings (vocabulary threshold) to use')
    parser.add_argument('--common-words', type=str,
                        help='File with one common academic word per line')
    parser.add_argument('--language-model', type=str,
                        help='spaCy model used for lemmatization')
    parser.add_argument('--k-min', type=int, default=MIN_TOPICS, help='Smallest K in the sweep')
    parser.add_argument('--k-max', type=int, default=MAX_TOPICS, help='Largest K in the sweep')
    parser.add_argument('-k', '--select-k', type=int, default=SELECTED_K,
                        help='K chosen after reviewing the diagnostics')
    parser.add_argument('--labels', type=str,
                        help='JSON mapping of topic number to manual label')
    parser.add_argument('--citations', type=str,
                        help='JSON list of document ids citing the seminal work')
    parser.add_argument('-w', '--workers', type=int, default=SWEEP_WORKERS,
                        help='Worker processes for the K sweep')
    parser.add_argument('--seed', type=int, default=RANDOM_SEED, help='Random seed')
    args = parser.parse_args(argv)
    if args.k_min > args.k_max:
        parser.error('--k-min must not exceed --k-max')
    return args

def main():
    """
    Main entry point for the command-line usage.
    Performs:
      1. Logging setup and configuration validation
      2. Corpus preparation (load, filter, lemmatize, vocabulary)
      3. K search with diagnostics
      4. Inspection of the selected model
      5. PDF report generation
    """
    args = parse_arguments()

    # Configure logging; the log file lives in the report folder
    os.makedirs(REPORT_FOLDER, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(REPORT_FOLDER, 'analysis.log'))
        ]
    )

    stages = ['prepare', 'search', 'inspect'] if args.stage == 'all' else [args.stage]

    try:
        validate_config()
        store = ArtifactStore(ARTIFACT_FOLDER)
        corpus_stats = {}
        plots = {}
        inspection = {}
        with VisualizationGenerator(Path(REPORT_FOLDER) / 'figures') as viz:
            if 'prepare' in stages:
                corpus_stats = prepare_corpus(args, store)
                with open(Path(REPORT_FOLDER) / 'corpus_stats.json', 'w', encoding='utf-8') as f:
                    json.dump(corpus_stats, f, indent=2)
            elif (Path(REPORT_FOLDER) / 'corpus_stats.json').exists():
                with open(Path(REPORT_FOLDER) / 'corpus_stats.json', 'r', encoding='utf-8') as f:
                    corpus_stats = json.load(f)

            if 'search' in stages:
                plots.update(run_search(args, store, viz))

            if 'inspect' in stages:
                inspection = inspect_model(args, store, viz)
                plots.update(inspection['plots'])

        diagnostics_name = f'diagnostics_{args.corpus}'
        diagnostics = store.load_frame(diagnostics_name) if store.exists(diagnostics_name) else pd.DataFrame()

        report_file_path = os.path.join(REPORT_FOLDER, f"topic_report_{args.corpus}.pdf")
        generate_pdf_report(
            report_file_path,
            corpus_stats,
            diagnostics,
            plots,
            selected_k=args.select_k if inspection else None,
            top_terms=inspection.get('top_terms'),
            labels=inspection.get('labels'),
            citation_table=inspection.get('citation_table')
        )
        logging.info(f"Processing complete. Report generated: {report_file_path}")

    except Exception as e:
        logging.error(f"Error in main execution: {str(e)}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    main()
