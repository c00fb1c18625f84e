from fpdf import FPDF
from typing import Dict, List, Mapping, Optional
import logging

import pandas as pd

from config import PDF_FONT_SIZE, PDF_TITLE_SIZE, PDF_MARGIN, MAX_TEXT_LENGTH
from utils.text_processing import truncate_text

def _section(pdf: FPDF, title: str) -> None:
    pdf.add_page()
    pdf.set_font("Arial", size=PDF_FONT_SIZE, style='B')
    pdf.cell(0, 10, title, ln=True)
    pdf.set_font("Arial", size=10)

def _ascii(text: str) -> str:
    # Core PDF fonts only cover latin-1
    return str(text).encode('latin-1', 'replace').decode('latin-1')

def generate_pdf_report(
    output_path: str,
    corpus_stats: Dict[str, int],
    diagnostics: pd.DataFrame,
    plot_paths: Dict[str, str],
    selected_k: Optional[int] = None,
    top_terms: Optional[Dict[int, List[str]]] = None,
    labels: Optional[Mapping[int, str]] = None,
    citation_table: Optional[pd.DataFrame] = None
) -> None:
    """
    Generate a PDF report of the corpus, the K diagnostics and the selected model.

    Args:
        output_path (str): Where to save the final PDF file.
        corpus_stats (dict): Counts per pipeline stage (e.g. 'records', 'relevant', 'matrix_rows').
        diagnostics (DataFrame): Per-K summary table from DiagnosticsEngine.summary_table.
        plot_paths (dict): Image paths keyed by plot name ('diagnostics', 'scatter', 'top_terms', ...).
        selected_k (int): The K chosen after reviewing the diagnostics.
        top_terms (dict): Topic number -> list of top terms for the selected model.
        labels (dict): Topic number -> manual label.
        citation_table (DataFrame): Output of TopicInspector.citation_share.
    """
    try:
        pdf = FPDF()
        pdf.set_margins(PDF_MARGIN, PDF_MARGIN)
        pdf.add_page()

        # Title
        pdf.set_font("Arial", size=PDF_TITLE_SIZE, style='B')
        pdf.cell(0, 10, "Structural Topic Model Analysis Report", ln=True, align='C')
        pdf.ln(10)

        # Corpus statistics
        pdf.set_font("Arial", size=PDF_FONT_SIZE, style='B')
        pdf.cell(0, 10, "Corpus", ln=True)
        pdf.set_font("Arial", size=10)
        for label, value in corpus_stats.items():
            pdf.cell(0, 8, f"{label.replace('_', ' ').title()}: {value}", ln=True)

        # Diagnostics table
        if not diagnostics.empty:
            pdf.ln(5)
            pdf.set_font("Arial", size=PDF_FONT_SIZE, style='B')
            pdf.cell(0, 10, "Diagnostics by Number of Topics", ln=True)
            pdf.set_font("Arial", size=8)
            columns = ['K', 'heldout', 'residual', 'semantic_coherence', 'exclusivity', 'lbound']
            col_width = (pdf.w - 2 * PDF_MARGIN) / len(columns)
            for column in columns:
                pdf.cell(col_width, 6, column, border=1)
            pdf.ln()
            for _, row in diagnostics.iterrows():
                for column in columns:
                    value = row[column]
                    text = f"{int(value)}" if column == 'K' else f"{value:.3f}"
                    pdf.cell(col_width, 6, text, border=1)
                pdf.ln()

        # Diagnostic plots
        for key, title in [('diagnostics', "Diagnostics by K"),
                           ('scatter', "Semantic Coherence vs Exclusivity")]:
            if key in plot_paths:
                _section(pdf, title)
                pdf.image(plot_paths[key], x=10, w=190)

        # Selected model
        if selected_k is not None:
            _section(pdf, f"Selected Model (K = {selected_k})")
            for topic, terms in sorted((top_terms or {}).items()):
                name = f"Topic {topic}"
                if labels and labels.get(topic):
                    name += f" [{labels[topic]}]"
                pdf.multi_cell(0, 6, _ascii(truncate_text(f"{name}: {', '.join(terms)}", MAX_TEXT_LENGTH)))
                pdf.ln(2)

        for key, title in [('top_terms', "Top Terms"),
                           ('prevalence', "Topic Prevalence"),
                           ('citations', "Citation Share")]:
            if key in plot_paths:
                _section(pdf, title)
                pdf.image(plot_paths[key], x=10, w=190)

        if citation_table is not None and not citation_table.empty:
            _section(pdf, "Citation Share by Topic")
            for _, row in citation_table.iterrows():
                name = row['label'] if isinstance(row.get('label'), str) else f"Topic {row['topic']}"
                pdf.cell(0, 6, _ascii(f"{name}: {int(row['members'])}/{int(row['documents'])} "
                                      f"({row['percent']:.1f}%)"), ln=True)

        # Finally, save the PDF
        pdf.output(output_path)
        logging.info(f"PDF report generated at: {output_path}")

    except Exception as e:
        logging.error(f"Error generating PDF: {str(e)}")
        raise
