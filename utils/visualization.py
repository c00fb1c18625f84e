import matplotlib.pyplot as plt
import seaborn as sns
import numpy as np
import pandas as pd
from typing import Mapping, Optional
from pathlib import Path

class VisualizationGenerator:
    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        # Set matplotlib to use Agg backend for better memory management
        plt.switch_backend('Agg')
        sns.set_theme(style="whitegrid", context="paper")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        plt.close('all')  # Ensure all figures are closed

    def generate_diagnostics_plot(self, summary: pd.DataFrame) -> str:
        """Plots each per-K diagnostic against K, the basis of the manual K choice"""
        output_path = self.output_dir / "diagnostics_by_k.png"

        panels = [
            ('heldout', 'Held-out Likelihood'),
            ('residual', 'Residual Dispersion'),
            ('semantic_coherence', 'Semantic Coherence'),
            ('exclusivity', 'Exclusivity'),
            ('lbound', 'Lower Bound')
        ]

        try:
            plt.close('all')

            fig, axes = plt.subplots(2, 3, figsize=(15, 8))
            axes = axes.ravel()
            for ax, (column, title) in zip(axes, panels):
                ax.plot(summary['K'], summary[column], marker='o', markersize=3, color='#4a90e2')
                ax.set_title(title)
                ax.set_xlabel('Number of Topics (K)')
            axes[-1].axis('off')

            plt.tight_layout()
            plt.savefig(output_path, dpi=300, bbox_inches='tight')
            return str(output_path)

        finally:
            plt.close('all')

    def generate_coherence_exclusivity_plot(self, topic_table: pd.DataFrame,
                                            highlight_k: Optional[list] = None) -> str:
        """Scatter of per-topic semantic coherence vs exclusivity, one color per K"""
        output_path = self.output_dir / "coherence_exclusivity.png"

        try:
            plt.close('all')

            data = topic_table
            if highlight_k:
                data = topic_table[topic_table['K'].isin(highlight_k)]

            fig, ax = plt.subplots(figsize=(10, 7))
            sns.scatterplot(data=data, x='semantic_coherence', y='exclusivity',
                            hue='K', palette='viridis', alpha=0.7, ax=ax)

            # Mean per K, labeled with its K
            means = data.groupby('K')[['semantic_coherence', 'exclusivity']].mean()
            for k, row in means.iterrows():
                ax.annotate(str(k), (row['semantic_coherence'], row['exclusivity']),
                            fontsize=8, weight='bold')

            ax.set_title('Semantic Coherence vs Exclusivity')
            ax.set_xlabel('Semantic Coherence')
            ax.set_ylabel('Exclusivity')

            plt.tight_layout()
            plt.savefig(output_path, dpi=300, bbox_inches='tight')
            return str(output_path)

        finally:
            plt.close('all')

    def generate_top_terms_plot(self, top_terms: pd.DataFrame,
                                labels: Optional[Mapping[int, str]] = None,
                                n_terms: int = 10) -> str:
        """Horizontal bars of the top terms of every topic"""
        output_path = self.output_dir / "top_terms.png"

        try:
            plt.close('all')

            topics = sorted(top_terms['topic'].unique())
            n_cols = 4
            n_rows = int(np.ceil(len(topics) / n_cols))
            fig, axes = plt.subplots(n_rows, n_cols, figsize=(16, 3.2 * n_rows), squeeze=False)

            for ax, topic in zip(axes.ravel(), topics):
                terms = top_terms[top_terms['topic'] == topic].nsmallest(n_terms, 'rank')
                ax.barh(terms['term'][::-1], terms['probability'][::-1], color='#9b59b6')
                title = f"Topic {topic}"
                if labels and labels.get(topic):
                    title += f": {labels[topic]}"
                ax.set_title(title, fontsize=9)
                ax.tick_params(axis='both', labelsize=7)
            for ax in axes.ravel()[len(topics):]:
                ax.axis('off')

            plt.tight_layout()
            plt.savefig(output_path, dpi=300, bbox_inches='tight')
            return str(output_path)

        finally:
            plt.close('all')

    def generate_prevalence_plot(self, prevalence: pd.DataFrame, column: str = 'year',
                                 labels: Optional[Mapping[int, str]] = None) -> str:
        """Mean topic proportion over a covariate (usually publication year)"""
        output_path = self.output_dir / f"prevalence_by_{column}.png"

        try:
            plt.close('all')

            data = prevalence.copy()
            data['series'] = data['topic'].map(
                lambda t: labels.get(t, f"Topic {t}") if labels else f"Topic {t}"
            )
            # Topics sharing a label are summed into one series
            data = data.groupby([column, 'series'], as_index=False)['proportion'].sum()

            fig, ax = plt.subplots(figsize=(12, 6))
            sns.lineplot(data=data, x=column, y='proportion', hue='series', ax=ax)
            ax.set_title(f'Topic Prevalence by {column.replace("_", " ").title()}')
            ax.set_ylabel('Mean Topic Proportion')
            ax.legend(bbox_to_anchor=(1.02, 1), loc='upper left', fontsize=7)

            plt.tight_layout()
            plt.savefig(output_path, dpi=300, bbox_inches='tight')
            return str(output_path)

        finally:
            plt.close('all')

    def generate_citation_share_plot(self, citation_table: pd.DataFrame, title: str) -> str:
        """Bar chart of the percent of each topic's documents in a membership set"""
        output_path = self.output_dir / "citation_share.png"

        try:
            plt.close('all')

            labels = citation_table['label'] if 'label' in citation_table else [None] * len(citation_table)
            names = [
                label if isinstance(label, str) else f"Topic {topic}"
                for topic, label in zip(citation_table['topic'], labels)
            ]
            # Positions, not names: several topics may share a label
            fig, ax = plt.subplots(figsize=(10, 6))
            ax.bar(range(len(names)), citation_table['percent'], color='#f39c12')
            ax.set_xticks(range(len(names)))
            ax.set_xticklabels(names, rotation=45, ha='right')
            ax.set_ylabel('% of Documents')
            ax.set_title(title)

            plt.tight_layout()
            plt.savefig(output_path, dpi=300, bbox_inches='tight')
            return str(output_path)

        finally:
            plt.close('all')
