"""
Structural topic model diagnostics configuration based on research standards.
References:
- Roberts, M. E., Stewart, B. M., & Tingley, D. (2019). stm: An R Package for Structural Topic Models. Journal of Statistical Software, 91(2), 1-40. 10.18637/jss.v091.i02
- David Mimno, Hanna Wallach, Edmund Talley, Miriam Leenders, and Andrew McCallum. 2011. Optimizing Semantic Coherence in Topic Models. In Proceedings of the 2011 Conference on Empirical Methods in Natural Language Processing, pages 262–272, Edinburgh, Scotland, UK.. Association for Computational Linguistics.
- Wallach, Hanna & Murray, Iain & Salakhutdinov, Ruslan & Mimno, David. (2009). Evaluation methods for topic models. Proceedings of the 26th International Conference On Machine Learning, ICML 2009. 382. 139. 10.1145/1553374.1553515.
- Taddy, M. (2012). On Estimation and Selection for Topic Models. Proceedings of the 15th International Conference on Artificial Intelligence and Statistics (AISTATS), 1184-1193.
"""

TOPIC_CONFIG = {
    'coherence_measure': 'u_mass',  # Following Mimno et al. (2011)
    'prevalence_covariates': {
        'numeric': ['year'],  # linear effect
        'categorical': ['main_concept']
    },
    'init': {
        'method': 'lda',  # beta starts from a short batch LDA run
        'lda_iterations': 20,
        'sigma_scale': 20.0
    },
    'estep': {
        'method': 'BFGS',
        'max_iterations': 200
    },
    'beta_floor': 1e-12,  # keeps log(beta) finite for unseen words
    'summary_columns': [
        'K', 'exclusivity', 'semantic_coherence', 'heldout',
        'residual', 'bound', 'lbound', 'em_iterations'
    ]
}
