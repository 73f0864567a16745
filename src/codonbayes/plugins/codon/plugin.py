"""Codon-usage plugin for codonbayes."""

from typing import Dict, Any, Callable
from codonbayes.plugins.base import PluginBase


class CodonPlugin(PluginBase):
    """
    Codon-usage plugin: FASTA/CSV loaders and the log-linear codon model.

    Maps codon-usage concepts onto the engine's parameter blocks:
    - mutation bias dM → mutation category arrays
    - translational selection dEta → selection category arrays
    - protein synthesis rate phi → gene-specific expression
    """

    @property
    def name(self) -> str:
        return "codon"

    @property
    def version(self) -> str:
        return "0.1.0"

    @property
    def models(self) -> Dict[str, type]:
        from codonbayes.plugins.codon.models import LogLinearCodonModel

        return {
            LogLinearCodonModel.name: LogLinearCodonModel,
        }

    @property
    def loaders(self) -> Dict[str, Callable]:
        from codonbayes.plugins.codon.loaders import load_expression_table, load_fasta, load_gene_data

        return {
            "fasta": load_fasta,
            "expression": load_expression_table,
            "gene_data": load_gene_data,
        }

    @property
    def priors(self) -> Dict[str, Any]:
        return {
            "phi": {
                "distribution": "lognormal",
                "mean": "-sphi^2/2",
                "sd": "sphi",
                "description": "Prior on phi (E[phi] = 1)",
            },
            "csp": {
                "distribution": "flat",
                "description": "Prior on mutation and selection parameters",
            },
        }
