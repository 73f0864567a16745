"""Codon state definitions."""

from codonbayes.plugins.codon.states.genetic_code import GeneticCode
from codonbayes.plugins.codon.states.codons import CodonTable

__all__ = ["GeneticCode", "CodonTable"]
