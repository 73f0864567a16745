"""
codonbayes codon-usage plugin.

Key components:
- GeneticCode: NCBI translation tables via biopython
- CodonTable: sense codons grouped into synonymous families
- LogLinearCodonModel: multinomial codon usage per amino acid
- Loaders: FASTA coding sequences and expression tables to GeneDataStore
"""

from codonbayes.plugins.codon.plugin import CodonPlugin
from codonbayes.plugins.codon.states.genetic_code import GeneticCode
from codonbayes.plugins.codon.states.codons import CodonTable
from codonbayes.plugins.codon.models import LogLinearCodonModel
from codonbayes.plugins.codon.loaders import (
    load_fasta,
    load_expression_table,
    sequences_to_gene_data,
    load_gene_data,
)

__all__ = [
    "CodonPlugin",
    "GeneticCode",
    "CodonTable",
    "LogLinearCodonModel",
    "load_fasta",
    "load_expression_table",
    "sequences_to_gene_data",
    "load_gene_data",
]
