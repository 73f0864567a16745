"""
Loaders turning coding sequences and expression tables into a GeneDataStore.

FASTA parsing and CSV reading stay here so the engine only ever sees the
immutable per-gene count vectors and measurements.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import numpy as np
import pandas as pd

from codonbayes.core.data import GeneDataStore
from codonbayes.core.errors import DataError
from codonbayes.plugins.codon.states.codons import CodonTable

__all__ = [
    "load_fasta",
    "load_expression_table",
    "sequences_to_gene_data",
    "load_gene_data",
]

logger = logging.getLogger(__name__)


def load_fasta(fasta_path: str | Path) -> dict[str, str]:
    """
    Read a FASTA file of coding sequences.

    Args:
        fasta_path: Path to the FASTA file.

    Returns:
        Mapping from sequence label to upper-case nucleotide sequence,
        in file order.
    """

    sequences: dict[str, str] = {}
    current_label: str | None = None
    fasta_path = Path(fasta_path)

    with fasta_path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                header = line[1:].strip()
                if not header:
                    raise DataError("Encountered FASTA entry with empty label.")
                current_label = header.split()[0]
                if current_label in sequences:
                    raise DataError(f"Duplicate FASTA label '{current_label}'.")
                sequences[current_label] = ""
                continue

            if current_label is None:
                raise DataError("FASTA content missing label before sequence data.")
            sequences[current_label] += line.replace(" ", "").upper()

    if not sequences:
        raise DataError(f"No sequences found in {fasta_path}")
    return sequences


def load_expression_table(csv_path: str | Path) -> pd.DataFrame:
    """
    Read empirical expression measurements.

    The first column holds gene ids; every further column is one
    observation set. Empty cells become NaN (missing measurement).

    Returns:
        DataFrame indexed by gene id with one float column per observation set.
    """

    csv_path = Path(csv_path)
    sep = "\t" if csv_path.suffix in (".tsv", ".txt") else ","
    frame = pd.read_csv(csv_path, sep=sep, index_col=0)
    frame.index = frame.index.astype(str)
    try:
        frame = frame.apply(pd.to_numeric, errors="raise").astype(float)
    except (TypeError, ValueError) as exc:
        raise DataError(f"Non-numeric expression value in {csv_path}: {exc}") from exc
    if frame.index.has_duplicates:
        raise DataError(f"Duplicate gene ids in {csv_path}")
    return frame


def sequences_to_gene_data(
    sequences: Mapping[str, str],
    codon_table: CodonTable | None = None,
    expression: pd.DataFrame | None = None,
    gene_order: Sequence[str] | None = None,
) -> GeneDataStore:
    """
    Count codons per gene and attach expression measurements.

    Args:
        sequences: Mapping from gene id to in-frame coding sequence.
        codon_table: Codon indexing (defaults to the universal code).
        expression: Optional table indexed by gene id, one column per
            observation set. Genes absent from the table get NaN.
        gene_order: Optional gene ordering (defaults to insertion order).

    Returns:
        GeneDataStore with one gene per sequence.

    Raises:
        DataError: sequence length not divisible by three, or expression
            rows naming genes without a sequence.
    """

    if not sequences:
        raise DataError("sequences mapping cannot be empty")

    codon_table = codon_table or CodonTable.universal()
    ids = list(gene_order) if gene_order is not None else list(sequences.keys())

    counts = np.zeros((len(ids), codon_table.dimension), dtype=np.int64)
    for row, gene_id in enumerate(ids):
        try:
            seq = sequences[gene_id]
        except KeyError as exc:
            raise DataError(f"Gene '{gene_id}' missing from sequences mapping.") from exc
        if len(seq) % 3 != 0:
            raise DataError(
                f"Sequence length for '{gene_id}' ({len(seq)}) is not divisible by 3."
            )
        counts[row] = codon_table.count(seq)

    if expression is None:
        return GeneDataStore.from_arrays(ids, counts, codon_table.codons)

    unknown = sorted(set(expression.index) - set(ids))
    if unknown:
        raise DataError(
            f"Expression table names {len(unknown)} genes without a sequence, "
            f"e.g. '{unknown[0]}'"
        )
    aligned = expression.reindex(ids)
    logger.debug(
        f"Attached {aligned.shape[1]} observation sets; "
        f"{int(aligned.isna().sum().sum())} missing measurements"
    )
    return GeneDataStore.from_arrays(
        ids,
        counts,
        codon_table.codons,
        expression=aligned.to_numpy(dtype=float),
        observation_names=[str(c) for c in aligned.columns],
    )


def load_gene_data(
    fasta_path: str | Path,
    expression_path: str | Path | None = None,
    *,
    codon_table: CodonTable | None = None,
) -> GeneDataStore:
    """
    Load coding sequences (and optionally expression) from disk.

    Args:
        fasta_path: FASTA of in-frame coding sequences.
        expression_path: Optional CSV/TSV of expression measurements.
        codon_table: Codon indexing (defaults to the universal code).

    Returns:
        GeneDataStore ready for a run.
    """

    sequences = load_fasta(fasta_path)
    expression = load_expression_table(expression_path) if expression_path is not None else None
    data = sequences_to_gene_data(sequences, codon_table, expression)
    logger.info(f"Loaded {data.n_genes} genes from {fasta_path}")
    return data
