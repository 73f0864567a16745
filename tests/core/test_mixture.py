"""Tests for mixture definitions and category sharing."""

import numpy as np
import pytest

from codonbayes.core.errors import ConfigurationError, MalformedMixtureMatrix, OutOfRangeIndex
from codonbayes.core.mixture import MixtureDefinition, MixtureKeyword


class TestKeywords:
    def test_all_unique_matches_distinct_matrix(self):
        k = 4
        from_keyword = MixtureDefinition.from_keyword("allUnique", k)
        from_matrix = MixtureDefinition.from_matrix([[2, 3], [1, 4], [4, 1], [3, 2]], k)

        assert from_keyword.n_mutation_categories == k
        assert from_keyword.n_selection_categories == k
        assert from_matrix.n_mutation_categories == from_keyword.n_mutation_categories
        assert from_matrix.n_selection_categories == from_keyword.n_selection_categories

    def test_mutation_shared(self):
        mixture = MixtureDefinition.from_keyword(MixtureKeyword.MUTATION_SHARED, 3)
        assert mixture.n_mutation_categories == 1
        assert mixture.n_selection_categories == 3
        assert [mixture.mutation_category(k) for k in range(3)] == [0, 0, 0]
        assert [mixture.selection_category(k) for k in range(3)] == [0, 1, 2]

    def test_selection_shared(self):
        mixture = MixtureDefinition.from_keyword("selectionShared", 3)
        assert mixture.n_mutation_categories == 3
        assert mixture.n_selection_categories == 1
        assert mixture.gene_sets_for_selection(0) == [0, 1, 2]

    def test_single_mixture(self):
        for keyword in MixtureKeyword:
            mixture = MixtureDefinition.from_keyword(keyword, 1)
            assert mixture.n_mutation_categories == 1
            assert mixture.n_selection_categories == 1

    def test_unknown_keyword(self):
        with pytest.raises(MalformedMixtureMatrix, match="Unknown mixture definition"):
            MixtureDefinition.from_keyword("everythingShared", 2)

    def test_keyword_equals_equivalent_matrix(self):
        assert MixtureDefinition.from_keyword("mutationShared", 2) == MixtureDefinition.from_matrix(
            [[1, 1], [1, 2]], 2
        )


class TestCategoryIds:
    @pytest.mark.parametrize("keyword", list(MixtureKeyword))
    @pytest.mark.parametrize("k", [1, 2, 3, 5])
    def test_ids_dense_from_one(self, keyword, k):
        mixture = MixtureDefinition.from_keyword(keyword, k)
        for column in range(2):
            used = np.unique(mixture.matrix[:, column])
            assert used.size > 0
            np.testing.assert_array_equal(used, np.arange(1, used.size + 1))

    def test_shared_categories_map_back_to_gene_sets(self):
        mixture = MixtureDefinition.from_matrix([[1, 1], [1, 2], [2, 2]], 3)
        assert mixture.gene_sets_for_mutation(0) == [0, 1]
        assert mixture.gene_sets_for_mutation(1) == [2]
        assert mixture.gene_sets_for_selection(1) == [1, 2]

    def test_matrix_is_read_only(self):
        mixture = MixtureDefinition.from_keyword("allUnique", 2)
        with pytest.raises(ValueError):
            mixture.matrix[0, 0] = 5

    def test_out_of_range_gene_set(self):
        mixture = MixtureDefinition.from_keyword("allUnique", 3)
        with pytest.raises(OutOfRangeIndex):
            mixture.mutation_category(3)
        with pytest.raises(OutOfRangeIndex):
            mixture.selection_category(-1)
        with pytest.raises(OutOfRangeIndex):
            mixture.gene_sets_for_mutation(3)


class TestMalformed:
    def test_is_configuration_error(self):
        assert issubclass(MalformedMixtureMatrix, ConfigurationError)

    def test_wrong_column_count(self):
        with pytest.raises(MalformedMixtureMatrix, match="2 columns"):
            MixtureDefinition.from_matrix([[1, 1, 1], [2, 2, 2]], 2)

    def test_wrong_row_count(self):
        with pytest.raises(MalformedMixtureMatrix, match="rows"):
            MixtureDefinition.from_matrix([[1, 1], [2, 2]], 3)

    def test_non_positive_ids(self):
        with pytest.raises(MalformedMixtureMatrix, match="positive"):
            MixtureDefinition.from_matrix([[0, 1], [1, 2]], 2)

    def test_gap_in_ids(self):
        with pytest.raises(MalformedMixtureMatrix, match="densely"):
            MixtureDefinition.from_matrix([[1, 1], [3, 2]], 2)

    def test_non_integer_ids(self):
        with pytest.raises(MalformedMixtureMatrix, match="integers"):
            MixtureDefinition.from_matrix([[1, 1], [1.5, 2]], 2)

    @pytest.mark.parametrize("matrix", [[["a", "b"]], [[1, "two"]]])
    def test_non_numeric_ids(self, matrix):
        with pytest.raises(MalformedMixtureMatrix, match="Cannot interpret"):
            MixtureDefinition.from_matrix(matrix, 1)

    def test_zero_mixtures(self):
        with pytest.raises(MalformedMixtureMatrix):
            MixtureDefinition(np.empty((0, 2)), 0)
