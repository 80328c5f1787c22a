"""Tests for sharded accumulation and merge trees."""
import numpy as np
import pytest


@pytest.fixture
def dataset():
    """300 rows × 6 columns, two latent factors."""
    rng = np.random.default_rng(42)
    f1 = rng.normal(size=300)
    f2 = rng.normal(size=300)
    noise = rng.normal(size=(300, 6)) * 0.5
    loadings = np.array([
        [1.0, 0.0], [0.8, 0.2], [0.0, 1.0],
        [0.1, -0.9], [0.5, 0.5], [0.0, 0.0],
    ])
    return np.column_stack([f1, f2]) @ loadings.T + noise


@pytest.fixture
def shards(dataset):
    from pccstream.accumulator import MulticolumnAccumulator
    edges = [0, 40, 41, 130, 200, 300]
    return [
        MulticolumnAccumulator(6).accumulate_rows(dataset[a:b])
        for a, b in zip(edges[:-1], edges[1:])
    ]


class TestMergeAll:

    @pytest.mark.parametrize("tree", ['balanced', 'linear'])
    def test_matches_single_accumulator(self, dataset, shards, tree):
        from pccstream.accumulator import MulticolumnAccumulator
        from pccstream.reduce import merge_all
        whole = MulticolumnAccumulator(6).accumulate_rows(dataset)
        merged = merge_all(shards, tree=tree)
        assert merged.row_count == 300
        np.testing.assert_allclose(merged.coefficients(), whole.coefficients(), atol=1e-12)

    def test_tree_shapes_agree(self, shards):
        from pccstream.reduce import merge_all
        balanced = merge_all(shards, tree='balanced')
        linear = merge_all(shards, tree='linear')
        reversed_order = merge_all(shards[::-1], tree='balanced')
        np.testing.assert_allclose(balanced.coefficients(), linear.coefficients(), atol=1e-12)
        np.testing.assert_allclose(balanced.coefficients(), reversed_order.coefficients(), atol=1e-12)

    def test_inputs_untouched(self, shards):
        from pccstream.reduce import merge_all
        counts = [s.row_count for s in shards]
        merge_all(shards, tree='balanced')
        merge_all(shards, tree='linear')
        assert [s.row_count for s in shards] == counts

    def test_single_accumulator_is_copied(self, shards):
        from pccstream.reduce import merge_all
        result = merge_all(shards[:1])
        assert result is not shards[0]
        assert result.row_count == shards[0].row_count

    def test_empty_input(self):
        from pccstream.reduce import merge_all
        with pytest.raises(ValueError, match="at least one"):
            merge_all([])

    def test_unknown_tree(self, shards):
        from pccstream.reduce import merge_all
        with pytest.raises(ValueError, match="Unknown merge tree"):
            merge_all(shards, tree='random')

    def test_size_mismatch_propagates(self, shards):
        from pccstream.accumulator import MulticolumnAccumulator
        from pccstream.errors import SizeMismatch
        from pccstream.reduce import merge_all
        with pytest.raises(SizeMismatch):
            merge_all(shards + [MulticolumnAccumulator(3)])


class TestShardRows:

    def test_covers_range(self):
        from pccstream.reduce import shard_rows
        slices = shard_rows(103, 4)
        assert slices[0][0] == 0
        assert slices[-1][1] == 103
        for (_, stop), (start, _) in zip(slices[:-1], slices[1:]):
            assert stop == start
        assert sum(stop - start for start, stop in slices) == 103

    def test_more_shards_than_rows(self):
        from pccstream.reduce import shard_rows
        slices = shard_rows(2, 5)
        assert len(slices) == 5
        assert sum(stop - start for start, stop in slices) == 2

    def test_invalid(self):
        from pccstream.errors import InvalidSize
        from pccstream.reduce import shard_rows
        with pytest.raises(InvalidSize):
            shard_rows(10, 0)
        with pytest.raises(InvalidSize):
            shard_rows(-1, 2)


class TestAccumulateSharded:

    def test_sequential(self, dataset):
        from pccstream.accumulator import MulticolumnAccumulator
        from pccstream.reduce import accumulate_sharded
        whole = MulticolumnAccumulator(6).accumulate_rows(dataset)
        sharded = accumulate_sharded(dataset, n_shards=7)
        assert sharded.row_count == 300
        np.testing.assert_allclose(sharded.coefficients(), whole.coefficients(), atol=1e-12)

    def test_process_pool(self, dataset):
        from pccstream.accumulator import MulticolumnAccumulator
        from pccstream.reduce import accumulate_sharded
        whole = MulticolumnAccumulator(6).accumulate_rows(dataset)
        sharded = accumulate_sharded(dataset, n_shards=4, workers=2)
        assert sharded.row_count == 300
        np.testing.assert_allclose(sharded.coefficients(), whole.coefficients(), atol=1e-12)

    def test_float32(self, dataset):
        from pccstream.reduce import accumulate_sharded
        sharded = accumulate_sharded(dataset, n_shards=3, dtype=np.float32)
        assert sharded.dtype == np.float32

    def test_not_a_matrix(self):
        from pccstream.errors import ColumnCountMismatch
        from pccstream.reduce import accumulate_sharded
        with pytest.raises(ColumnCountMismatch):
            accumulate_sharded(np.arange(10.0), n_shards=2)
