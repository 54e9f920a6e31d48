# -- Counting / Radix Sort Tests -- #

import numpy as np
import pytest

from thermoFluid.sph.sorting import countingSort, radixSortOrder


def test_radixSortMatchesStableArgsort():
    rng = np.random.default_rng(3)
    keys = rng.integers(0, 2 ** 31, size=5000)
    np.testing.assert_array_equal(radixSortOrder(keys), np.argsort(keys, kind='stable'))


def test_radixSortKeepsEqualKeysInInputOrder():
    keys = np.array([4, 1, 4, 0, 1, 4])
    np.testing.assert_array_equal(radixSortOrder(keys), [3, 1, 4, 0, 2, 5])


def test_countingSortOffsets():
    keys = np.array([2, 0, 2, 5, 0, 2])
    result = countingSort(keys, tableSize=7)

    np.testing.assert_array_equal(result.sortedKeys, [0, 0, 2, 2, 2, 5])
    np.testing.assert_array_equal(result.order, [1, 4, 0, 2, 5, 3])
    np.testing.assert_array_equal(result.counts, [2, 0, 3, 0, 0, 1, 0])

    sentinel = len(keys)
    assert result.emptySentinel == sentinel
    np.testing.assert_array_equal(result.offsets, [0, sentinel, 2, sentinel, sentinel, 5, sentinel])
    assert result.tableSize == 7


def test_countingSortIsPermutation():
    rng = np.random.default_rng(11)
    keys = rng.integers(0, 300, size=1000)
    result = countingSort(keys, tableSize=300)

    np.testing.assert_array_equal(np.sort(result.order), np.arange(1000))
    assert result.counts.sum() == 1000
    for k in np.unique(keys):
        start = result.offsets[k]
        run = result.sortedKeys[start:start + result.counts[k]]
        assert np.all(run == k)


def test_countingSortEmpty():
    result = countingSort(np.array([], dtype=np.int64), tableSize=4)
    assert len(result.order) == 0
    np.testing.assert_array_equal(result.offsets, [0, 0, 0, 0])


def test_countingSortRejectsOutOfRangeKeys():
    with pytest.raises(ValueError, match='Hash keys'):
        countingSort(np.array([0, 4]), tableSize=4)
