# -- Counting / Radix Sort for Spatial Hashing -- #

'''
Stable sort of (particle, key) pairs and cell offset table construction.

Turns the per-particle hash keys produced by the spatial hash into a
cell-contiguous particle ordering, in the same phases a GPU
implementation uses:

    1. Count particles per key (histogram)
    2. Exclusive prefix sum of the counts -> first slot of every key
    3. Stable scatter of particles into their key's slot range

The scatter is realized as an LSD radix sort over 16-bit digits. NumPy's
stable sort on 16-bit integers is itself a counting sort, so every
digit pass is O(n) and the full sort is O(n) for any key range below
2^32.

References:
-----------
Green (2010) -- Particle Simulation using CUDA
Satish et al. (2009) -- Designing efficient sorting algorithms for
    manycore GPUs
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


# Bits consumed by one radix pass
_DIGIT_BITS = 16
_DIGIT_MASK = (1 << _DIGIT_BITS) - 1


@dataclass
class SortedKeys:
    '''
    Result of sorting particle keys.

    Parameters:
    -----------
    order : np.ndarray
        Particle indices in cell-contiguous order, shape (N,)
    sortedKeys : np.ndarray
        Keys in sorted order, shape (N,)
    offsets : np.ndarray
        First sorted position of each key, or `emptySentinel`,
        shape (tableSize,)
    counts : np.ndarray
        Number of particles per key, shape (tableSize,)
    emptySentinel : int
        Offset value marking a key with no particles (equals N)
    '''

    order: np.ndarray
    sortedKeys: np.ndarray
    offsets: np.ndarray
    counts: np.ndarray
    emptySentinel: int

    @property
    def tableSize(self) -> int:
        '''Number of hash keys in the offset table.'''
        return len(self.offsets)


def radixSortOrder(keys: np.ndarray) -> np.ndarray:
    '''
    Stable LSD radix sort returning the permutation that sorts `keys`.

    Parameters:
    -----------
    keys : np.ndarray
        Non-negative integer keys below 2^32, shape (N,)

    Returns:
    --------
    np.ndarray : Permutation such that keys[order] is non-decreasing
        and equal keys keep their input order, shape (N,)
    '''
    keys = np.asarray(keys, dtype=np.int64)
    order = np.arange(len(keys), dtype=np.int64)
    if len(keys) == 0:
        return order

    maxKey = int(keys.max())
    shift = 0
    while True:
        digit = ((keys[order] >> shift) & _DIGIT_MASK).astype(np.uint16)
        # kind='stable' on uint16 is a counting sort
        order = order[np.argsort(digit, kind='stable')]
        shift += _DIGIT_BITS
        if (maxKey >> shift) == 0:
            break

    return order


def countingSort(keys: np.ndarray, tableSize: int) -> SortedKeys:
    '''
    Sort particle keys and build the per-key offset table.

    offsets[k] is the first position in the sorted order whose key is
    k, or N (the sentinel) when no particle has key k.

    Parameters:
    -----------
    keys : np.ndarray
        Hash key per particle in [0, tableSize), shape (N,)
    tableSize : int
        Size of the hash table

    Returns:
    --------
    SortedKeys : Sorted order, sorted keys, offsets and counts

    Raises:
    -------
    ValueError : If a key falls outside [0, tableSize)
    '''
    keys = np.asarray(keys, dtype=np.int64)
    nParticles = len(keys)

    if nParticles > 0 and (keys.min() < 0 or keys.max() >= tableSize):
        raise ValueError(
            f'Hash keys must lie in [0, {tableSize}), '
            f'got range [{keys.min()}, {keys.max()}]'
        )

    # 1. Histogram
    counts = np.bincount(keys, minlength=tableSize).astype(np.int64)

    # 2. Exclusive prefix sum
    starts = np.cumsum(counts) - counts

    # 3. Stable scatter
    order = radixSortOrder(keys)
    sortedKeys = keys[order]

    offsets = np.where(counts > 0, starts, nParticles).astype(np.int64)

    return SortedKeys(
        order=order,
        sortedKeys=sortedKeys,
        offsets=offsets,
        counts=counts,
        emptySentinel=nParticles,
    )
