"""
Partition geometry planning and hash-to-path assignment.

Artifacts are stored under directories named after successive slices of
their hexadecimal content hash. Because the hash is uniformly distributed,
each level of ``partition_size`` characters splits the artifacts into
``16 ** partition_size`` roughly equal buckets.
"""

import math
import string
from fractions import Fraction
from pathlib import Path

from .domain import PartitionGeometry
from .exceptions import InvalidConfigurationError

_HEX_DIGITS = frozenset(string.hexdigits)

# Above this many bits, n ** L is not materialized and the planner relies on
# its logarithmic estimate alone.
_EXACT_BITS_LIMIT = 1 << 16


def plan_partitions(
    alphabet_size: int,
    length: int,
    max_files: float,
    partition_depth: int,
) -> PartitionGeometry:
    """
    Chooses how many hash characters to use per directory level.

    Returns the smallest ``partition_size >= 1`` such that the expected
    number of artifacts per leaf directory,
    ``alphabet_size ** length / 16 ** (partition_size * partition_depth)``,
    does not exceed ``max_files``. A depth of 0 always yields a flat layout.

    When ``alphabet_size ** length`` would need more than ``_EXACT_BITS_LIMIT``
    bits, the result comes from floating-point logarithms only and can be one
    character wider or narrower than the exact answer when the ratio sits on
    a level boundary.

    Raises:
        InvalidConfigurationError: If any argument is out of domain.
    """

    if alphabet_size < 1:
        raise InvalidConfigurationError(
            f"Alphabet size must be at least 1, got {alphabet_size}"
        )
    if length < 1:
        raise InvalidConfigurationError(f"Length must be at least 1, got {length}")
    if not max_files > 0 or math.isinf(max_files):
        raise InvalidConfigurationError(
            f"max_files must be a positive number, got {max_files}"
        )
    if partition_depth < 0:
        raise InvalidConfigurationError(
            f"Partition depth must not be negative, got {partition_depth}"
        )

    if partition_depth == 0:
        return PartitionGeometry(partition_size=1, partition_depth=0)

    log_ratio = length * math.log(alphabet_size, 16) - math.log(max_files, 16)
    partition_size = max(1, math.ceil(log_ratio / partition_depth))

    if length * math.log2(alphabet_size) <= _EXACT_BITS_LIMIT:
        partition_size = _refine_exact(
            alphabet_size ** length,
            Fraction(max_files),
            partition_depth,
            partition_size,
        )

    return PartitionGeometry(
        partition_size=partition_size, partition_depth=partition_depth
    )


def _refine_exact(
    total: int, budget: Fraction, partition_depth: int, estimate: int
) -> int:
    """Corrects a logarithmic estimate using exact rational comparison."""
    # total <= p/q * 16**k  <=>  total * q <= p << 4k
    needed = total * budget.denominator
    numerator = budget.numerator

    def fits(size: int) -> bool:
        shift = 4 * size * partition_depth
        if shift + numerator.bit_length() > needed.bit_length():
            return True
        return needed <= numerator << shift

    size = estimate
    while size > 1 and fits(size - 1):
        size -= 1
    while not fits(size):
        size += 1
    return size


def ensure_hash_capacity(geometry: PartitionGeometry, hash_length: int):
    """
    Checks up front that hashes of ``hash_length`` characters are long
    enough for the geometry.
    """
    if hash_length <= geometry.prefix_length:
        raise InvalidConfigurationError(
            f"Partition geometry needs hashes longer than "
            f"{geometry.prefix_length} characters "
            f"({geometry.partition_depth} levels of {geometry.partition_size}), "
            f"but the encoder produces {hash_length}"
        )


def assign_path(
    content_hash: str,
    geometry: PartitionGeometry,
    root: Path,
    extension: str,
) -> Path:
    """
    Builds ``root/<p1>/.../<p_depth>/<hash>.<extension>`` where each ``p_k``
    is the k-th ``partition_size`` slice of the hash.

    Raises:
        InvalidConfigurationError: If the hash is not hexadecimal or is not
                                   longer than the geometry's prefix.
    """

    if not content_hash or not _HEX_DIGITS.issuperset(content_hash):
        raise InvalidConfigurationError(
            f"Content hash must be a hexadecimal string, got '{content_hash}'"
        )
    if len(content_hash) <= geometry.prefix_length:
        raise InvalidConfigurationError(
            f"Hash {content_hash} is too short for {geometry.partition_depth} "
            f"partition levels of {geometry.partition_size} characters"
        )

    size = geometry.partition_size
    partitions = [
        content_hash[level * size:(level + 1) * size]
        for level in range(geometry.partition_depth)
    ]
    return Path(root).joinpath(*partitions, f"{content_hash}.{extension}")
