"""Multipart upload layout.

Part size is a pure function of the total size, so an interrupted upload
resumed in a later process splits the object at the same boundaries.
"""

MINIMUM_PART_SIZE = 5 * 1024 * 1024
MAXIMUM_PART_SIZE = 5 * 1024 * 1024 * 1024
MAX_PARTS = 10000


def get_part_size(total_size: int) -> int:
    """Compute the multipart part size for an object of ``total_size`` bytes.

    One part of headroom is kept so the final, short part still fits under
    ``MAX_PARTS``. The result never leaves
    ``[MINIMUM_PART_SIZE, MAXIMUM_PART_SIZE]``.

    >>> get_part_size(5000000000)
    5242880
    >>> get_part_size(50000000000000000)
    5368709120
    """
    part_size = total_size // (MAX_PARTS - 1)
    if part_size <= MINIMUM_PART_SIZE:
        return MINIMUM_PART_SIZE
    return min(part_size, MAXIMUM_PART_SIZE)


def needs_multipart(total_size: int) -> bool:
    return total_size > MINIMUM_PART_SIZE
