from __future__ import annotations

import logging

from .config import DescriptorParams
from .errors import DescriptorExtractionError
from .kernels import launch_descriptor_kernel
from .octave import Octave

logger = logging.getLogger(__name__)

_DEFAULT_PARAMS = DescriptorParams()


def extract_descriptors(octave_index: int, octave: Octave, params: DescriptorParams | None = None) -> bool:
    """Launch one descriptor block per pending (keypoint, orientation) pair.

    Returns False without touching the device when the octave has no pending
    pairs. The launch is queued on the octave's own stream; with
    ``params.sync_check`` that stream is synchronized before returning so a
    device fault is reported against this octave.
    """
    params = params or _DEFAULT_PARAMS
    n_groups = octave.orientation_count_total
    if n_groups == 0:
        logger.debug("octave %d: no pending orientations, skipping", octave_index)
        return False

    logger.debug(
        "octave %d: launching %d blocks of %s threads",
        octave_index,
        n_groups,
        "x".join(str(d) for d in params.tile.as_tuple()),
    )
    try:
        launch_descriptor_kernel(
            octave.levels,
            octave.pairs,
            octave.descriptors,
            n_groups,
            params,
            octave.stream,
        )
        if params.sync_check:
            octave.stream.synchronize()
    except Exception as e:
        logger.error("octave %d: descriptor kernel failed: %s", octave_index, e)
        raise DescriptorExtractionError(octave_index, str(e)) from e

    return True
