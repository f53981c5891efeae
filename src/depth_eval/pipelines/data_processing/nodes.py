"""Data Processing Pipeline Nodes.

This module contains node functions that prepare the loaded sample
collection for depth evaluation.
"""

from typing import Any, Dict
import logging

import numpy as np

from depth_eval.samples import SampleCollection

logger = logging.getLogger(__name__)


def prepare_samples(
    collection: SampleCollection,
    params: Dict[str, Any],
) -> SampleCollection:
    """Validate the loaded samples and trim to the configured size.

    Args:
        collection: Samples loaded from the raw sample directories
        params: Configuration parameters
            - num_samples: Number of samples to keep (default 20)
            - gt_field: Reference annotation name (default 'gt_depth')

    Returns:
        Collection with exactly one reference annotation per sample

    Raises:
        ValueError: If a sample lacks its reference map or the map size
            does not match the image
    """
    num_samples = params.get("num_samples", 20)
    gt_field = params.get("gt_field", "gt_depth")

    samples = list(collection)
    if num_samples is not None:
        samples = samples[:num_samples]

    prepared = SampleCollection(collection.name)
    for sample in samples:
        if gt_field not in sample:
            raise ValueError(f"Sample {sample.id} has no '{gt_field}' annotation")

        reference = sample[gt_field]
        if reference.map.dtype != np.uint8:
            raise ValueError(f"Sample {sample.id}: '{gt_field}' must be uint8")

        size = sample.image_size
        if size is not None and reference.shape != size:
            raise ValueError(
                f"Sample {sample.id}: '{gt_field}' has shape {reference.shape}, image is {size}"
            )

        prepared.add(sample)

    if num_samples is not None and len(prepared) < num_samples:
        logger.warning(f"Requested {num_samples} samples, only {len(prepared)} available")

    logger.info(f"Prepared {len(prepared)} samples with reference field '{gt_field}'")
    return prepared


def summarize_samples(collection: SampleCollection) -> Dict[str, Any]:
    """Extract summary metadata from the collection.

    Args:
        collection: Prepared samples

    Returns:
        Dictionary containing collection metadata
    """
    if len(collection) == 0:
        return {"num_samples": 0}

    sizes = [sample.image_size for sample in collection if sample.image_size is not None]

    summary = {
        "name": collection.name,
        "num_samples": len(collection),
        "fields": collection.field_names(),
        "image_sizes": sorted({f"{w}x{h}" for h, w in sizes}),
    }

    logger.info(f"Collection summary: {summary}")
    return summary
