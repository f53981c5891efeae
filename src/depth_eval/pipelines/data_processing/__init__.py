"""Data Processing Pipeline.

This module prepares the raw sample collection (images plus reference depth
maps) for depth estimation.
"""

from kedro.pipeline import Pipeline, node, pipeline

from .nodes import (
    prepare_samples,
    summarize_samples,
)


def create_pipeline(**kwargs) -> Pipeline:
    """Create the data processing pipeline.

    Returns:
        A Kedro Pipeline object for data processing.
    """
    return pipeline(
        [
            node(
                func=prepare_samples,
                inputs=["raw_samples", "params:data_processing"],
                outputs="samples",
                name="prepare_samples",
                tags=["data", "preprocessing"],
            ),
            node(
                func=summarize_samples,
                inputs="samples",
                outputs="samples_summary",
                name="summarize_samples",
                tags=["data", "metadata"],
            ),
        ],
        tags=["data_processing"],
    )
