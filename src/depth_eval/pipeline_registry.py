"""Kedro Pipeline Registry.

This module provides the central registry for all pipelines in the depth
evaluation project.
"""

from typing import Dict

from kedro.pipeline import Pipeline

from depth_eval.pipelines.data_processing import create_pipeline as create_data_pipeline
from depth_eval.pipelines.depth_estimation import create_pipeline as create_depth_pipeline
from depth_eval.pipelines.docs_deployment import (
    create_clean_pipeline as create_docs_clean_pipeline,
)
from depth_eval.pipelines.docs_deployment import (
    create_publish_pipeline as create_docs_publish_pipeline,
)
from depth_eval.pipelines.evaluation import create_pipeline as create_evaluation_pipeline


def register_pipelines() -> Dict[str, Pipeline]:
    """Register all project pipelines.

    Returns:
        A dictionary mapping pipeline names to Pipeline objects.
    """
    # Depth evaluation
    data_processing_pipeline = create_data_pipeline()
    depth_estimation_pipeline = create_depth_pipeline()
    evaluation_pipeline = create_evaluation_pipeline()

    depth_tutorial_pipeline = (
        data_processing_pipeline
        + depth_estimation_pipeline
        + evaluation_pipeline
    )

    # Docs deployment
    docs_publish_pipeline = create_docs_publish_pipeline()
    docs_clean_pipeline = create_docs_clean_pipeline()

    return {
        # Individual pipelines
        "data_processing": data_processing_pipeline,
        "depth_estimation": depth_estimation_pipeline,
        "evaluation": evaluation_pipeline,

        # Combined pipelines
        "depth_tutorial": depth_tutorial_pipeline,

        # Docs deployment (run explicitly)
        "docs_publish": docs_publish_pipeline,
        "docs_clean": docs_clean_pipeline,

        # Default pipeline
        "__default__": depth_tutorial_pipeline,
    }
