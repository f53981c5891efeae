"""Depth Estimation Pipeline.

This module applies one or more pre-trained monocular depth models to the
sample collection. Each model adds one heatmap annotation per sample.

Supported Backends:
    - hf: transformers depth-estimation pipeline (DPT, Depth Anything)
    - midas: MiDaS via torch.hub
    - zoedepth: ZoeDepth via torch.hub
    - remote: hosted HTTP inference (Hugging Face Inference API, Replicate)

Models are chained in order, so the output of the last node carries every
model's annotation:

    samples → apply_dpt → apply_marigold → depth_predictions
"""

from typing import Sequence

from kedro.pipeline import Pipeline, node, pipeline

from .nodes import (
    DepthEstimatorFactory,
    DepthModelConfig,
    DepthPredictor,
    apply_depth_model,
    load_depth_model,
    postprocess_depth,
    read_image_rgb,
)

# Must match evaluation.models in conf/base/parameters.yml
DEFAULT_MODELS = ("dpt", "marigold")

__all__ = [
    "DepthModelConfig",
    "DepthPredictor",
    "DepthEstimatorFactory",
    "load_depth_model",
    "postprocess_depth",
    "read_image_rgb",
    "apply_depth_model",
    "create_pipeline",
]


def create_pipeline(models: Sequence[str] = DEFAULT_MODELS, **kwargs) -> Pipeline:
    """Create the depth estimation pipeline.

    Args:
        models: Keys under `depth_estimation.models` in parameters.yml, applied in order.

    Returns:
        A Kedro Pipeline object for depth estimation.
    """
    if not models:
        raise ValueError("At least one depth model is required")

    nodes = []
    current = "samples"
    for index, model_name in enumerate(models):
        output = "depth_predictions" if index == len(models) - 1 else f"samples_with_{model_name}"
        nodes.append(
            node(
                func=apply_depth_model,
                inputs=[current, f"params:depth_estimation.models.{model_name}"],
                outputs=output,
                name=f"apply_{model_name}",
                tags=["depth", model_name],
            )
        )
        current = output

    return pipeline(nodes, tags=["depth_estimation"])
