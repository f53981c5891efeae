"""Metrics for Depth Map Evaluation.

This module provides image-similarity metrics between a predicted depth
heatmap and its reference:
- RMSE: root mean squared error in 0-255 intensity units (>= 0)
- PSNR: peak signal-to-noise ratio in dB (inf for identical maps)
- SSIM: structural similarity index in [-1, 1]

Metric functions come from scikit-image; this module adds validation,
per-model aggregation and the text report.

Usage:
    from depth_eval.utils.metrics import compute_depth_similarity, format_metrics_report

    scores = compute_depth_similarity(prediction, reference)
    print(f"SSIM: {scores['ssim']:.3f}")
"""

import logging
from typing import Dict, Iterable, List, Sequence

import numpy as np
from skimage.metrics import mean_squared_error, peak_signal_noise_ratio, structural_similarity

logger = logging.getLogger(__name__)

METRIC_NAMES = ("rmse", "psnr", "ssim")
DATA_RANGE = 255


def compute_rmse(prediction: np.ndarray, reference: np.ndarray) -> float:
    """Root mean squared error between two maps."""
    return float(np.sqrt(mean_squared_error(reference, prediction)))


def compute_psnr(prediction: np.ndarray, reference: np.ndarray) -> float:
    """Peak signal-to-noise ratio for 8-bit maps.

    Returns inf when the maps are identical.
    """
    if mean_squared_error(reference, prediction) == 0:
        return float("inf")
    return float(peak_signal_noise_ratio(reference, prediction, data_range=DATA_RANGE))


def compute_ssim(prediction: np.ndarray, reference: np.ndarray) -> float:
    """Structural similarity index for 8-bit maps."""
    return float(structural_similarity(reference, prediction, data_range=DATA_RANGE))


def compute_depth_similarity(prediction: np.ndarray, reference: np.ndarray) -> Dict[str, float]:
    """Compute RMSE, PSNR and SSIM between a prediction and its reference.

    Args:
        prediction: Predicted heatmap [H, W] uint8.
        reference: Reference heatmap [H, W] uint8.

    Returns:
        Dictionary with 'rmse', 'psnr' and 'ssim'.

    Raises:
        ValueError: If the maps do not have the same shape.
    """
    if prediction.shape != reference.shape:
        raise ValueError(
            f"Prediction shape {prediction.shape} does not match reference {reference.shape}"
        )

    return {
        "rmse": compute_rmse(prediction, reference),
        "psnr": compute_psnr(prediction, reference),
        "ssim": compute_ssim(prediction, reference),
    }


def mean_metrics(records: Iterable[Dict[str, float]], names: Sequence[str] = METRIC_NAMES) -> Dict[str, float]:
    """Arithmetic mean of each named metric across records."""
    records = list(records)
    if not records:
        return {name: float("nan") for name in names}
    return {name: float(np.mean([record[name] for record in records])) for name in names}


def format_metrics_report(aggregates: Dict[str, Dict[str, float]]) -> str:
    """Format per-model mean metrics as a text report.

    Args:
        aggregates: Mapping of model name to mean metrics.

    Returns:
        Report with one block per model, in insertion order:

            Mean Error Metrics for dpt:
            RMSE: 23.117
            PSNR: 21.003
            SSIM: 0.782
    """
    blocks: List[str] = []
    for model_name, metrics in aggregates.items():
        lines = [f"Mean Error Metrics for {model_name}:"]
        for name in METRIC_NAMES:
            lines.append(f"{name.upper()}: {metrics[name]:.3f}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
