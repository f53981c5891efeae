"""Utility modules for depth evaluation.

This package contains utility functions for:
- Metrics computation (RMSE, PSNR, SSIM)
- Visualization (colorized heatmaps, comparison panels)
- MLFlow experiment tracking
"""

from depth_eval.utils.metrics import (
    METRIC_NAMES,
    compute_depth_similarity,
    compute_psnr,
    compute_rmse,
    compute_ssim,
    format_metrics_report,
    mean_metrics,
)
from depth_eval.utils.mlflow_utils import (
    is_mlflow_available,
    log_depth_evaluation,
    log_dict_as_artifact,
    log_metrics_safe,
    log_params_safe,
    log_text_artifact,
    mlflow_run,
)
from depth_eval.utils.visualization import (
    colorize_heatmap,
    draw_label,
    export_collection_panels,
    make_comparison_panel,
)

__all__ = [
    # Metrics
    "METRIC_NAMES",
    "compute_depth_similarity",
    "compute_rmse",
    "compute_psnr",
    "compute_ssim",
    "mean_metrics",
    "format_metrics_report",
    # Visualization
    "colorize_heatmap",
    "draw_label",
    "make_comparison_panel",
    "export_collection_panels",
    # MLFlow
    "is_mlflow_available",
    "mlflow_run",
    "log_params_safe",
    "log_metrics_safe",
    "log_dict_as_artifact",
    "log_text_artifact",
    "log_depth_evaluation",
]
