"""Evaluation Pipeline.

This module scores depth predictions against reference maps with RMSE, PSNR
and SSIM, aggregates per-model means, prints the report and logs it to
MLFlow. Comparison panels are exported for visual inspection.
"""

from kedro.pipeline import Pipeline, node, pipeline

from .nodes import (
    aggregate_metrics,
    evaluate_depth,
    evaluate_predictions,
    export_comparisons,
    log_evaluation_to_mlflow,
    report_metrics,
)

__all__ = [
    "evaluate_depth",
    "evaluate_predictions",
    "aggregate_metrics",
    "report_metrics",
    "log_evaluation_to_mlflow",
    "export_comparisons",
    "create_pipeline",
]


def create_pipeline(**kwargs) -> Pipeline:
    """Create the evaluation pipeline.

    Returns:
        A Kedro Pipeline object for depth evaluation.
    """
    return pipeline(
        [
            node(
                func=evaluate_predictions,
                inputs=["depth_predictions", "params:evaluation"],
                outputs="evaluated_samples",
                name="evaluate_predictions",
                tags=["evaluation", "metrics"],
            ),
            node(
                func=aggregate_metrics,
                inputs=["evaluated_samples", "params:evaluation"],
                outputs="depth_metrics",
                name="aggregate_metrics",
                tags=["evaluation", "metrics"],
            ),
            node(
                func=report_metrics,
                inputs="depth_metrics",
                outputs="depth_metrics_report",
                name="report_metrics",
                tags=["evaluation", "reporting"],
            ),
            node(
                func=log_evaluation_to_mlflow,
                inputs=["depth_metrics", "depth_metrics_report", "params:tracking"],
                outputs=None,
                name="log_evaluation_to_mlflow",
                tags=["evaluation", "tracking"],
            ),
            node(
                func=export_comparisons,
                inputs=["evaluated_samples", "params:evaluation"],
                outputs="comparison_panels",
                name="export_comparisons",
                tags=["evaluation", "visualization"],
            ),
        ],
        tags=["evaluation"],
    )
