"""Evaluation Pipeline Nodes.

This module scores every model's depth predictions against the reference
maps and aggregates the scores per model.

Metrics (see depth_eval.utils.metrics):
    - RMSE: error magnitude in 0-255 units, lower is better
    - PSNR: signal-to-noise ratio in dB, higher is better
    - SSIM: structural similarity in [-1, 1], higher is better

After evaluate_depth, each prediction annotation carries its scores and the
collection exposes them as dotted fields (e.g. `dpt.rmse`), so they can be
sorted and filtered in a viewer.
"""

import logging
from typing import Any, Dict, List, Sequence

from depth_eval.samples import SampleCollection
from depth_eval.utils.metrics import (
    METRIC_NAMES,
    compute_depth_similarity,
    format_metrics_report,
    mean_metrics,
)
from depth_eval.utils.mlflow_utils import (
    is_mlflow_available,
    log_depth_evaluation,
    log_dict_as_artifact,
    log_text_artifact,
    mlflow_run,
)
from depth_eval.utils.visualization import export_collection_panels

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("api_token",)


def evaluate_depth(
    collection: SampleCollection,
    pred_field: str,
    gt_field: str = "gt_depth",
) -> SampleCollection:
    """Score one prediction field against the reference on every sample.

    Args:
        collection: Samples carrying both annotations
        pred_field: Prediction annotation name
        gt_field: Reference annotation name

    Returns:
        The same collection; metrics stored on each prediction annotation

    Raises:
        KeyError: If a sample lacks either annotation
        ValueError: If prediction and reference shapes differ
    """
    for sample in collection:
        prediction = sample[pred_field]
        reference = sample[gt_field]
        prediction.metrics.update(compute_depth_similarity(prediction.map, reference.map))

    collection.register_fields([f"{pred_field}.{name}" for name in METRIC_NAMES])

    logger.info(f"Evaluated '{pred_field}' against '{gt_field}' on {len(collection)} samples")
    return collection


def evaluate_predictions(
    collection: SampleCollection,
    params: Dict[str, Any],
) -> SampleCollection:
    """Evaluate every configured model.

    Args:
        collection: Samples with predictions
        params: Evaluation parameters
            - models: Prediction field names
            - gt_field: Reference field name (default 'gt_depth')

    Returns:
        Collection with metrics on every prediction annotation
    """
    gt_field = params.get("gt_field", "gt_depth")
    for model_name in params["models"]:
        evaluate_depth(collection, model_name, gt_field)
    return collection


def aggregate_metrics(
    collection: SampleCollection,
    params: Dict[str, Any],
) -> Dict[str, Dict[str, float]]:
    """Mean of each metric across all samples, per model.

    Args:
        collection: Evaluated samples
        params: Evaluation parameters (uses 'models')

    Returns:
        Mapping of model name to {'rmse', 'psnr', 'ssim'} means
    """
    aggregates = {}
    for model_name in params["models"]:
        records = [sample[model_name].metrics for sample in collection]
        aggregates[model_name] = mean_metrics(records)

    logger.info(f"Aggregated metrics for {len(aggregates)} models over {len(collection)} samples")
    return aggregates


def report_metrics(aggregates: Dict[str, Dict[str, float]]) -> str:
    """Print the per-model report and return it.

    Args:
        aggregates: Output of aggregate_metrics

    Returns:
        Report text
    """
    report = format_metrics_report(aggregates)
    print(report)
    logger.info(f"Depth evaluation report:\n{report}")
    return report


def _redact(config: Any) -> Any:
    if isinstance(config, dict):
        return {
            key: "***" if key in SENSITIVE_KEYS else _redact(value)
            for key, value in config.items()
        }
    return config


def log_evaluation_to_mlflow(
    aggregates: Dict[str, Dict[str, float]],
    report: str,
    params: Dict[str, Any],
) -> None:
    """Log the aggregated metrics and report to MLFlow.

    Tracking never fails the pipeline: when MLFlow is missing or the run
    cannot be started, a warning is logged and nothing is recorded.

    Args:
        aggregates: Output of aggregate_metrics
        report: Output of report_metrics
        params: Tracking parameters
            - enabled: Skip tracking when false (default True)
            - experiment_name: MLFlow experiment (default 'depth_eval')
            - run_name: Optional run name
            - model_configs: Optional model parameters to log
    """
    if not params.get("enabled", True):
        logger.info("MLFlow tracking disabled")
        return
    if not is_mlflow_available():
        logger.warning("MLFlow is not installed, skipping tracking")
        return

    with mlflow_run(
        experiment_name=params.get("experiment_name", "depth_eval"),
        run_name=params.get("run_name"),
        tags={"pipeline": "depth_evaluation"},
    ) as run:
        if run is None:
            return
        log_depth_evaluation(aggregates, _redact(params.get("model_configs")))
        log_dict_as_artifact(aggregates, "depth_metrics.json")
        log_text_artifact(report, "depth_metrics_report.txt")


def export_comparisons(
    collection: SampleCollection,
    params: Dict[str, Any],
) -> List[str]:
    """Write comparison panels (image | reference | models) per sample.

    Args:
        collection: Evaluated samples
        params: Evaluation parameters
            - models: Prediction field names
            - gt_field: Reference field name
            - export.output_dir: Destination directory
            - export.colormap: Heatmap colormap (default 'inferno')
            - export.enabled: Skip export when false (default True)

    Returns:
        Paths of written panels
    """
    export = params.get("export", {})
    if not export.get("enabled", True):
        return []

    fields: Sequence[str] = [params.get("gt_field", "gt_depth"), *params["models"]]
    return export_collection_panels(
        collection,
        fields,
        output_dir=export.get("output_dir", "data/08_reporting/depth_panels"),
        colormap=export.get("colormap", "inferno"),
    )
