"""MLFlow Utilities for depth evaluation.

This module provides utilities for experiment tracking with MLFlow:
a run context manager and helpers that log parameters, metrics and
artifacts without failing the pipeline when tracking is unavailable.
"""

import logging
from contextlib import ExitStack, contextmanager
from typing import Any, Dict, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

# Try to import mlflow, disable tracking if not available
try:
    import mlflow

    MLFLOW_AVAILABLE = True
except ImportError:
    MLFLOW_AVAILABLE = False
    mlflow = None
    logger.warning("MLFlow not installed. Logging will be disabled.")


def is_mlflow_available() -> bool:
    """Whether the mlflow package could be imported."""
    return MLFLOW_AVAILABLE


def get_or_create_experiment(experiment_name: str) -> Optional[str]:
    """Get or create an MLFlow experiment.

    Args:
        experiment_name: Name of the experiment.

    Returns:
        Experiment ID or None if MLFlow is not available.
    """
    if not MLFLOW_AVAILABLE:
        return None

    experiment = mlflow.get_experiment_by_name(experiment_name)
    if experiment is None:
        experiment_id = mlflow.create_experiment(experiment_name)
        logger.info(f"Created new experiment: {experiment_name} (ID: {experiment_id})")
    else:
        experiment_id = experiment.experiment_id
        logger.info(f"Using existing experiment: {experiment_name} (ID: {experiment_id})")

    return experiment_id


@contextmanager
def mlflow_run(
    experiment_name: str = "depth_eval",
    run_name: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
):
    """Context manager for MLFlow runs.

    Tracking is best-effort: if MLFlow is missing or the tracking server
    cannot be reached while starting the run, a warning is logged and the
    context yields None instead of raising.

    Args:
        experiment_name: Name of the experiment.
        run_name: Optional name for this run.
        tags: Optional tags to add to the run.

    Yields:
        Active MLFlow run, or None when tracking is unavailable.

    Example:
        >>> with mlflow_run("depth_eval", run_name="sunrgbd_20") as run:
        ...     if run is not None:
        ...         log_metrics_safe({"dpt_rmse": 23.1})
    """
    if not MLFLOW_AVAILABLE:
        logger.warning("MLFlow not available, skipping run context")
        yield None
        return

    with ExitStack() as stack:
        try:
            get_or_create_experiment(experiment_name)
            mlflow.set_experiment(experiment_name)
            run = stack.enter_context(mlflow.start_run(run_name=run_name))
            if tags:
                mlflow.set_tags(tags)
        except Exception as e:
            logger.warning(f"Could not start MLFlow run in '{experiment_name}': {e}")
            yield None
            return

        logger.info(f"Started MLFlow run: {run.info.run_id}")
        yield run
        logger.info(f"Finished MLFlow run: {run.info.run_id}")


def log_params_safe(params: Dict[str, Any], prefix: str = "") -> None:
    """Safely log parameters to MLFlow.

    Handles nested dictionaries, non-string values, and MLFlow limitations.

    Args:
        params: Dictionary of parameters to log.
        prefix: Optional prefix for parameter names.
    """
    if not MLFLOW_AVAILABLE:
        return

    flat_params = _flatten_dict(params, prefix)

    for key, value in flat_params.items():
        try:
            # MLFlow has a 500 character limit for param values
            str_value = str(value)
            if len(str_value) > 500:
                str_value = str_value[:497] + "..."
            mlflow.log_param(key, str_value)
        except Exception as e:
            logger.warning(f"Failed to log param {key}: {e}")


def log_metrics_safe(
    metrics: Dict[str, Union[int, float]],
    step: Optional[int] = None,
    prefix: str = "",
) -> None:
    """Safely log metrics to MLFlow.

    Non-numeric, NaN and infinite values are skipped.

    Args:
        metrics: Dictionary of metrics to log.
        step: Optional step number for the metrics.
        prefix: Optional prefix for metric names.
    """
    if not MLFLOW_AVAILABLE:
        return

    for key, value in metrics.items():
        if isinstance(value, (int, float)) and not np.isnan(value) and not np.isinf(value):
            metric_name = f"{prefix}{key}" if prefix else key
            try:
                mlflow.log_metric(metric_name, value, step=step)
            except Exception as e:
                logger.warning(f"Failed to log metric {metric_name}: {e}")


def log_dict_as_artifact(
    data: Dict[str, Any],
    filename: str,
    artifact_path: Optional[str] = None,
) -> None:
    """Log a dictionary (e.g. aggregated metrics) as a JSON artifact.

    Args:
        data: JSON-serializable dictionary.
        filename: Artifact file name, e.g. 'depth_metrics.json'.
        artifact_path: Optional subdirectory in artifacts.
    """
    if not MLFLOW_AVAILABLE:
        return

    artifact_file = f"{artifact_path}/{filename}" if artifact_path else filename
    try:
        mlflow.log_dict(data, artifact_file)
        logger.info(f"Logged artifact: {artifact_file}")
    except Exception as e:
        logger.warning(f"Failed to log artifact {artifact_file}: {e}")


def log_text_artifact(text: str, filename: str, artifact_path: Optional[str] = None) -> None:
    """Log a text blob (e.g. the metrics report) as an artifact."""
    if not MLFLOW_AVAILABLE:
        return

    try:
        mlflow.log_text(text, f"{artifact_path}/{filename}" if artifact_path else filename)
        logger.info(f"Logged text artifact: {filename}")
    except Exception as e:
        logger.warning(f"Failed to log text artifact {filename}: {e}")


def log_depth_evaluation(
    aggregates: Dict[str, Dict[str, float]],
    model_configs: Optional[Dict[str, Any]] = None,
) -> None:
    """Log per-model mean depth metrics and model configuration.

    Metrics are logged as `<model>_<metric>`, e.g. `dpt_rmse`.

    Args:
        aggregates: Mapping of model name to mean metrics.
        model_configs: Optional model configuration parameters.
    """
    if model_configs:
        log_params_safe(model_configs, prefix="model_")

    for model_name, metrics in aggregates.items():
        log_metrics_safe(metrics, prefix=f"{model_name}_")


def _flatten_dict(d: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten a nested dictionary.

    Args:
        d: Dictionary to flatten.
        prefix: Prefix for keys.

    Returns:
        Flattened dictionary.
    """
    items = {}
    for key, value in d.items():
        new_key = f"{prefix}{key}" if prefix else key
        if isinstance(value, dict):
            items.update(_flatten_dict(value, f"{new_key}_"))
        else:
            items[new_key] = value
    return items
