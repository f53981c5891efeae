"""Unit tests for pipeline registry."""

import pytest

# Check if kedro is available
try:
    from kedro.pipeline import Pipeline

    KEDRO_AVAILABLE = True
except ImportError:
    KEDRO_AVAILABLE = False

pytestmark = pytest.mark.skipif(not KEDRO_AVAILABLE, reason="kedro is not installed")


class TestPipelineRegistry:
    """Tests for pipeline registry."""

    def test_all_pipelines_are_pipeline_objects(self):
        """Test that all registered pipelines are Pipeline objects."""
        from depth_eval.pipeline_registry import register_pipelines

        pipelines = register_pipelines()

        for name, pipeline in pipelines.items():
            assert isinstance(pipeline, Pipeline), f"{name} is not a Pipeline"

    def test_required_pipelines_exist(self):
        """Test that all required pipelines are registered."""
        from depth_eval.pipeline_registry import register_pipelines

        pipelines = register_pipelines()

        required = [
            "data_processing",
            "depth_estimation",
            "evaluation",
            "depth_tutorial",
            "docs_publish",
            "docs_clean",
            "__default__",
        ]
        for name in required:
            assert name in pipelines, f"Missing required pipeline: {name}"

    def test_default_is_depth_tutorial(self):
        """Test that the default pipeline runs the depth evaluation stages."""
        from depth_eval.pipeline_registry import register_pipelines

        pipelines = register_pipelines()
        node_names = {node.name for node in pipelines["__default__"].nodes}

        assert {
            "prepare_samples",
            "apply_dpt",
            "apply_marigold",
            "evaluate_predictions",
            "aggregate_metrics",
            "report_metrics",
        } <= node_names
        assert "publish_docs" not in node_names
        assert "clean_deployment" not in node_names

    def test_tutorial_inputs_and_outputs(self):
        """Test that the combined pipeline is fed only by raw data and parameters."""
        from depth_eval.pipeline_registry import register_pipelines

        tutorial = register_pipelines()["depth_tutorial"]
        free_inputs = {name for name in tutorial.inputs() if not name.startswith("params:")}

        assert free_inputs == {"raw_samples"}
        assert {"samples_summary", "comparison_panels"} <= tutorial.outputs()

    def test_docs_pipelines(self):
        """Test docs pipeline node order and inputs."""
        from depth_eval.pipeline_registry import register_pipelines

        pipelines = register_pipelines()

        publish = [node.name for node in pipelines["docs_publish"].nodes]
        assert publish == ["build_docs", "publish_docs"]
        assert pipelines["docs_clean"].inputs() == {"params:docs_deployment.clean"}


class TestDepthEstimationPipeline:
    """Tests for the depth estimation pipeline factory."""

    def test_models_are_chained(self):
        """Test that each model feeds the next one."""
        from depth_eval.pipelines.depth_estimation import create_pipeline

        pipe = create_pipeline(models=["dpt", "midas", "marigold"])

        assert [node.name for node in pipe.nodes] == ["apply_dpt", "apply_midas", "apply_marigold"]
        assert pipe.outputs() == {"depth_predictions"}
        assert "samples" in pipe.inputs()
        assert "params:depth_estimation.models.midas" in pipe.inputs()

    def test_single_model(self):
        """Test a single model writes depth_predictions directly."""
        from depth_eval.pipelines.depth_estimation import create_pipeline

        pipe = create_pipeline(models=["dpt"])

        assert pipe.outputs() == {"depth_predictions"}

    def test_no_models(self):
        """Test that at least one model is required."""
        from depth_eval.pipelines.depth_estimation import create_pipeline

        with pytest.raises(ValueError):
            create_pipeline(models=[])


class TestParameters:
    """Tests for conf/base/parameters.yml."""

    @pytest.fixture
    def parameters(self):
        from pathlib import Path

        from kedro.config import OmegaConfigLoader

        conf_source = Path(__file__).parent.parent / "conf"
        loader = OmegaConfigLoader(
            conf_source=str(conf_source), base_env="base", default_run_env="base"
        )
        return loader["parameters"]

    def test_default_models_are_evaluated(self, parameters):
        """Test that the evaluated models match the models the pipeline applies."""
        from depth_eval.pipelines.depth_estimation import DEFAULT_MODELS

        assert list(parameters["evaluation"]["models"]) == list(DEFAULT_MODELS)
        for model_name in DEFAULT_MODELS:
            assert model_name in parameters["depth_estimation"]["models"]

    def test_model_names_match_keys(self, parameters):
        """Test that each model stores its annotation under its own key."""
        for key, model in parameters["depth_estimation"]["models"].items():
            assert model["name"] == key

    def test_prediction_endpoints_resolve_a_version(self, parameters):
        """Test that prediction-style endpoints either pin a version or are model-scoped."""
        for key, model in parameters["depth_estimation"]["models"].items():
            remote = model.get("remote") or {}
            if remote.get("response_format") != "prediction":
                continue
            assert remote.get("version") or "/v1/models/" in remote["api_url"], key

    def test_tracking_sees_model_configs(self, parameters):
        """Test that tracking params interpolate the model configs."""
        assert parameters["tracking"]["model_configs"] == parameters["depth_estimation"]["models"]
