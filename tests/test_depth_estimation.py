"""Unit tests for the depth estimation pipeline nodes."""

import numpy as np
import pytest
import torch


class FakePredictor:
    """Returns a fixed-resolution gradient, optionally reversed."""

    def __init__(self, size=(24, 32), reverse=False):
        self.size = size
        self.reverse = reverse
        self.calls = 0

    def __call__(self, image):
        self.calls += 1
        height, width = self.size
        depth = np.tile(np.linspace(1.0, 10.0, width, dtype=np.float32), (height, 1))
        return depth[:, ::-1].copy() if self.reverse else depth


class TestPostprocessDepth:
    """Tests for postprocess_depth."""

    def test_resizes_to_target(self):
        """Test resampling to the image resolution."""
        from depth_eval.pipelines.depth_estimation.nodes import postprocess_depth

        depth = np.random.rand(384, 384).astype(np.float32)
        result = postprocess_depth(depth, (480, 640))

        assert result.shape == (480, 640)
        assert result.dtype == np.uint8

    def test_keeps_matching_size(self):
        """Test that matching sizes are only normalized."""
        from depth_eval.pipelines.depth_estimation.nodes import postprocess_depth

        depth = np.array([[0.0, 1.0], [2.0, 4.0]], dtype=np.float32)
        result = postprocess_depth(depth, (2, 2))

        assert result.tolist() == [[0, 63], [127, 255]]

    def test_inverse_depth_is_flipped(self):
        """Test that inverse depth is flipped so 0 is nearest."""
        from depth_eval.pipelines.depth_estimation.nodes import postprocess_depth

        disparity = np.array([[4.0, 2.0], [1.0, 0.0]], dtype=np.float32)
        result = postprocess_depth(disparity, (2, 2), inverse_depth=True)

        # Largest disparity is the nearest point
        assert result[0, 0] == 0
        assert result[1, 1] == 255

    def test_squeezes_batch_dims(self):
        """Test that [1, 1, H, W] predictions are accepted."""
        from depth_eval.pipelines.depth_estimation.nodes import postprocess_depth

        result = postprocess_depth(np.ones((1, 1, 8, 8)), (16, 16))

        assert result.shape == (16, 16)

    def test_rejects_color_output(self):
        """Test that 3-channel predictions are rejected."""
        from depth_eval.pipelines.depth_estimation.nodes import postprocess_depth

        with pytest.raises(ValueError):
            postprocess_depth(np.ones((8, 8, 3)), (8, 8))


class TestDepthModelConfig:
    """Tests for DepthModelConfig."""

    def test_defaults(self):
        """Test default configuration."""
        from depth_eval.pipelines.depth_estimation.nodes import DepthModelConfig

        config = DepthModelConfig.from_params({"name": "dpt"})

        assert config.name == "dpt"
        assert config.backend == "hf"
        assert config.model_id == "Intel/dpt-large"
        assert config.inverse_depth is True

    def test_name_required(self):
        """Test that a model without a name is rejected."""
        from depth_eval.pipelines.depth_estimation.nodes import DepthModelConfig

        with pytest.raises(ValueError, match="name"):
            DepthModelConfig.from_params({"backend": "hf", "model_id": "Intel/dpt-large"})

    def test_resolve_device(self):
        """Test explicit and automatic device selection."""
        from depth_eval.pipelines.depth_estimation.nodes import resolve_device

        assert resolve_device("cpu") == "cpu"
        assert resolve_device("auto") in ("cpu", "cuda:0")


class TestDepthEstimatorFactory:
    """Tests for DepthEstimatorFactory."""

    def test_unknown_backend(self):
        """Test that unknown backends raise ValueError."""
        from depth_eval.pipelines.depth_estimation.nodes import (
            DepthEstimatorFactory,
            DepthModelConfig,
        )

        with pytest.raises(ValueError, match="Unknown backend"):
            DepthEstimatorFactory.create(DepthModelConfig(backend="stereo"))

    def test_remote_backend(self):
        """Test that the remote backend wraps a RemoteDepthClient."""
        from depth_eval.pipelines.depth_estimation.nodes import load_depth_model

        predictor = load_depth_model(
            {
                "name": "marigold",
                "backend": "remote",
                "remote": {"api_url": "https://example.com/predict", "api_token": "t"},
            }
        )

        assert predictor.config.name == "marigold"
        assert "remote" in repr(predictor)

    def test_remote_backend_requires_url(self):
        """Test that a remote model without api_url is rejected."""
        from depth_eval.pipelines.depth_estimation.nodes import load_depth_model

        with pytest.raises(ValueError):
            load_depth_model({"name": "marigold", "backend": "remote", "remote": {}})


class TestDepthPredictor:
    """Tests for DepthPredictor output conversion."""

    def test_tensor_output_converted(self):
        """Test that tensor predictions become squeezed float arrays."""
        from depth_eval.pipelines.depth_estimation.nodes import DepthModelConfig, DepthPredictor

        predictor = DepthPredictor(DepthModelConfig(), lambda image: torch.ones(1, 12, 16))
        depth = predictor(np.zeros((12, 16, 3), dtype=np.uint8))

        assert isinstance(depth, np.ndarray)
        assert depth.shape == (12, 16)
        assert depth.dtype == np.float32


class TestApplyDepthModel:
    """Tests for apply_depth_model."""

    def test_predictions_match_image_size(self, sample_collection):
        """Test that every stored prediction has its image's width and height."""
        from depth_eval.pipelines.depth_estimation.nodes import apply_depth_model

        predictor = FakePredictor(size=(24, 32))
        result = apply_depth_model(sample_collection, {"name": "dpt"}, predictor=predictor)

        assert predictor.calls == len(sample_collection)
        for sample in result:
            assert sample["dpt"].shape == sample.image_size
            assert sample["dpt"].map.dtype == np.uint8
        assert result.has_field("dpt")

    def test_two_models_are_independent(self, sample_collection):
        """Test that two models produce separate annotations without cross-contamination."""
        from depth_eval.pipelines.depth_estimation.nodes import apply_depth_model

        references = {s.id: s["gt_depth"].map.copy() for s in sample_collection}

        apply_depth_model(
            sample_collection,
            {"name": "dpt", "inverse_depth": False},
            predictor=FakePredictor(),
        )
        dpt_maps = {s.id: s["dpt"].map.copy() for s in sample_collection}

        apply_depth_model(
            sample_collection,
            {"name": "marigold", "inverse_depth": False},
            predictor=FakePredictor(reverse=True),
        )

        for sample in sample_collection:
            assert set(sample.annotations) == {"gt_depth", "dpt", "marigold"}
            assert np.array_equal(sample["dpt"].map, dpt_maps[sample.id])
            assert np.array_equal(sample["gt_depth"].map, references[sample.id])
            assert not np.array_equal(sample["dpt"].map, sample["marigold"].map)

    def test_predictor_error_aborts(self, sample_collection):
        """Test that a failing prediction stops the run."""
        from depth_eval.pipelines.depth_estimation.nodes import apply_depth_model

        def failing(image):
            raise RuntimeError("service unavailable")

        with pytest.raises(RuntimeError, match="service unavailable"):
            apply_depth_model(sample_collection, {"name": "remote"}, predictor=failing)

    def test_missing_image(self, sample_collection):
        """Test that an unreadable image raises FileNotFoundError."""
        from depth_eval.pipelines.depth_estimation.nodes import apply_depth_model

        sample_collection.first().filepath = "/nonexistent/image.png"

        with pytest.raises(FileNotFoundError):
            apply_depth_model(sample_collection, {"name": "dpt"}, predictor=FakePredictor())
