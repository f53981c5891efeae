"""Depth Estimation Pipeline Nodes.

This module applies pre-trained monocular depth models to every sample of a
collection and stores each prediction as a heatmap annotation.

Supported Backends:
    - hf: Hugging Face transformers depth-estimation pipeline (DPT, Depth Anything, GLPN)
    - midas: MiDaS via torch.hub
    - zoedepth: ZoeDepth via torch.hub
    - remote: Hosted inference API over HTTP

Per-sample flow:

    Image [H, W, 3] → Model → Depth [H', W'] → Resize to [H, W] → 0-255 → Annotation
                                                   ↓
                                        flip if inverse depth

Convention: stored maps use 0 = nearest, 255 = farthest. Models that output
inverse (disparity-like) depth are flipped to match.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import cv2
import numpy as np
import torch
from PIL import Image
from tqdm import tqdm

from depth_eval.models.remote import RemoteDepthClient
from depth_eval.samples import HeatmapAnnotation, SampleCollection, normalize_to_uint8

logger = logging.getLogger(__name__)


@dataclass
class DepthModelConfig:
    """Configuration for one depth model.

    Attributes:
        name: Annotation field the predictions are stored under
        backend: Inference backend (hf, midas, zoedepth, remote)
        model_id: Model identifier (hub id or model type)
        device: Device to run local inference on ('auto' picks CUDA if available)
        inverse_depth: Whether the model outputs inverse depth (larger = nearer)
        remote: Settings for the remote backend (api_url, api_token_env, ...)
    """

    name: str = "dpt"
    backend: str = "hf"
    model_id: str = "Intel/dpt-large"
    device: str = "auto"
    inverse_depth: bool = True
    remote: Optional[Dict[str, Any]] = None

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "DepthModelConfig":
        # Annotation field, unique per model
        if not params.get("name"):
            raise ValueError("Depth model requires 'name'")
        return cls(
            name=params["name"],
            backend=params.get("backend", "hf"),
            model_id=params.get("model_id", "Intel/dpt-large"),
            device=params.get("device", "auto"),
            inverse_depth=params.get("inverse_depth", True),
            remote=params.get("remote"),
        )


def resolve_device(device: str) -> str:
    """Resolve 'auto' to a concrete torch device string."""
    if device == "auto":
        return "cuda:0" if torch.cuda.is_available() else "cpu"
    return device


class DepthPredictor:
    """Callable wrapper around a loaded depth model.

    Takes an RGB image [H, W, 3] uint8 and returns a float depth map at the
    model's native resolution.
    """

    def __init__(self, config: DepthModelConfig, predict_fn: Callable[[np.ndarray], Any]):
        self.config = config
        self._predict_fn = predict_fn

    def __call__(self, image: np.ndarray) -> np.ndarray:
        depth = self._predict_fn(image)
        if isinstance(depth, torch.Tensor):
            depth = depth.detach().squeeze().cpu().numpy()
        return np.squeeze(np.asarray(depth, dtype=np.float32))

    def __repr__(self) -> str:
        return f"DepthPredictor(name={self.config.name!r}, backend={self.config.backend!r})"


class DepthEstimatorFactory:
    """Factory for creating depth predictors.

    Supported Backends:
        - hf: transformers pipeline, e.g. Intel/dpt-large, LiheYoung/depth-anything-small-hf
        - midas: DPT_Large, DPT_Hybrid, MiDaS_small
        - zoedepth: ZoeD_N, ZoeD_K, ZoeD_NK
        - remote: hosted HTTP inference
    """

    SUPPORTED_BACKENDS = ["hf", "midas", "zoedepth", "remote"]

    @staticmethod
    def create(config: DepthModelConfig) -> DepthPredictor:
        """Create a depth predictor.

        Args:
            config: Depth model configuration

        Returns:
            Initialized depth predictor
        """
        backend = config.backend.lower()

        if backend == "hf":
            return DepthEstimatorFactory._create_hf(config)
        elif backend == "midas":
            return DepthEstimatorFactory._create_midas(config)
        elif backend == "zoedepth":
            return DepthEstimatorFactory._create_zoedepth(config)
        elif backend == "remote":
            return DepthEstimatorFactory._create_remote(config)
        else:
            raise ValueError(
                f"Unknown backend: {backend}. Supported: {DepthEstimatorFactory.SUPPORTED_BACKENDS}"
            )

    @staticmethod
    def _create_hf(config: DepthModelConfig) -> DepthPredictor:
        """Create a transformers depth-estimation pipeline.

        DPT (Dense Prediction Transformer):
        - ViT backbone with a convolutional decoder
        - Outputs relative inverse depth at 384x384

        The pipeline's `predicted_depth` tensor is used so resampling to the
        image resolution happens in postprocess_depth.
        """
        from transformers import pipeline

        device = resolve_device(config.device)
        depth_pipe = pipeline(
            "depth-estimation",
            model=config.model_id,
            device=0 if "cuda" in device else -1,
        )

        def predict(image: np.ndarray):
            output = depth_pipe(Image.fromarray(image))
            return output["predicted_depth"]

        logger.info(f"Loaded transformers depth model: {config.model_id}")
        return DepthPredictor(config, predict)

    @staticmethod
    def _create_midas(config: DepthModelConfig) -> DepthPredictor:
        """Create MiDaS model.

        MiDaS (Monocular Depth in the Wild):
        - Produces relative inverse depth
        - Variants: DPT_Large, DPT_Hybrid, MiDaS_small
        """
        device = resolve_device(config.device)
        model_type = config.model_id

        model = torch.hub.load("intel-isl/MiDaS", model_type, trust_repo=True)
        model.to(device)
        model.eval()

        transforms = torch.hub.load("intel-isl/MiDaS", "transforms", trust_repo=True)
        if model_type in ("DPT_Large", "DPT_Hybrid"):
            transform = transforms.dpt_transform
        else:
            transform = transforms.small_transform

        def predict(image: np.ndarray):
            batch = transform(image).to(device)
            with torch.no_grad():
                return model(batch)

        logger.info(f"Loaded MiDaS model: {model_type}")
        return DepthPredictor(config, predict)

    @staticmethod
    def _create_zoedepth(config: DepthModelConfig) -> DepthPredictor:
        """Create ZoeDepth model.

        ZoeDepth outputs metric depth (larger = farther) at the input
        resolution, so inverse_depth should be false.
        """
        device = resolve_device(config.device)

        model = torch.hub.load(
            "isl-org/ZoeDepth",
            config.model_id,
            pretrained=True,
            trust_repo=True,
        )
        model.to(device)
        model.eval()

        def predict(image: np.ndarray):
            return model.infer_pil(Image.fromarray(image))

        logger.info(f"Loaded ZoeDepth model: {config.model_id}")
        return DepthPredictor(config, predict)

    @staticmethod
    def _create_remote(config: DepthModelConfig) -> DepthPredictor:
        client = RemoteDepthClient.from_params(config.remote or {})
        logger.info(f"Using remote depth model '{config.name}' at {client.api_url}")
        return DepthPredictor(config, client.predict)


def load_depth_model(params: Dict[str, Any]) -> DepthPredictor:
    """Load a depth estimation model.

    Args:
        params: Dictionary with depth model configuration

    Returns:
        Loaded depth predictor

    Example:
        params = {
            "name": "dpt",
            "backend": "hf",
            "model_id": "Intel/dpt-large",
            "inverse_depth": True,
        }
        predictor = load_depth_model(params)
    """
    config = DepthModelConfig.from_params(params)
    predictor = DepthEstimatorFactory.create(config)
    logger.info(f"Depth model loaded: {config.name} ({config.backend}: {config.model_id})")
    return predictor


def postprocess_depth(
    depth: np.ndarray,
    target_size: Tuple[int, int],
    inverse_depth: bool = False,
) -> np.ndarray:
    """Bring a raw prediction to the stored heatmap convention.

    Args:
        depth: Raw depth prediction [H', W']
        target_size: Image size (height, width)
        inverse_depth: Flip so that 0 = nearest

    Returns:
        uint8 map [H, W] with 0 = nearest, 255 = farthest
    """
    depth = np.squeeze(np.asarray(depth, dtype=np.float32))
    if depth.ndim != 2:
        raise ValueError(f"Expected a 2D depth map, got shape {depth.shape}")

    height, width = target_size
    if depth.shape != (height, width):
        depth = cv2.resize(depth, (width, height), interpolation=cv2.INTER_CUBIC)
        # Bicubic interpolation overshoots around edges
        depth = np.clip(depth, 0, None)

    heatmap = normalize_to_uint8(depth)
    if inverse_depth:
        heatmap = 255 - heatmap
    return heatmap


def read_image_rgb(filepath: str) -> np.ndarray:
    """Read an image file as RGB."""
    image = cv2.imread(filepath)
    if image is None:
        raise FileNotFoundError(f"Failed to read image: {filepath}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def apply_depth_model(
    collection: SampleCollection,
    params: Dict[str, Any],
    predictor: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> SampleCollection:
    """Run a depth model over every sample and store its predictions.

    Samples are processed one at a time; any error (including a failed
    remote call) stops the run.

    Args:
        collection: Samples to annotate
        params: Depth model configuration (see DepthModelConfig)
        predictor: Optional preloaded predictor; loaded from params if None

    Returns:
        The same collection with a new annotation named params['name']
    """
    config = DepthModelConfig.from_params(params)
    if predictor is None:
        predictor = load_depth_model(params)

    start_time = time.time()

    for sample in tqdm(collection, desc=f"Applying {config.name}", total=len(collection)):
        image = read_image_rgb(sample.filepath)
        height, width = image.shape[:2]

        depth = predictor(image)
        heatmap = postprocess_depth(depth, (height, width), inverse_depth=config.inverse_depth)

        sample.set_annotation(config.name, HeatmapAnnotation(map=heatmap))
        sample.metadata.setdefault("height", height)
        sample.metadata.setdefault("width", width)

    collection.register_fields([config.name])

    elapsed = time.time() - start_time
    logger.info(f"Applied '{config.name}' to {len(collection)} samples in {elapsed:.1f}s")
    return collection
