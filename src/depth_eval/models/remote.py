"""Remote depth estimation over HTTP inference APIs.

Two response styles are supported:

- binary: the request body is the raw image and the response body is the
  depth map encoded as an image (Hugging Face Inference API style).
- prediction: the request is JSON with a model version and the image as a
  data URI; the response JSON holds an `output` URL (or list of URLs) that
  points at the rendered depth map (Replicate style).

Usage:
    from depth_eval.models.remote import RemoteDepthClient

    client = RemoteDepthClient(
        api_url="https://api-inference.huggingface.co/models/Intel/dpt-large",
        api_token=os.environ["HF_TOKEN"],
    )
    depth = client.predict(image)  # [H', W'] float32
"""

import base64
import io
import logging
import os
import time
from typing import Any, Dict, Optional

import numpy as np
import requests
from PIL import Image

logger = logging.getLogger(__name__)

RESPONSE_FORMATS = ("binary", "prediction")
FAILED_STATUSES = ("failed", "canceled")
PENDING_STATUSES = ("starting", "processing")


def encode_image(image: np.ndarray, fmt: str = "PNG") -> bytes:
    """Encode an RGB (or grayscale) array as image bytes."""
    buffer = io.BytesIO()
    Image.fromarray(image).save(buffer, format=fmt)
    return buffer.getvalue()


def decode_depth_image(content: bytes) -> np.ndarray:
    """Decode an image blob into a single-channel float array.

    Color outputs are reduced to their first channel; grayscale renders
    carry the same value in every channel.
    """
    with Image.open(io.BytesIO(content)) as image:
        array = np.array(image)
    if array.ndim == 3:
        array = array[..., 0]
    return array.astype(np.float32)


class RemoteDepthClient:
    """Client for a hosted depth estimation endpoint.

    Each call blocks until the service answers; predictions still starting
    or processing are polled every poll_interval seconds. Errors are not retried:
    HTTP failures raise requests.HTTPError, failed predictions raise
    RuntimeError.
    """

    def __init__(
        self,
        api_url: str,
        api_token: Optional[str] = None,
        response_format: str = "binary",
        version: Optional[str] = None,
        output_index: int = 0,
        input_key: str = "image",
        timeout: float = 120.0,
        poll_interval: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            api_url: Inference endpoint URL.
            api_token: Bearer token sent in the Authorization header.
            response_format: 'binary' or 'prediction'.
            version: Model version (prediction format only).
            output_index: Which output URL to use when several are returned.
            input_key: Name of the image field in the prediction input.
            timeout: Request timeout in seconds.
            poll_interval: Seconds between status checks while a prediction
                is still starting or processing.
            session: Optional requests session.
        """
        if response_format not in RESPONSE_FORMATS:
            raise ValueError(
                f"Unknown response format: {response_format}. Supported: {RESPONSE_FORMATS}"
            )
        self.api_url = api_url
        self.api_token = api_token
        self.response_format = response_format
        self.version = version
        self.output_index = output_index
        self.input_key = input_key
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "RemoteDepthClient":
        """Build a client from a parameters dict.

        The token is read from `api_token`, or from the environment variable
        named by `api_token_env`.
        """
        token = params.get("api_token")
        token_env = params.get("api_token_env")
        if token is None and token_env:
            token = os.environ.get(token_env)
            if token is None:
                logger.warning(f"Environment variable {token_env} is not set")

        if not params.get("api_url"):
            raise ValueError("Remote depth model requires 'api_url'")

        return cls(
            api_url=params["api_url"],
            api_token=token,
            response_format=params.get("response_format", "binary"),
            version=params.get("version"),
            output_index=params.get("output_index", 0),
            input_key=params.get("input_key", "image"),
            timeout=params.get("timeout", 120.0),
            poll_interval=params.get("poll_interval", 2.0),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def predict(self, image: np.ndarray) -> np.ndarray:
        """Run remote depth estimation on one RGB image.

        Args:
            image: RGB image [H, W, 3] uint8

        Returns:
            Depth map [H', W'] float32 at the service's output resolution
        """
        payload = encode_image(image)
        if self.response_format == "binary":
            return self._predict_binary(payload)
        return self._predict_prediction(payload)

    __call__ = predict

    def _predict_binary(self, payload: bytes) -> np.ndarray:
        response = self.session.post(
            self.api_url,
            headers=self._headers(),
            data=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return decode_depth_image(response.content)

    def _predict_prediction(self, payload: bytes) -> np.ndarray:
        data_uri = "data:image/png;base64," + base64.b64encode(payload).decode("ascii")
        body: Dict[str, Any] = {"input": {self.input_key: data_uri}}
        if self.version:
            body["version"] = self.version

        headers = self._headers()
        headers["Prefer"] = "wait"

        response = self.session.post(
            self.api_url,
            headers=headers,
            json=body,
            timeout=self.timeout,
        )
        response.raise_for_status()
        result = self._wait_for_prediction(response.json())

        status = result.get("status")
        if status in FAILED_STATUSES:
            raise RuntimeError(f"Remote prediction {status}: {result.get('error')}")

        output_url = self._select_output(result.get("output"))
        logger.debug(f"Fetching remote depth output: {output_url}")

        output = self.session.get(output_url, timeout=self.timeout)
        output.raise_for_status()
        return decode_depth_image(output.content)

    def _wait_for_prediction(self, result: Dict[str, Any]) -> Dict[str, Any]:
        """Poll the prediction's status URL until it leaves the pending states.

        `Prefer: wait` only holds the request open for a limited time; slow
        (e.g. cold-started) predictions come back still pending.
        """
        while result.get("status") in PENDING_STATUSES:
            poll_url = (result.get("urls") or {}).get("get")
            if not poll_url:
                raise RuntimeError(
                    f"Remote prediction is {result.get('status')} but has no status URL"
                )
            logger.debug(f"Prediction {result.get('id')} is {result.get('status')}, polling")
            time.sleep(self.poll_interval)

            response = self.session.get(poll_url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        return result

    def _select_output(self, output: Any) -> str:
        if isinstance(output, str):
            return output
        if isinstance(output, list) and output:
            if self.output_index >= len(output):
                raise RuntimeError(
                    f"Output index {self.output_index} out of range ({len(output)} outputs)"
                )
            return output[self.output_index]
        if isinstance(output, dict) and output:
            return next(iter(output.values()))
        raise RuntimeError(f"Remote prediction returned no output: {output!r}")
