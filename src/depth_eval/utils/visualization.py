"""Visualization utilities for depth evaluation.

This module provides functions for:
- Colorizing 8-bit depth heatmaps
- Labelling panels with field names and metrics
- Building side-by-side comparison strips (image | reference | models...)
- Exporting comparison images for inspection in an external viewer

All functions work with BGR images (OpenCV format).
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import cv2
import numpy as np

from depth_eval.samples import Sample, SampleCollection

logger = logging.getLogger(__name__)

# Name -> OpenCV colormap
COLORMAPS = {
    "inferno": cv2.COLORMAP_INFERNO,
    "magma": cv2.COLORMAP_MAGMA,
    "viridis": cv2.COLORMAP_VIRIDIS,
    "jet": cv2.COLORMAP_JET,
    "gray": None,
}


def colorize_heatmap(heatmap: np.ndarray, colormap: str = "inferno") -> np.ndarray:
    """Convert an 8-bit heatmap to a BGR image.

    Args:
        heatmap: Heatmap [H, W] uint8.
        colormap: Colormap name (see COLORMAPS).

    Returns:
        BGR image [H, W, 3].
    """
    if colormap not in COLORMAPS:
        raise ValueError(f"Unknown colormap: {colormap}. Available: {list(COLORMAPS)}")

    heatmap = np.asarray(heatmap, dtype=np.uint8)
    cmap = COLORMAPS[colormap]
    if cmap is None:
        return cv2.cvtColor(heatmap, cv2.COLOR_GRAY2BGR)
    return cv2.applyColorMap(heatmap, cmap)


def draw_label(
    image: np.ndarray,
    text: str,
    font_scale: float = 0.5,
    thickness: int = 1,
    color=(255, 255, 255),
) -> np.ndarray:
    """Draw a label on a dark strip at the top-left of an image (in-place)."""
    (text_w, text_h), baseline = cv2.getTextSize(
        text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
    )
    cv2.rectangle(image, (0, 0), (text_w + 8, text_h + baseline + 8), (0, 0, 0), -1)
    cv2.putText(
        image,
        text,
        (4, text_h + 4),
        cv2.FONT_HERSHEY_SIMPLEX,
        font_scale,
        color,
        thickness,
        cv2.LINE_AA,
    )
    return image


def _panel_label(name: str, metrics: Dict[str, float]) -> str:
    if not metrics:
        return name
    parts = [f"{key}={value:.2f}" for key, value in metrics.items()]
    return f"{name} " + " ".join(parts)


def make_comparison_panel(
    sample: Sample,
    fields: Sequence[str],
    image: Optional[np.ndarray] = None,
    colormap: str = "inferno",
    show_labels: bool = True,
) -> np.ndarray:
    """Build a horizontal strip: image followed by each heatmap field.

    Args:
        sample: Sample to render.
        fields: Annotation names to show, in order.
        image: Optional BGR image; read from sample.filepath if None.
        colormap: Colormap for the heatmaps.
        show_labels: Draw field names and metrics on each panel.

    Returns:
        BGR image [H, W * (1 + len(fields)), 3].
    """
    if image is None:
        image = cv2.imread(sample.filepath)
        if image is None:
            raise FileNotFoundError(f"Failed to read image: {sample.filepath}")

    height, width = image.shape[:2]
    panels = [image.copy()]
    if show_labels:
        draw_label(panels[0], sample.id)

    for name in fields:
        annotation = sample[name]
        panel = colorize_heatmap(annotation.map, colormap)
        if panel.shape[:2] != (height, width):
            panel = cv2.resize(panel, (width, height), interpolation=cv2.INTER_NEAREST)
        if show_labels:
            draw_label(panel, _panel_label(name, annotation.metrics))
        panels.append(panel)

    return np.hstack(panels)


def export_collection_panels(
    collection: SampleCollection,
    fields: Sequence[str],
    output_dir: Union[str, Path],
    colormap: str = "inferno",
) -> List[str]:
    """Write one comparison PNG per sample.

    Args:
        collection: Samples to render.
        fields: Annotation names to show.
        output_dir: Destination directory.
        colormap: Colormap for the heatmaps.

    Returns:
        Paths of written files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for sample in collection:
        panel = make_comparison_panel(sample, fields, colormap=colormap)
        path = output_dir / f"{sample.id}.png"
        cv2.imwrite(str(path), panel)
        written.append(str(path))

    logger.info(f"Exported {len(written)} comparison panels to {output_dir}")
    return written
