"""Sample collection for depth evaluation.

A sample pairs an image file with named heatmap annotations: the reference
depth map and one predicted map per evaluated model. Each annotation carries
the similarity metrics computed against the reference.

Structure:

    SampleCollection
        └── Sample (filepath, metadata)
              ├── "gt_depth" → HeatmapAnnotation(map [H, W] uint8)
              ├── "dpt"      → HeatmapAnnotation(map, metrics={rmse, psnr, ssim})
              └── "marigold" → HeatmapAnnotation(map, metrics={...})

All maps are 8-bit, single channel, with the same spatial size as the image.
Convention: 0 = nearest, 255 = farthest.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import numpy as np


@dataclass
class HeatmapAnnotation:
    """Dense intensity map attached to a sample.

    Attributes:
        map: 2D uint8 array [H, W]
        metrics: Named scalar scores against a reference map
    """

    map: np.ndarray
    metrics: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if self.map.ndim != 2:
            raise ValueError(f"Heatmap must be 2D, got shape {self.map.shape}")

    @property
    def shape(self):
        return self.map.shape


@dataclass
class Sample:
    """An image with its heatmap annotations.

    Attributes:
        id: Sample identifier (source directory name)
        filepath: Path to the image file
        annotations: Mapping of field name to HeatmapAnnotation
        metadata: Image metadata (width, height)
    """

    id: str
    filepath: str
    annotations: Dict[str, HeatmapAnnotation] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def image_size(self) -> Optional[tuple]:
        """Image (height, width) if known."""
        if "height" in self.metadata and "width" in self.metadata:
            return (self.metadata["height"], self.metadata["width"])
        return None

    def __getitem__(self, name: str) -> HeatmapAnnotation:
        return self.annotations[name]

    def __contains__(self, name: str) -> bool:
        return name in self.annotations

    def set_annotation(self, name: str, annotation: HeatmapAnnotation) -> None:
        """Attach or replace a named annotation."""
        self.annotations[name] = annotation

    def get_value(self, path: str) -> Any:
        """Resolve a dotted field path, e.g. 'dpt' or 'dpt.rmse'."""
        name, _, metric = path.partition(".")
        annotation = self.annotations[name]
        if not metric:
            return annotation
        return annotation.metrics[metric]


class SampleCollection:
    """Ordered, in-memory collection of samples with a field schema.

    The schema lists every field visible across the collection: annotation
    names and dotted metric fields registered after evaluation.

    Example:
        >>> collection = SampleCollection("sunrgbd")
        >>> collection.add(Sample(id="0001", filepath="0001/image/0001.jpg"))
        >>> collection.register_fields(["gt_depth"])
        >>> collection.values("dpt.rmse")
    """

    def __init__(self, name: str = "depth_samples", samples: Optional[List[Sample]] = None):
        self.name = name
        self._samples: List[Sample] = []
        self._fields: List[str] = []
        for sample in samples or []:
            self.add(sample)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    def __getitem__(self, sample_id: str) -> Sample:
        for sample in self._samples:
            if sample.id == sample_id:
                return sample
        raise KeyError(f"No sample with id {sample_id!r}")

    def __repr__(self) -> str:
        return f"SampleCollection(name={self.name!r}, samples={len(self)}, fields={self._fields})"

    def add(self, sample: Sample) -> None:
        """Append a sample and register its annotation fields."""
        self._samples.append(sample)
        self.register_fields(sample.annotations.keys())

    def first(self) -> Sample:
        if not self._samples:
            raise ValueError("Collection is empty")
        return self._samples[0]

    def register_fields(self, names) -> None:
        """Make fields visible at the collection level."""
        for name in names:
            if name not in self._fields:
                self._fields.append(name)

    def field_names(self) -> List[str]:
        return list(self._fields)

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def values(self, path: str) -> List[Any]:
        """Collect a (possibly dotted) field across all samples."""
        return [sample.get_value(path) for sample in self._samples]


def normalize_to_uint8(depth: np.ndarray) -> np.ndarray:
    """Scale a depth map to the 0-255 range by its maximum.

    Args:
        depth: Depth map of any numeric dtype [H, W]

    Returns:
        uint8 map where 255 is the farthest value
    """
    depth = np.asarray(depth, dtype=np.float64)
    max_value = float(np.max(depth)) if depth.size else 0.0
    if max_value <= 0:
        return np.zeros(depth.shape, dtype=np.uint8)
    return np.clip(depth * 255.0 / max_value, 0, 255).astype(np.uint8)
