"""Depth Eval Models.

This package contains model clients for:
- Remote depth estimation over hosted inference APIs
"""

from depth_eval.models.remote import RemoteDepthClient, decode_depth_image, encode_image

__all__ = [
    "RemoteDepthClient",
    "decode_depth_image",
    "encode_image",
]
