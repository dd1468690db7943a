"""
Image -> tensor preprocessing helpers for vision model inputs.

Resize planning (cover/contain/stretch/letterbox), color model conversion,
normalization presets, HWC/CHW layouts, int8/uint8/int16 quantization, box
geometry with NMS, and the letterbox record that maps detections back to the
source image. Everything works on NumPy arrays; OpenCV is only needed for
resampling.
"""

from .batch import BatchItem, BatchItemError, BatchResult, batch_get_pixel_data
from .boxes import box_iou_matrix, clip_boxes, convert_format, iou, scale_boxes
from .cache import PixelDataCache
from .color import channel_count, convert_color
from .config import load_preprocess_profile
from .errors import DimensionMismatch, InvalidInput, OutOfBounds, UnsupportedFormat, VisionKitError
from .geometry import ResizePlan, apply_plan, plan_resize
from .layout import concatenate_to_batch, convert_layout
from .letterbox import LetterboxConfig, LetterboxRecord, letterbox, reverse_letterbox
from .nms import NMSConfig, batched_nms, nms, non_max_suppression
from .normalize import NormalizationSpec, denormalize, normalize
from .quantize import QuantizationParams, calculate_params, dequantize, quantize
from .runtime import ArrayPixelSource, PixelDataOptions, PixelDataResult, ResizeOptions, Roi, get_pixel_data
from .types import Box, Detection, PixelBuffer

__all__ = [
    "ArrayPixelSource",
    "BatchItem",
    "BatchItemError",
    "BatchResult",
    "Box",
    "Detection",
    "DimensionMismatch",
    "InvalidInput",
    "LetterboxConfig",
    "LetterboxRecord",
    "NMSConfig",
    "NormalizationSpec",
    "OutOfBounds",
    "PixelBuffer",
    "PixelDataCache",
    "PixelDataOptions",
    "PixelDataResult",
    "QuantizationParams",
    "ResizeOptions",
    "ResizePlan",
    "Roi",
    "UnsupportedFormat",
    "VisionKitError",
    "apply_plan",
    "batch_get_pixel_data",
    "batched_nms",
    "box_iou_matrix",
    "calculate_params",
    "channel_count",
    "clip_boxes",
    "concatenate_to_batch",
    "convert_color",
    "convert_format",
    "convert_layout",
    "denormalize",
    "dequantize",
    "get_pixel_data",
    "iou",
    "letterbox",
    "load_preprocess_profile",
    "nms",
    "non_max_suppression",
    "normalize",
    "plan_resize",
    "quantize",
    "reverse_letterbox",
    "scale_boxes",
]
