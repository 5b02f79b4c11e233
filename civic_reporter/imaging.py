"""
Pixel heuristics over downsampled report photos.

These run on the server against the decoded data URL: screen-photo
detection (photos of a monitor are a common spam pattern), a handful of
colour/edge features with a category hint, and two hashes used for
duplicate detection.
"""
import base64
import binascii
import logging
import math
import zlib
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image

from civic_reporter import config

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])


@dataclass
class ImageAnalysis:
    content_hash: str
    average_hash: Optional[str] = None
    is_screen: bool = False
    features: Optional[Dict[str, Any]] = None


def _payload(data_url: str) -> str:
    if data_url.startswith('data:') and ',' in data_url:
        return data_url.split(',', 1)[1]
    return data_url


def decode_data_url(data_url: str) -> Optional[Image.Image]:
    """Decode a base64 data URL into an RGB image, or None if it is not one."""
    if not data_url or not isinstance(data_url, str):
        return None
    try:
        raw = base64.b64decode(_payload(data_url))
        img = Image.open(BytesIO(raw))
        img.load()
        return img.convert('RGB')
    except (binascii.Error, ValueError, OSError, Image.DecompressionBombError) as e:
        logger.warning(f"Could not decode report image: {e}")
        return None


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _downsample(img: Image.Image, max_side: int) -> np.ndarray:
    # Each side is clamped independently, like drawing onto a fixed canvas
    w = min(max_side, img.width)
    h = min(max_side, img.height)
    if (w, h) != img.size:
        img = img.resize((w, h), Image.Resampling.BILINEAR)
    return np.asarray(img, dtype=np.int32)


def detect_screen_photo(img: Image.Image) -> bool:
    """
    Flag photos that look like they were taken of a screen.

    Samples the central window of the downsampled image and looks at the
    luminance spread: screens give mid-range brightness with little texture.
    """
    pixels = _downsample(img, config.SCREEN_SAMPLE_MAX_SIDE)
    h, w = pixels.shape[:2]
    cx, cy = w // 2, h // 2
    half = config.SCREEN_SAMPLE_HALF_WINDOW
    stride = config.SCREEN_SAMPLE_STRIDE

    ys = np.arange(cy - half, cy + half, stride)
    xs = np.arange(cx - half, cx + half, stride)
    ys = ys[(ys >= 0) & (ys < h)]
    xs = xs[(xs >= 0) & (xs < w)]
    if ys.size == 0 or xs.size == 0:
        return False

    window = pixels[np.ix_(ys, xs)]
    lum = window @ LUMA_WEIGHTS
    mean = lum.mean()
    variance = (lum * lum).mean() - mean * mean
    return bool(config.SCREEN_MEAN_MIN < mean < config.SCREEN_MEAN_MAX
                and variance < config.SCREEN_VARIANCE_MAX)


def _category_hint(edge: float, avg_r: float, avg_g: float, avg_b: float, green_ratio: float) -> str:
    if edge > 40 and green_ratio < 0.35:
        return 'road_damage'
    if edge > 25 and avg_r < 120 and avg_g < 120 and avg_b < 120 and avg_r + avg_g + avg_b < 360:
        return 'streetlight'
    if edge < 20 and avg_g > avg_r and avg_g > avg_b:
        return 'dirty_places'
    if edge > 20 and green_ratio > 0.4:
        return 'garbage'
    if edge > 50 and green_ratio < 0.2:
        return 'potholes'
    return 'other'


def extract_features(img: Image.Image) -> Optional[Dict[str, Any]]:
    """Average colour, horizontal edge strength and a category hint."""
    pixels = _downsample(img, config.FEATURE_SAMPLE_MAX_SIDE)
    h, w = pixels.shape[:2]
    stride = config.FEATURE_SAMPLE_STRIDE

    ys = np.arange(1, h - 1, stride)
    xs = np.arange(1, w - 1, stride)
    if ys.size == 0 or xs.size == 0:
        return None

    sampled = pixels[np.ix_(ys, xs)]
    right = pixels[np.ix_(ys, xs + 1)]

    avg_r, avg_g, avg_b = (float(v) for v in sampled.reshape(-1, 3).mean(axis=0))
    edge = float(np.abs(sampled - right).sum(axis=2).mean())
    green_ratio = avg_g / (avg_r + avg_g + avg_b + 1e-6)

    return {
        'edge': _js_round(edge),
        'avgR': _js_round(avg_r),
        'avgG': _js_round(avg_g),
        'avgB': _js_round(avg_b),
        'greenRatio': round(green_ratio, 2),
        'category': _category_hint(edge, avg_r, avg_g, avg_b, green_ratio),
    }


def content_hash(data_url: str) -> str:
    """CRC-32 of the encoded image payload, as 8 hex characters."""
    return f"{zlib.crc32(_payload(data_url).encode('utf-8', 'surrogatepass')) & 0xffffffff:08x}"


def average_hash(img: Image.Image) -> str:
    size = config.AVERAGE_HASH_SIZE
    small = img.convert('L').resize((size, size), Image.Resampling.BILINEAR)
    values = np.asarray(small, dtype=np.float64).flatten()
    bits = values > values.mean()
    number = 0
    for bit in bits:
        number = (number << 1) | int(bit)
    return f"{number:0{size * size // 4}x}"


def hamming_distance(a: str, b: str) -> int:
    return bin(int(a, 16) ^ int(b, 16)).count('1')


def analyze_image(data_url: str) -> ImageAnalysis:
    """Run every heuristic that applies. Undecodable images only get a content hash."""
    analysis = ImageAnalysis(content_hash=content_hash(data_url))
    img = decode_data_url(data_url)
    if img is None:
        return analysis

    analysis.average_hash = average_hash(img)
    analysis.is_screen = detect_screen_photo(img)
    analysis.features = extract_features(img)
    return analysis
