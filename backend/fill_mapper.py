"""
Fill Mapper - conversion between wire fills and canvas paints

Import has two paths:
- `to_paints` is synchronous and handles solid and gradient paints; image
  fills are skipped because they need bitmap resolution.
- `to_paints_async` additionally resolves image fills from a URL, inline
  base64 data or an existing image hash.

Export turns canvas paints back into wire dicts, omitting per-paint defaults
(visible, opacity 1, NORMAL blend) and embedding image bytes as base64.
"""

import base64
import binascii
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from canvas import RGB, RGBA, CanvasError, ColorStop, GradientPaint, ImagePaint, SolidPaint
from design_node import Fill
from image_cache import ImageCache, ImageFetcher
from node_types import GRADIENT_TYPES

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-z+.-]+;base64,", re.IGNORECASE)


def _clamp(value: Optional[float], default: float = 0.0) -> float:
    if value is None:
        return default
    return max(0.0, min(1.0, value))


def _round(value: float, precision: int = 6) -> float:
    return round(value, precision)


def _transform(value: Any) -> Optional[tuple]:
    if not value:
        return None
    return tuple(tuple(row) for row in value)


def _matrix(value: Any) -> Optional[List[List[float]]]:
    if value is None:
        return None
    return [list(row) for row in value]


def decode_image_data(data: str) -> bytes:
    """Decode inline base64 image data, with or without a data: URL prefix."""
    clean = _DATA_URL_PREFIX.sub("", data.strip())
    try:
        return base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 image data: {e}")


def to_paint(fill: Fill) -> Optional[Any]:
    """Synchronous conversion; returns None for image fills and malformed paints."""
    common = {
        "visible": fill.visible is not False,
        "opacity": _clamp(fill.opacity, 1.0),
        "blend_mode": fill.blendMode or "NORMAL",
    }

    if fill.type == "SOLID":
        if fill.color is None:
            logger.warning(f"⚠️ Solid fill missing color, skipping")
            return None
        color = fill.color
        logger.debug(f"🎨 Solid fill ({color.r}, {color.g}, {color.b})")
        return SolidPaint(color=RGB(_clamp(color.r), _clamp(color.g), _clamp(color.b)), **common)

    if fill.type in GRADIENT_TYPES:
        stops = tuple(
            ColorStop(
                position=stop.position,
                color=RGBA(
                    _clamp(stop.color.r),
                    _clamp(stop.color.g),
                    _clamp(stop.color.b),
                    stop.color.a if stop.color.a is not None else 1.0,
                ),
            )
            for stop in fill.gradientStops or []
        )
        return GradientPaint(
            type=fill.type,
            gradient_stops=stops,
            gradient_transform=_transform(fill.gradientTransform),
            **common,
        )

    if fill.type != "IMAGE":
        logger.warning(f"⚠️ Skipping unsupported paint type: {fill.type}")
    return None


def to_paints(fills: List[Fill]) -> List[Any]:
    paints = []
    for fill in fills or []:
        paint = to_paint(fill)
        if paint is not None:
            paints.append(paint)
    return paints


class FillMapper:
    """
    Paint conversion that can resolve bitmap images.

    Args:
        canvas: Host used to create and look up images
        cache: Engine-owned image cache (url images, export bytes)
        fetcher: Remote image fetcher
    """

    def __init__(self, canvas, cache: ImageCache, fetcher: ImageFetcher):
        self.canvas = canvas
        self.cache = cache
        self.fetcher = fetcher

    # ============ IMPORT ==============

    def to_paints(self, fills: List[Fill]) -> List[Any]:
        return to_paints(fills)

    async def to_paints_async(self, fills: List[Fill]) -> List[Any]:
        paints = []
        for fill in fills or []:
            paint = await self.to_paint_async(fill)
            if paint is not None:
                paints.append(paint)
        return paints

    async def to_paint_async(self, fill: Fill) -> Optional[Any]:
        if fill.type != "IMAGE":
            return to_paint(fill)

        try:
            image = None
            if fill.imageUrl:
                image = await self._image_from_url(fill.imageUrl)
            elif fill.imageData:
                image = await self.canvas.create_image(decode_image_data(fill.imageData))
            elif fill.imageHash:
                image = self.canvas.get_image_by_hash(fill.imageHash)

            if image is None:
                logger.warning(f"⚠️ Could not create or find image for fill")
                return None

            return ImagePaint(
                image_hash=image.hash,
                scale_mode=fill.scaleMode or "FILL",
                image_transform=_transform(fill.imageTransform),
                scaling_factor=fill.scalingFactor,
                rotation=fill.rotation or 0.0,
                filters=dict(fill.filters) if fill.filters else None,
                visible=fill.visible is not False,
                opacity=_clamp(fill.opacity, 1.0),
                blend_mode=fill.blendMode or "NORMAL",
            )
        except (CanvasError, ValueError) as e:
            logger.warning(f"⚠️ Error creating image fill: {e}")
            return None

    async def _image_from_url(self, url: str) -> Optional[Any]:
        cached = self.cache.get_url(url)
        if cached is not None:
            logger.debug(f"🖼️ Using cached image for URL: {url}")
            return cached

        try:
            data = await self.fetcher.fetch(url)
            image = await self.canvas.create_image(data)
        except (httpx.HTTPError, ValueError, CanvasError) as e:
            logger.error(f"❌ Error fetching image from URL {url}: {e}")
            return None

        self.cache.put_url(url, image)
        logger.info(f"✅ Created image from URL: {url}")
        return image

    # ============ EXPORT ==============

    async def from_paints(self, paints: Any) -> List[Dict[str, Any]]:
        fills = []
        for paint in paints or ():
            data = await self.from_paint(paint)
            if data is not None:
                fills.append(data)
        return fills

    async def from_paint(self, paint: Any) -> Optional[Dict[str, Any]]:
        data: Dict[str, Any] = {"type": paint.type}
        if not paint.visible:
            data["visible"] = False
        if paint.opacity != 1:
            data["opacity"] = paint.opacity
        if paint.blend_mode != "NORMAL":
            data["blendMode"] = paint.blend_mode

        if isinstance(paint, SolidPaint):
            color = paint.color
            data["color"] = {"r": _round(color.r), "g": _round(color.g), "b": _round(color.b)}
        elif isinstance(paint, GradientPaint):
            data["gradientStops"] = [
                {
                    "position": stop.position,
                    "color": {
                        "r": _round(stop.color.r),
                        "g": _round(stop.color.g),
                        "b": _round(stop.color.b),
                        "a": _round(stop.color.a),
                    },
                }
                for stop in paint.gradient_stops
            ]
            if paint.gradient_transform is not None:
                data["gradientTransform"] = _matrix(paint.gradient_transform)
        elif isinstance(paint, ImagePaint):
            data["imageHash"] = paint.image_hash
            if paint.scale_mode != "FILL":
                data["scaleMode"] = paint.scale_mode
            if paint.image_transform is not None:
                data["imageTransform"] = _matrix(paint.image_transform)
            if paint.scaling_factor is not None:
                data["scalingFactor"] = paint.scaling_factor
            if paint.rotation:
                data["rotation"] = paint.rotation
            if paint.filters:
                data["filters"] = dict(paint.filters)
            image = self.canvas.get_image_by_hash(paint.image_hash)
            if image is not None:
                data["imageData"] = await self.cache.export_data(image)
            else:
                logger.warning(f"⚠️ Image {paint.image_hash} is no longer available, exporting hash only")
        else:
            return None
        return data
