"""
Tests for paint/effect conversion and image fetching.

Run: python -m pytest tests/test_mappers.py -v
"""

import asyncio
import base64

import httpx
import pytest

from canvas import ImagePaint, ShadowEffect, SolidPaint, GradientPaint
from config import EngineConfig
from design_node import Effect, Fill
import effect_mapper
import fill_mapper
from fill_mapper import FillMapper, decode_image_data
from image_cache import ImageCache, ImageFetcher, is_svg_url
from conftest import make_png, make_png_base64, solid


def _fetcher(handler, calls=None):
    def recording(request):
        if calls is not None:
            calls.append(str(request.url))
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return ImageFetcher(EngineConfig(), client)


class TestSyncPaints:
    def test_solid_clamps_channels(self):
        paint = fill_mapper.to_paint(Fill.model_validate(solid(1.4, -0.2, 0.5, opacity=0.5)))
        assert isinstance(paint, SolidPaint)
        assert (paint.color.r, paint.color.g, paint.color.b) == (1.0, 0.0, 0.5)
        assert paint.opacity == 0.5

    def test_solid_without_color_is_skipped(self):
        assert fill_mapper.to_paint(Fill(type="SOLID")) is None

    def test_gradient_stops_default_alpha(self):
        fill = Fill.model_validate({
            "type": "GRADIENT_LINEAR",
            "gradientStops": [
                {"position": 0, "color": {"r": 1, "g": 0, "b": 0}},
                {"position": 1, "color": {"r": 0, "g": 0, "b": 1, "a": 0.5}},
            ],
            "gradientTransform": [[1, 0, 0], [0, 1, 0]],
        })
        paint = fill_mapper.to_paint(fill)
        assert isinstance(paint, GradientPaint)
        assert [stop.color.a for stop in paint.gradient_stops] == [1.0, 0.5]
        assert paint.gradient_transform == ((1, 0, 0), (0, 1, 0))

    def test_sync_path_skips_images_and_unknown(self):
        fills = [Fill.model_validate(solid(0, 0, 0)), Fill(type="IMAGE", imageHash="abc"), Fill(type="VIDEO")]
        assert len(fill_mapper.to_paints(fills)) == 1


class TestDecodeImageData:
    def test_plain_and_data_url(self):
        encoded = make_png_base64()
        assert decode_image_data(encoded) == make_png()
        assert decode_image_data(f"data:image/png;base64,{encoded}") == make_png()

    def test_invalid_base64(self):
        with pytest.raises(ValueError):
            decode_image_data("not base64!!")


class TestImageFills:
    def test_inline_data_creates_image(self, canvas):
        mapper = FillMapper(canvas, ImageCache(), ImageFetcher(EngineConfig()))
        fill = Fill(type="IMAGE", imageData=make_png_base64(), scaleMode="FIT")
        paint = asyncio.run(mapper.to_paint_async(fill))
        assert isinstance(paint, ImagePaint)
        assert paint.scale_mode == "FIT"
        assert canvas.get_image_by_hash(paint.image_hash) is not None

    def test_unknown_hash_is_skipped(self, canvas):
        mapper = FillMapper(canvas, ImageCache(), ImageFetcher(EngineConfig()))
        assert asyncio.run(mapper.to_paint_async(Fill(type="IMAGE", imageHash="missing"))) is None

    def test_corrupt_data_is_skipped(self, canvas):
        mapper = FillMapper(canvas, ImageCache(), ImageFetcher(EngineConfig()))
        data = base64.b64encode(b"not an image").decode("ascii")
        assert asyncio.run(mapper.to_paint_async(Fill(type="IMAGE", imageData=data))) is None

    def test_url_fetched_once(self, canvas):
        calls = []
        fetcher = _fetcher(lambda request: httpx.Response(200, content=make_png()), calls)
        mapper = FillMapper(canvas, ImageCache(), fetcher)
        fill = Fill(type="IMAGE", imageUrl="https://example.com/a.png")

        async def run():
            first = await mapper.to_paint_async(fill)
            second = await mapper.to_paint_async(fill)
            return first, second

        first, second = asyncio.run(run())
        assert first.image_hash == second.image_hash
        assert calls == ["https://example.com/a.png"]

    def test_failed_fetch_drops_fill(self, canvas):
        fetcher = _fetcher(lambda request: httpx.Response(404))
        mapper = FillMapper(canvas, ImageCache(), fetcher)
        paint = asyncio.run(mapper.to_paint_async(Fill(type="IMAGE", imageUrl="https://example.com/x.png")))
        assert paint is None


class TestImageFetcher:
    def test_svg_goes_through_proxy(self):
        calls = []
        fetcher = _fetcher(lambda request: httpx.Response(200, content=make_png()), calls)
        asyncio.run(fetcher.fetch("https://cdn.example.com/icon.svg"))
        assert calls[0].startswith("https://wsrv.nl/")
        assert "output=png" in calls[0]

    def test_empty_body_raises(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(ValueError):
            asyncio.run(fetcher.fetch("https://example.com/a.png"))

    def test_is_svg_url(self):
        assert is_svg_url("https://api.iconify.design/mdi/home")
        assert is_svg_url("https://x.com/svg/icon")
        assert not is_svg_url("https://x.com/photo.jpg")


class TestPaintExport:
    def test_defaults_omitted(self, canvas):
        mapper = FillMapper(canvas, ImageCache(), ImageFetcher(EngineConfig()))
        paint = fill_mapper.to_paint(Fill.model_validate(solid(0.2, 0.4, 0.6)))
        assert asyncio.run(mapper.from_paint(paint)) == {"type": "SOLID", "color": {"r": 0.2, "g": 0.4, "b": 0.6}}

    def test_image_export_memoized_per_call(self, canvas):
        cache = ImageCache()
        mapper = FillMapper(canvas, cache, ImageFetcher(EngineConfig()))
        image = asyncio.run(canvas.create_image(make_png()))
        reads = []
        original = image.get_bytes

        async def counting():
            reads.append(1)
            return await original()

        image.get_bytes = counting
        paint = ImagePaint(image_hash=image.hash)

        async def run():
            cache.begin_export()
            return await mapper.from_paints([paint, paint])

        fills = asyncio.run(run())
        assert len(reads) == 1
        assert cache.export_size == 1
        assert fills[0]["imageData"] == make_png_base64()
        assert "scaleMode" not in fills[0]


class TestEffects:
    def test_shadow_defaults(self):
        effect = effect_mapper.to_effect(Effect(type="DROP_SHADOW"))
        assert isinstance(effect, ShadowEffect)
        assert effect.color.a == 0.25
        assert effect.offset == (0.0, 4.0)
        assert effect.radius == 10.0

    def test_behind_node_only_for_drop_shadow(self):
        inner = effect_mapper.to_effect(Effect(type="INNER_SHADOW", showShadowBehindNode=True))
        assert inner.show_shadow_behind_node is False

    def test_unknown_effect_skipped(self):
        assert effect_mapper.to_effects([Effect(type="GLOW"), Effect(type="LAYER_BLUR", radius=4)])[0].radius == 4

    def test_export_omits_defaults(self):
        effect = effect_mapper.to_effect(Effect.model_validate({
            "type": "DROP_SHADOW", "color": {"r": 0, "g": 0, "b": 0, "a": 0.5},
            "offset": {"x": 0, "y": 2}, "radius": 6,
        }))
        assert effect_mapper.from_effect(effect) == {
            "type": "DROP_SHADOW",
            "radius": 6,
            "color": {"r": 0, "g": 0, "b": 0, "a": 0.5},
            "offset": {"x": 0, "y": 2},
        }


class TestEngineConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SVG_PROXY_URL", "https://proxy.test/")
        monkeypatch.setenv("IMAGE_FETCH_TIMEOUT", "not-a-number")
        monkeypatch.setenv("DEFAULT_FONT_FAMILY", "Roboto")
        config = EngineConfig.from_env()
        assert config.svg_proxy_url == "https://proxy.test/"
        assert config.image_fetch_timeout == 20.0
        assert config.default_font_family == "Roboto"
        assert ImageFetcher(config).proxy_url("https://x.com/a.svg").startswith("https://proxy.test/?url=https%3A%2F%2Fx.com")
