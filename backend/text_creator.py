"""
Text Creator - text objects with font fallback and styled runs

Font loading falls back from the requested font to the configured default
and then to the configured fallback family. Loaded fonts are remembered by
the FontLoader, which lives as long as the repository that owns it.
"""

import logging
from typing import Any, List, Optional, Set

from canvas import CanvasError, FontName, Hyperlink, LetterSpacing, LineHeight
from config import EngineConfig
from design_node import DesignNode, TextSegment
from node_helpers import apply_fills_async, property_group

logger = logging.getLogger(__name__)


class FontLoader:
    def __init__(self, canvas, config: EngineConfig):
        self.canvas = canvas
        self.default_font = FontName(config.default_font_family, config.default_font_style)
        self.fallback_font = FontName(config.fallback_font_family, config.fallback_font_style)
        self._loaded: Set[str] = set()

    @staticmethod
    def key(font: FontName) -> str:
        return f"{font.family}-{font.style}"

    @property
    def loaded(self) -> List[str]:
        return sorted(self._loaded)

    async def _load(self, font: FontName) -> None:
        key = self.key(font)
        if key in self._loaded:
            return
        await self.canvas.load_font(font)
        self._loaded.add(key)
        logger.debug(f"🔤 Loaded font {font.family} {font.style}")

    async def load(self, requested: Optional[Any] = None) -> FontName:
        """
        Load `requested` or the first loadable fallback.

        Raises:
            CanvasError: when neither the requested, default nor fallback font loads
        """
        if requested is not None:
            font = FontName(requested.family, requested.style)
            try:
                await self._load(font)
                return font
            except CanvasError:
                logger.warning(f"⚠️ Failed to load font {font.family} {font.style}, trying default")

        try:
            await self._load(self.default_font)
            return self.default_font
        except CanvasError:
            logger.warning(f"⚠️ Default font unavailable, using {self.fallback_font.family}")
            await self._load(self.fallback_font)
            return self.fallback_font


def _line_height(value: Any) -> Optional[LineHeight]:
    if value.unit == "AUTO":
        return LineHeight("AUTO")
    if value.unit in ("PIXELS", "PERCENT") and value.value is not None:
        return LineHeight(value.unit, value.value)
    return None


@property_group("text properties")
def apply_text_properties(node: Any, data: DesignNode) -> None:
    if data.fontSize is not None and data.fontSize > 0:
        node.font_size = data.fontSize
    if data.textAlignHorizontal:
        node.text_align_horizontal = data.textAlignHorizontal
    if data.textAlignVertical:
        node.text_align_vertical = data.textAlignVertical
    if data.textDecoration and data.textDecoration != "NONE":
        node.text_decoration = data.textDecoration
    if data.textCase and data.textCase != "ORIGINAL":
        node.text_case = data.textCase

    if data.lineHeight is not None:
        line_height = _line_height(data.lineHeight)
        if line_height is not None:
            node.line_height = line_height
    if data.letterSpacing is not None and data.letterSpacing.value is not None:
        node.letter_spacing = LetterSpacing(data.letterSpacing.unit or "PIXELS", data.letterSpacing.value)

    if data.paragraphIndent is not None:
        node.paragraph_indent = data.paragraphIndent
    if data.paragraphSpacing is not None:
        node.paragraph_spacing = data.paragraphSpacing
    if data.hyperlink is not None:
        node.hyperlink = Hyperlink(data.hyperlink.type, data.hyperlink.value)
    if data.textTruncation:
        node.text_truncation = data.textTruncation
    if data.maxLines is not None:
        node.max_lines = data.maxLines


@property_group("text auto-resize")
def apply_text_auto_resize(node: Any, data: DesignNode) -> None:
    """Use the explicit mode, otherwise infer it from the layout context and the given size."""
    width, height = data.width, data.height

    if data.textAutoResize:
        node.text_auto_resize = data.textAutoResize
        if data.textAutoResize == "NONE" and width and height:
            node.resize(width, height)
        elif data.textAutoResize == "HEIGHT" and width:
            node.resize(width, node.height or 1)
        return

    in_auto_layout = data.layoutAlign is not None or data.layoutGrow is not None
    if in_auto_layout:
        if width and width > 0:
            node.text_auto_resize = "HEIGHT"
            node.resize(width, node.height or 1)
        else:
            node.text_auto_resize = "WIDTH_AND_HEIGHT"
    elif width and height:
        node.text_auto_resize = "NONE"
        node.resize(width, height)
    elif width:
        node.text_auto_resize = "HEIGHT"
        node.resize(width, node.height or 1)
    else:
        node.text_auto_resize = "WIDTH_AND_HEIGHT"


async def apply_text_segments(node: Any, segments: List[TextSegment], session) -> None:
    """Style half-open ranges; each range is guarded on its own."""
    length = len(node.characters)
    if length == 0:
        return

    for segment in segments:
        start = max(0, segment.start)
        end = min(length, segment.end)
        if start >= end:
            continue

        try:
            if segment.fontName is not None:
                font = await session.fonts.load(segment.fontName)
                node.set_range_font_name(start, end, font)
            if segment.fontSize is not None:
                node.set_range_font_size(start, end, segment.fontSize)
            if segment.textCase:
                node.set_range_text_case(start, end, segment.textCase)
            if segment.textDecoration:
                node.set_range_text_decoration(start, end, segment.textDecoration)
            if segment.lineHeight is not None:
                line_height = _line_height(segment.lineHeight)
                if line_height is not None:
                    node.set_range_line_height(start, end, line_height)
            if segment.letterSpacing is not None and segment.letterSpacing.value is not None:
                spacing = LetterSpacing(segment.letterSpacing.unit or "PIXELS", segment.letterSpacing.value)
                node.set_range_letter_spacing(start, end, spacing)
            if segment.fills:
                paints = await session.fills.to_paints_async(segment.fills)
                if paints:
                    node.set_range_fills(start, end, paints)
            if segment.hyperlink is not None:
                node.set_range_hyperlink(start, end, Hyperlink(segment.hyperlink.type, segment.hyperlink.value))
        except Exception as e:
            logger.warning(f"⚠️ Error applying text segment [{start}, {end}) on '{node.name}': {e}")


async def create_text(data: DesignNode, session, parent: Any = None) -> Any:
    text = session.canvas.create_text()
    text.name = data.name or "Text"

    # The font has to be resolved before characters can be set
    text.font_name = await session.fonts.load(data.fontName)
    text.characters = str(data.characters) if data.characters is not None else ""

    apply_text_properties(text, data)
    apply_text_auto_resize(text, data)

    if data.textSegments:
        await apply_text_segments(text, data.textSegments, session)
    else:
        await apply_fills_async(text, data.fills, session.fills)
    return text
