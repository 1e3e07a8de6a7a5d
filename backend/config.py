import os
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for the translation engine, read from the environment."""

    svg_proxy_url: str = "https://wsrv.nl/"
    svg_proxy_size: int = 512
    image_fetch_timeout: float = 20.0
    default_font_family: str = "Inter"
    default_font_style: str = "Regular"
    fallback_font_family: str = "Arial"
    fallback_font_style: str = "Regular"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            svg_proxy_url=os.getenv("SVG_PROXY_URL", cls.svg_proxy_url),
            svg_proxy_size=int(_env_float("SVG_PROXY_SIZE", cls.svg_proxy_size)),
            image_fetch_timeout=_env_float("IMAGE_FETCH_TIMEOUT", cls.image_fetch_timeout),
            default_font_family=os.getenv("DEFAULT_FONT_FAMILY", cls.default_font_family),
            default_font_style=os.getenv("DEFAULT_FONT_STYLE", cls.default_font_style),
            fallback_font_family=os.getenv("FALLBACK_FONT_FAMILY", cls.fallback_font_family),
            fallback_font_style=os.getenv("FALLBACK_FONT_STYLE", cls.fallback_font_style),
        )
