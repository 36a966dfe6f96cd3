from __future__ import annotations

import io
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from psd_tools import PSDImage
from psd_tools.constants import Resource
from psd_tools.psd.color_mode_data import ColorModeData
from psd_tools.psd.header import FileHeader
from psd_tools.psd.image_resources import ImageResources

logger = logging.getLogger(__name__)

FIXED_POINT_SCALE = 65536.0


@dataclass(frozen=True)
class DecodeOptions:
    retain_composite: bool = False
    retain_thumbnail: bool = False
    skip_layers: bool = False


class DocumentDecoder(Protocol):
    name: str

    def decode(self, data: bytes, options: DecodeOptions) -> dict:
        ...


def _plain(value: Any) -> Any:
    """Unwrap psd-tools engine-data containers into plain dicts, lists and scalars."""

    if hasattr(value, "items"):
        return {str(_plain(key)): _plain(item) for key, item in value.items()}
    if value is None or isinstance(value, (str, bytes, bool, int, float)):
        return value
    if hasattr(value, "value"):
        return _plain(value.value)
    if isinstance(value, Iterable):
        return [_plain(item) for item in value]
    return value


def _resolution_dpi(resources: Any) -> float | None:
    info = resources.get_data(Resource.RESOLUTION_INFO) if resources is not None else None
    if info is None:
        return None
    horizontal = float(getattr(info, "horizontal", 0) or 0)
    if horizontal >= FIXED_POINT_SCALE:
        horizontal /= FIXED_POINT_SCALE
    return horizontal or None


def _blend_mode_name(blend_mode: Any) -> str:
    name = getattr(blend_mode, "name", None) or str(blend_mode or "normal")
    return name.lower().replace("_", " ")


def _convert_text(layer: Any) -> dict:
    text: dict = {"text": str(layer.text or "")}
    try:
        engine = _plain(layer.engine_dict) or {}
        font_set = _plain(layer.resource_dict).get("FontSet", [])
    except Exception as exc:  # noqa: BLE001
        logger.debug("Engine data unavailable for text layer %r: %s", layer.name, exc)
        return text

    font_names = [font.get("Name") for font in font_set if isinstance(font, dict)]
    run_array = (engine.get("StyleRun") or {}).get("RunArray") or []
    for run in run_array:
        style_data = ((run or {}).get("StyleSheet") or {}).get("StyleSheetData") or {}
        font_index = style_data.get("Font")
        if isinstance(font_index, int) and 0 <= font_index < len(font_names):
            style_data["Font"] = font_names[font_index]

    text["engineData"] = {"EngineDict": engine}
    return text


def _convert_layer(layer: Any) -> dict:
    node: dict = {
        "name": layer.name,
        "hidden": not layer.visible,
        "opacity": layer.opacity,
        "blendMode": _blend_mode_name(layer.blend_mode),
    }

    kind = layer.kind
    if kind == "type":
        node["text"] = _convert_text(layer)
    elif kind == "smartobject":
        smart_object = layer.smart_object
        node["placedLayer"] = {
            "kind": str(getattr(smart_object, "kind", "") or ""),
            "filename": str(getattr(smart_object, "filename", "") or ""),
        }
    elif kind == "shape":
        node["vectorMask"] = True
        if layer.has_stroke():
            node["vectorStroke"] = True
    elif kind == "group":
        # psd-tools lists layers bottom-to-top; the source tree is top-first.
        node["children"] = [_convert_layer(child) for child in reversed(list(layer))]
    elif kind != "pixel":
        node["adjustment"] = {"type": kind}

    if kind != "group" and layer.has_vector_mask():
        node["vectorMask"] = True
    if layer.has_mask():
        node["mask"] = {"disabled": bool(getattr(layer.mask, "disabled", False))}
    if layer.has_effects():
        node["effects"] = {type(effect).__name__: True for effect in layer.effects}
    return node


class PsdToolsDecoder:
    """Full-decode capability backed by psd-tools."""

    name = "psd-tools"

    def decode(self, data: bytes, options: DecodeOptions) -> dict:
        if options.skip_layers:
            return self._decode_header_and_resources(data)

        psd = PSDImage.open(io.BytesIO(data))
        tree: dict = {
            "width": psd.width,
            "height": psd.height,
            "depth": psd.depth,
            "colorMode": int(psd.color_mode),
            "channels": psd.channels,
            "version": psd.version,
            "resolution": _resolution_dpi(psd.image_resources),
            "children": [_convert_layer(layer) for layer in reversed(list(psd))],
        }
        if options.retain_thumbnail:
            tree["thumbnail"] = psd.thumbnail()
        if options.retain_composite:
            tree["composite"] = psd.topil()
        return tree

    def _decode_header_and_resources(self, data: bytes) -> dict:
        stream = io.BytesIO(data)
        header = FileHeader.read(stream)
        ColorModeData.read(stream)
        resources = ImageResources.read(stream)
        return {
            "width": header.width,
            "height": header.height,
            "depth": header.depth,
            "colorMode": int(header.color_mode),
            "channels": header.channels,
            "version": header.version,
            "resolution": _resolution_dpi(resources),
        }


def list_decoders() -> list[str]:
    return [PsdToolsDecoder.name]


def get_decoder(decoder_name: str | None = None) -> DocumentDecoder:
    selected = decoder_name or os.getenv("GRADER_DECODER", PsdToolsDecoder.name)
    if selected == PsdToolsDecoder.name:
        return PsdToolsDecoder()
    raise ValueError(
        f"Unknown document decoder '{selected}'. "
        f"Available decoders: {', '.join(list_decoders())}."
    )
