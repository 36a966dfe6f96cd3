"""Normalize a decoded PSD layer tree into typed, analysis-friendly layer nodes.

The decoder hands over a dynamically shaped tree of mappings. Every node is
classified exactly once by :func:`classify_layer`; the rest of the engine only
ever sees the resulting :class:`LayerNode` variants.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

logger = logging.getLogger(__name__)

DEFAULT_OPACITY = 255
DEFAULT_BLEND_MODE = "normal"
UNNAMED_LAYER = "Unnamed Layer"


class LayerKind(str, Enum):
    TEXT = "text"
    ADJUSTMENT = "adjustment"
    SMART_OBJECT = "smart_object"
    VECTOR = "vector"
    GROUP = "group"
    RASTER = "raster"


@dataclass(frozen=True)
class LayerNode:
    name: str
    visible: bool = True
    opacity: int = DEFAULT_OPACITY
    blend_mode: str = DEFAULT_BLEND_MODE
    depth: int = 0
    has_mask: bool = False
    effects: tuple[str, ...] = ()

    kind: ClassVar[LayerKind] = LayerKind.RASTER

    def _extra_fields(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        payload = {
            "name": self.name,
            "type": self.kind.value,
            "visible": self.visible,
            "opacity": self.opacity,
            "blend_mode": self.blend_mode,
            "depth": self.depth,
            "has_mask": self.has_mask,
            "effects": list(self.effects),
        }
        payload.update(self._extra_fields())
        return payload


@dataclass(frozen=True)
class TextLayer(LayerNode):
    font_name: str | None = None
    font_size: float | None = None
    text: str | None = None
    run_fonts: tuple[str, ...] = ()

    kind: ClassVar[LayerKind] = LayerKind.TEXT

    def _extra_fields(self) -> dict:
        return {
            "font_name": self.font_name,
            "font_size": self.font_size,
            "text": self.text,
            "run_fonts": list(self.run_fonts),
        }


@dataclass(frozen=True)
class AdjustmentLayer(LayerNode):
    adjustment_type: str | None = None

    kind: ClassVar[LayerKind] = LayerKind.ADJUSTMENT

    def _extra_fields(self) -> dict:
        return {"adjustment_type": self.adjustment_type}


@dataclass(frozen=True)
class SmartObjectLayer(LayerNode):
    kind: ClassVar[LayerKind] = LayerKind.SMART_OBJECT


@dataclass(frozen=True)
class VectorLayer(LayerNode):
    kind: ClassVar[LayerKind] = LayerKind.VECTOR


@dataclass(frozen=True)
class GroupLayer(LayerNode):
    children: tuple[LayerNode, ...] = field(default=())

    kind: ClassVar[LayerKind] = LayerKind.GROUP

    def _extra_fields(self) -> dict:
        return {"child_count": len(self.children)}


@dataclass(frozen=True)
class RasterLayer(LayerNode):
    kind: ClassVar[LayerKind] = LayerKind.RASTER


@dataclass(frozen=True)
class FontDescriptor:
    name: str
    size: float | None = None


def _present(node: Mapping, key: str) -> bool:
    value = node.get(key)
    return value is not None and value is not False


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _font_value(value: Any) -> str | None:
    if isinstance(value, Mapping):
        value = value.get("name") or value.get("Name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _style_run_data(engine_data: Any) -> list[Mapping]:
    try:
        run_array = engine_data["EngineDict"]["StyleRun"]["RunArray"]
        return [run["StyleSheet"]["StyleSheetData"] for run in run_array]
    except (KeyError, IndexError, TypeError):
        return []


def engine_style_font(engine_data: Any) -> FontDescriptor | None:
    """Font of the first style run in Photoshop's text engine data, if any."""

    runs = _style_run_data(engine_data)
    if not runs or not isinstance(runs[0], Mapping):
        return None
    name = _font_value(runs[0].get("Font"))
    if name is None:
        return None
    return FontDescriptor(name=name, size=_number(runs[0].get("FontSize")))


def engine_run_fonts(engine_data: Any) -> tuple[str, ...]:
    fonts: list[str] = []
    for run in _style_run_data(engine_data):
        if not isinstance(run, Mapping):
            continue
        name = _font_value(run.get("Font"))
        if name and name not in fonts:
            fonts.append(name)
    return tuple(fonts)


def _first_style(text: Mapping) -> Mapping:
    styles = text.get("styles")
    if isinstance(styles, Sequence) and not isinstance(styles, str) and styles:
        return _mapping(styles[0])
    return {}


def _text_fields(text_source: Any) -> dict:
    text = _mapping(text_source)
    style = _mapping(text.get("style"))
    first_style = _first_style(text)
    engine_font = engine_style_font(text.get("engineData"))

    font_candidates = [
        _font_value(style.get("font")),
        _font_value(style.get("fontName")),
        _font_value(style.get("fontFamily")),
        engine_font.name if engine_font else None,
        _font_value(first_style.get("font")),
        _font_value(first_style.get("fontFamily")),
    ]
    size_candidates = [
        _number(style.get("fontSize")),
        engine_font.size if engine_font else None,
        _number(first_style.get("fontSize")),
    ]
    content = text.get("text")

    return {
        "font_name": next((font for font in font_candidates if font), None),
        "font_size": next((size for size in size_candidates if size is not None), None),
        "text": content if isinstance(content, str) else None,
        "run_fonts": engine_run_fonts(text.get("engineData")),
    }


def _adjustment_type(adjustment: Any) -> str | None:
    if isinstance(adjustment, Mapping):
        kind = adjustment.get("type")
        if isinstance(kind, str) and kind:
            return kind
        return next(iter(adjustment), None)
    if isinstance(adjustment, str):
        return adjustment
    return None


def _common_fields(node: Mapping, depth: int) -> dict:
    name = node.get("name")
    opacity = node.get("opacity")
    blend_mode = node.get("blendMode")
    effects = node.get("effects")
    return {
        "name": name if isinstance(name, str) and name else UNNAMED_LAYER,
        "visible": node.get("hidden") is not True,
        "opacity": int(opacity) if isinstance(opacity, (int, float)) and not isinstance(opacity, bool) else DEFAULT_OPACITY,
        "blend_mode": blend_mode if isinstance(blend_mode, str) and blend_mode else DEFAULT_BLEND_MODE,
        "depth": depth,
        "has_mask": _present(node, "mask"),
        "effects": tuple(str(key) for key in effects) if isinstance(effects, Mapping) else (),
    }


def classify_layer(node: Mapping, depth: int = 0) -> LayerNode:
    """Turn one source node (and, for groups, its subtree) into a typed LayerNode.

    Priority is Text > Adjustment > SmartObject > Vector > Group > Raster; the
    first capability present wins.
    """

    common = _common_fields(node, depth)

    if _present(node, "text"):
        return TextLayer(**common, **_text_fields(node.get("text")))
    if _present(node, "adjustment"):
        return AdjustmentLayer(**common, adjustment_type=_adjustment_type(node.get("adjustment")))
    if _present(node, "placedLayer"):
        return SmartObjectLayer(**common)
    if _present(node, "vectorMask") or _present(node, "vectorStroke"):
        return VectorLayer(**common)
    if _present(node, "children"):
        children = node.get("children")
        if not isinstance(children, Sequence) or isinstance(children, str):
            children = []
        return GroupLayer(
            **common,
            children=tuple(classify_layer(child, depth + 1) for child in children if isinstance(child, Mapping)),
        )
    return RasterLayer(**common)


def flatten_layers(nodes: Sequence[LayerNode]) -> list[LayerNode]:
    """Pre-order walk: every group precedes its own children."""

    flat: list[LayerNode] = []
    for node in nodes:
        flat.append(node)
        if isinstance(node, GroupLayer):
            flat.extend(flatten_layers(node.children))
    return flat


def extract_layers(tree: Mapping) -> list[LayerNode]:
    """Return every layer of a decoded tree in bottom-to-top stacking order."""

    roots = tree.get("children")
    if not isinstance(roots, Sequence) or isinstance(roots, str):
        return []

    classified = [classify_layer(node) for node in roots if isinstance(node, Mapping)]
    ordered = flatten_layers(classified)
    ordered.reverse()
    logger.debug("Extracted %d layers (%d top-level)", len(ordered), len(classified))
    return ordered


def fonts_in_layers(layers: Sequence[LayerNode]) -> list[str]:
    fonts: list[str] = []
    for layer in layers:
        if not isinstance(layer, TextLayer):
            continue
        for font in (layer.font_name, *layer.run_fonts):
            if font and font not in fonts:
                fonts.append(font)
    return fonts
