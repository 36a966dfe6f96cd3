from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field

from psd_grader.config import DEFAULT_DECODE_TIMEOUT_SECONDS
from psd_grader.decoder import DecodeOptions, DocumentDecoder, get_decoder
from psd_grader.errors import DecodeLadderExhaustedError, HeaderError, ParseError
from psd_grader.feature_extractor import LayerNode, RasterLayer, extract_layers, fonts_in_layers
from psd_grader.header_reader import BasicInfo, color_mode_name, read_basic_info
from psd_grader.preview import placeholder_thumbnail, thumbnail_data_url

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 72
DEFAULT_BIT_DEPTH = 8
BACKGROUND_LAYER_NAME = "Background"


@dataclass(frozen=True)
class RawDocument:
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class DecodeStrategy:
    name: str
    options: DecodeOptions


DECODE_LADDER: tuple[DecodeStrategy, ...] = (
    DecodeStrategy("composite", DecodeOptions(retain_composite=True, retain_thumbnail=True)),
    DecodeStrategy("metadata", DecodeOptions()),
    DecodeStrategy("header_resources", DecodeOptions(skip_layers=True)),
)


@dataclass(frozen=True)
class AnalysisResult:
    filename: str
    width: int
    height: int
    color_mode: str
    bit_depth: int
    resolution: int
    layers: tuple[LayerNode, ...]
    file_size: int
    strategy: str
    is_limited_parse: bool = False
    has_transparency: bool = False
    parse_note: str | None = None
    parse_notes: tuple[str, ...] = field(default=())
    thumbnail: str | None = None

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    @property
    def layer_names(self) -> list[str]:
        return [layer.name for layer in self.layers]

    @property
    def fonts_used(self) -> list[str]:
        return fonts_in_layers(self.layers)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "dimensions": f"{self.width}x{self.height}",
            "color_mode": self.color_mode,
            "bit_depth": self.bit_depth,
            "resolution": self.resolution,
            "has_transparency": self.has_transparency,
            "layer_count": self.layer_count,
            "layer_names": self.layer_names,
            "layers": [layer.to_dict() for layer in self.layers],
            "fonts_used": self.fonts_used,
            "file_size": self.file_size,
            "strategy": self.strategy,
            "is_limited_parse": self.is_limited_parse,
            "parse_note": self.parse_note,
            "parse_notes": list(self.parse_notes),
            "thumbnail": self.thumbnail,
        }


def _background_layer() -> RasterLayer:
    return RasterLayer(name=BACKGROUND_LAYER_NAME)


def _int_or(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def _run_strategy(
    decoder: DocumentDecoder,
    data: bytes,
    strategy: DecodeStrategy,
    timeout: float,
    executor: Executor | None = None,
) -> dict:
    # A timed-out decode still occupies its worker until it returns.
    owned = executor is None
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"decode-{strategy.name}") if owned else executor
    try:
        future = pool.submit(decoder.decode, data, strategy.options)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise TimeoutError(f"decode did not finish within {timeout:g}s") from None
    finally:
        if owned:
            pool.shutdown(wait=False, cancel_futures=True)


def decode_with_ladder(
    data: bytes,
    decoder: DocumentDecoder,
    *,
    timeout: float = DEFAULT_DECODE_TIMEOUT_SECONDS,
    ladder: tuple[DecodeStrategy, ...] = DECODE_LADDER,
    executor: Executor | None = None,
) -> tuple[DecodeStrategy, Mapping, list[str]]:
    """Try each rung once, in order; return the first tree that decodes.

    Rungs run on ``executor`` when given, otherwise on a throwaway
    single-thread pool per rung.
    """

    notes: list[str] = []
    for strategy in ladder:
        try:
            tree = _run_strategy(decoder, data, strategy, timeout, executor)
            if not isinstance(tree, Mapping):
                raise TypeError(f"decoder returned {type(tree).__name__}, expected a mapping")
        except Exception as exc:  # noqa: BLE001
            notes.append(f"{strategy.name}: {exc}")
            logger.info("Decode strategy '%s' failed: %s", strategy.name, exc)
            continue
        return strategy, tree, notes

    raise DecodeLadderExhaustedError(notes)


def _analysis_from_tree(document: RawDocument, strategy: DecodeStrategy, tree: Mapping, notes: list[str]) -> AnalysisResult:
    limited = strategy.options.skip_layers
    layers = [] if limited else extract_layers(tree)
    if not layers:
        layers = [_background_layer()]

    width = _int_or(tree.get("width"), 0)
    height = _int_or(tree.get("height"), 0)
    raw_mode = tree.get("colorMode")
    color_mode = color_mode_name(raw_mode if isinstance(raw_mode, int) else None)
    resolution = tree.get("resolution")

    thumbnail = thumbnail_data_url(tree.get("thumbnail")) or thumbnail_data_url(tree.get("composite"))
    if thumbnail is None and limited:
        thumbnail = placeholder_thumbnail(width, height, color_mode)

    parse_note = None
    if notes:
        parse_note = f"Used fallback decode strategy '{strategy.name}'"

    return AnalysisResult(
        filename=document.filename,
        width=width,
        height=height,
        color_mode=color_mode,
        bit_depth=_int_or(tree.get("depth"), DEFAULT_BIT_DEPTH) or DEFAULT_BIT_DEPTH,
        resolution=round(resolution) if isinstance(resolution, (int, float)) and resolution > 0 else DEFAULT_RESOLUTION,
        layers=tuple(layers),
        file_size=document.size,
        strategy=strategy.name,
        is_limited_parse=limited,
        has_transparency=_int_or(tree.get("channels"), 0) >= 4,
        parse_note=parse_note,
        parse_notes=tuple(notes),
        thumbnail=thumbnail,
    )


def _header_fallback(document: RawDocument, notes: list[str]) -> AnalysisResult:
    try:
        info: BasicInfo = read_basic_info(document.content)
    except HeaderError as exc:
        notes = [*notes, f"header: {exc}"]
        raise ParseError(f"Unable to analyze PSD file: {exc}", notes=notes) from exc

    logger.info("Using header-only analysis for %s (%s)", document.filename, info.color_mode)
    return AnalysisResult(
        filename=document.filename,
        width=info.width,
        height=info.height,
        color_mode=info.color_mode,
        bit_depth=info.bit_depth,
        resolution=DEFAULT_RESOLUTION,
        layers=(_background_layer(),),
        file_size=document.size,
        strategy="header",
        is_limited_parse=True,
        has_transparency=info.color_mode != "CMYK",
        parse_note=f"{info.color_mode} file - header analysis only",
        parse_notes=tuple(notes),
        thumbnail=placeholder_thumbnail(info.width, info.height, info.color_mode),
    )


def analyze_document(
    document: RawDocument,
    decoder: DocumentDecoder | None = None,
    *,
    timeout: float = DEFAULT_DECODE_TIMEOUT_SECONDS,
    executor: Executor | None = None,
) -> AnalysisResult:
    """Decode ``document`` down the ladder, falling back to the bare header.

    Raises ``ParseError`` only when not even the 26-byte header is valid.
    """

    selected = decoder or get_decoder()
    try:
        strategy, tree, notes = decode_with_ladder(document.content, selected, timeout=timeout, executor=executor)
    except DecodeLadderExhaustedError as exc:
        return _header_fallback(document, exc.notes)

    analysis = _analysis_from_tree(document, strategy, tree, notes)
    logger.info(
        "Analysis complete for %s: %sx%s %s, %d layers (%s)",
        document.filename,
        analysis.width,
        analysis.height,
        analysis.color_mode,
        analysis.layer_count,
        analysis.strategy,
    )
    return analysis
