from __future__ import annotations

import struct
import time

from psd_grader.decoder import DecodeOptions


def build_header(
    width: int = 100,
    height: int = 50,
    depth: int = 8,
    color_mode: int = 3,
    channels: int = 3,
    signature: bytes = b"8BPS",
    version: int = 1,
    trailing: bytes = b"",
) -> bytes:
    """Pack a 26-byte PSD file header (plus optional trailing bytes)."""

    return (
        signature
        + struct.pack(">H", version)
        + b"\x00" * 6
        + struct.pack(">HIIHH", channels, height, width, depth, color_mode)
        + trailing
    )


def rung_for(options: DecodeOptions) -> str:
    if options.skip_layers:
        return "header_resources"
    if options.retain_composite:
        return "composite"
    return "metadata"


class FakeDecoder:
    """Decoder double: per rung, return a tree or raise the configured exception."""

    name = "fake"

    def __init__(self, outcomes: dict | None = None, default=None, delay: float = 0.0):
        self.outcomes = outcomes or {}
        self.default = default
        self.delay = delay
        self.calls: list[str] = []

    def decode(self, data: bytes, options: DecodeOptions) -> dict:
        rung = rung_for(options)
        self.calls.append(rung)
        if self.delay:
            time.sleep(self.delay)
        outcome = self.outcomes.get(rung, self.default)
        if outcome is None:
            raise ValueError(f"{rung} not supported")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def layered_tree(children: list[dict], **overrides) -> dict:
    tree = {"width": 1920, "height": 1080, "depth": 8, "colorMode": 3, "channels": 3, "resolution": 300, "children": children}
    tree.update(overrides)
    return tree


def text_node(name: str, font: str) -> dict:
    return {"name": name, "text": {"text": name, "style": {"font": font}}}
