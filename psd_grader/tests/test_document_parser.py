import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor

import pytest

from psd_grader.document_parser import RawDocument, analyze_document, decode_with_ladder
from psd_grader.errors import DecodeLadderExhaustedError, ParseError
from psd_grader.feature_extractor import RasterLayer
from psd_grader.tests.psd_fixtures import FakeDecoder, build_header, layered_tree


def _document(content=None, filename="DES222_Smith_A01.psd"):
    return RawDocument(filename=filename, content=content if content is not None else build_header())


def test_first_rung_success_keeps_full_layers():
    decoder = FakeDecoder(default=layered_tree([{"name": "Title"}, {"name": "Background"}]))

    analysis = analyze_document(_document(), decoder)

    assert decoder.calls == ["composite"]
    assert analysis.strategy == "composite"
    assert analysis.is_limited_parse is False
    assert analysis.layer_names == ["Background", "Title"]
    assert analysis.parse_note is None
    assert analysis.parse_notes == ()
    assert analysis.resolution == 300


def test_failures_are_recorded_as_notes():
    decoder = FakeDecoder({"composite": RuntimeError("bad composite"), "metadata": layered_tree([{"name": "Only"}])})

    analysis = analyze_document(_document(), decoder)

    assert decoder.calls == ["composite", "metadata"]
    assert analysis.strategy == "metadata"
    assert analysis.parse_notes == ("composite: bad composite",)
    assert analysis.parse_note == "Used fallback decode strategy 'metadata'"
    assert analysis.is_limited_parse is False


def test_header_resources_rung_is_a_limited_parse_with_background():
    decoder = FakeDecoder(
        {
            "composite": ValueError("no"),
            "metadata": ValueError("still no"),
            "header_resources": {"width": 800, "height": 600, "depth": 8, "colorMode": 4, "channels": 4},
        }
    )

    analysis = analyze_document(_document(), decoder)

    assert analysis.is_limited_parse is True
    assert analysis.layer_count == 1
    assert isinstance(analysis.layers[0], RasterLayer)
    assert analysis.layers[0].name == "Background"
    assert analysis.color_mode == "CMYK"
    assert analysis.resolution == 72
    assert len(analysis.parse_notes) == 2


def test_flat_document_gets_implicit_background_without_being_limited():
    decoder = FakeDecoder(default=layered_tree([]))

    analysis = analyze_document(_document(), decoder)

    assert analysis.layer_names == ["Background"]
    assert analysis.is_limited_parse is False


def test_header_fallback_when_every_rung_fails():
    decoder = FakeDecoder()

    analysis = analyze_document(_document(build_header(width=640, height=480, color_mode=1)), decoder)

    assert decoder.calls == ["composite", "metadata", "header_resources"]
    assert analysis.strategy == "header"
    assert analysis.is_limited_parse is True
    assert (analysis.width, analysis.height) == (640, 480)
    assert analysis.color_mode == "Grayscale"
    assert analysis.resolution == 72
    assert analysis.layer_names == ["Background"]
    assert analysis.parse_note == "Grayscale file - header analysis only"
    assert analysis.has_transparency is True


def test_parse_error_carries_note_chain_when_header_is_invalid():
    with pytest.raises(ParseError) as excinfo:
        analyze_document(_document(b"not a psd file at all, not even close"), FakeDecoder())

    notes = excinfo.value.notes
    assert len(notes) == 4
    assert notes[0].startswith("composite:")
    assert notes[-1].startswith("header:")


def test_slow_rung_times_out_and_next_rung_runs():
    class SlowThenFast(FakeDecoder):
        def decode(self, data, options):
            if options.retain_composite:
                self.calls.append("composite")
                time.sleep(0.5)
                return layered_tree([{"name": "late"}])
            return super().decode(data, options)

    decoder = SlowThenFast({"metadata": layered_tree([{"name": "fast"}])})

    analysis = analyze_document(_document(), decoder, timeout=0.05)

    assert analysis.strategy == "metadata"
    assert analysis.layer_names == ["fast"]
    assert "did not finish" in analysis.parse_notes[0]


def test_rungs_run_on_supplied_executor():
    threads = []

    class RecordingDecoder(FakeDecoder):
        def decode(self, data, options):
            threads.append(threading.current_thread().name)
            return super().decode(data, options)

    decoder = RecordingDecoder({"header_resources": layered_tree([])})

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="shared") as pool:
        analysis = analyze_document(_document(), decoder, executor=pool)

    assert analysis.strategy == "header_resources"
    assert len(threads) == 3
    assert all(name.startswith("shared_") for name in threads)


class TestDecodeLadder(unittest.TestCase):
    def test_exhausted_ladder_raises_with_notes(self):
        with self.assertRaises(DecodeLadderExhaustedError) as context:
            decode_with_ladder(b"", FakeDecoder())

        self.assertEqual(len(context.exception.notes), 3)

    def test_non_mapping_tree_counts_as_failure(self):
        decoder = FakeDecoder({"composite": ["not", "a", "mapping"], "metadata": layered_tree([])})

        strategy, tree, notes = decode_with_ladder(b"", decoder)

        self.assertEqual(strategy.name, "metadata")
        self.assertIn("expected a mapping", notes[0])

    def test_to_dict_reports_dimensions(self):
        analysis = analyze_document(_document(), FakeDecoder(default=layered_tree([{"name": "A"}])))

        payload = analysis.to_dict()

        self.assertEqual(payload["dimensions"], "1920x1080")
        self.assertEqual(payload["layer_count"], 1)
        self.assertEqual(payload["layers"][0]["type"], "raster")
