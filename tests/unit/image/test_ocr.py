"""Tests for the OCR text extractor."""

import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fakes import flat_page

from comicrestore.exceptions import ConfigurationError
from comicrestore.image.ocr import RapidOCRTextExtractor


class TestRapidOCRTextExtractor:
    """Tests for RapidOCRTextExtractor."""

    def test_missing_dependency(self, monkeypatch):
        """Test a missing rapidocr install is a configuration error."""
        monkeypatch.setitem(sys.modules, "rapidocr", None)

        with pytest.raises(ConfigurationError, match="comicrestore\\[ocr\\]"):
            RapidOCRTextExtractor.ensure_available()

    def test_joins_text_blocks(self, monkeypatch):
        engine = MagicMock(return_value=SimpleNamespace(txts=("WHAM!", "Meanwhile...")))
        monkeypatch.setattr(RapidOCRTextExtractor, "_engine", engine)

        text = RapidOCRTextExtractor()(flat_page((8, 8), 255))

        assert text == "WHAM!\nMeanwhile..."
        array = engine.call_args.args[0]
        assert array.shape == (8, 8, 3)

    def test_no_text(self, monkeypatch):
        engine = MagicMock(return_value=SimpleNamespace(txts=None))
        monkeypatch.setattr(RapidOCRTextExtractor, "_engine", engine)

        assert RapidOCRTextExtractor()(flat_page((8, 8), 255)) == ""
