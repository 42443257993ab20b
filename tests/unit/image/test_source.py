"""Tests for the image source adapter."""

import pytest
from PIL import Image

from comicrestore.exceptions import SourceReadError, ValidationError
from comicrestore.image.source import (
    decode_image,
    encode_png,
    find_images,
    find_mask,
    is_mask_file,
    load_image,
    load_mask,
    load_pair,
)


class TestLoadImage:
    """Tests for load_image and normalization."""

    def test_load_rgb_file(self, tmp_path):
        path = tmp_path / "page.png"
        Image.new("RGB", (8, 6), (10, 20, 30)).save(path)

        image = load_image(path)

        assert image.mode == "RGB"
        assert image.size == (8, 6)
        assert image.getpixel((0, 0)) == (10, 20, 30)

    def test_alpha_composited_on_white(self):
        """Test transparent pixels become paper white."""
        image = load_image(Image.new("RGBA", (4, 4), (0, 0, 0, 0)))

        assert image.mode == "RGB"
        assert image.getpixel((1, 1)) == (255, 255, 255)

    def test_greyscale_and_cmyk(self):
        assert load_image(Image.new("L", (4, 4), 100)).getpixel((0, 0)) == (100, 100, 100)
        assert load_image(Image.new("CMYK", (4, 4), (0, 0, 0, 0))).mode == "RGB"

    def test_palette(self):
        image = Image.new("RGB", (4, 4), (200, 0, 0)).convert("P")

        assert load_image(image).getpixel((0, 0))[0] > 150

    def test_sixteen_bit_scaled_down(self):
        """Test 16-bit greyscale scans are reduced to 8 bits."""
        image = load_image(Image.new("I;16", (4, 4), 32768))

        assert image.mode == "RGB"
        assert image.getpixel((0, 0))[0] == 128

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceReadError, match="file not found"):
            load_image(tmp_path / "missing.png")

    def test_corrupt_file(self, tmp_path):
        """Test undecodable data is a read error."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not really a jpeg")

        with pytest.raises(SourceReadError) as exc_info:
            load_image(path)

        assert exc_info.value.path == path

    def test_oversized_image_rejected(self, tmp_path, monkeypatch):
        """Test an image over the pixel limit is a validation error, not a crash."""
        path = tmp_path / "huge.png"
        Image.new("RGB", (32, 48)).save(path)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(ValidationError, match="huge.png"):
            load_image(path)


class TestLoadMask:
    """Tests for mask loading."""

    def test_binarized(self):
        """Test mask values are thresholded to 0 or 255."""
        mask = Image.new("L", (2, 1))
        mask.putpixel((0, 0), 127)
        mask.putpixel((1, 0), 128)

        result = load_mask(mask)

        assert result.mode == "L"
        assert result.getpixel((0, 0)) == 0
        assert result.getpixel((1, 0)) == 255

    def test_colour_mask(self):
        assert load_mask(Image.new("RGB", (2, 2), (255, 255, 255))).getpixel((0, 0)) == 255

    def test_missing_mask(self, tmp_path):
        with pytest.raises(SourceReadError, match="mask file not found"):
            load_mask(tmp_path / "none_mask.png")

    def test_oversized_mask_rejected(self, tmp_path, monkeypatch):
        path = tmp_path / "huge_mask.png"
        Image.new("L", (32, 48)).save(path)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(ValidationError, match="too large"):
            load_mask(path)

    def test_load_pair(self):
        pair = load_pair(Image.new("RGB", (4, 4)), Image.new("L", (4, 4), 255))

        assert pair.size == (4, 4)
        assert pair.mask is not None

    def test_load_pair_without_mask(self):
        assert load_pair(Image.new("RGB", (4, 4))).mask is None


class TestCodec:
    """Tests for decode/encode helpers."""

    def test_roundtrip_png(self):
        original = Image.new("RGB", (3, 2), (1, 2, 3))

        decoded = decode_image(encode_png(original))

        assert decoded.getpixel((2, 1)) == (1, 2, 3)

    def test_decode_garbage(self):
        with pytest.raises(SourceReadError, match="prediction"):
            decode_image(b"\x00\x01", name="prediction")

    def test_decode_oversized(self, monkeypatch):
        data = encode_png(Image.new("RGB", (32, 48)))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(ValidationError, match="prediction"):
            decode_image(data, name="prediction")


class TestDiscovery:
    """Tests for page and mask discovery."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("page01_mask.png", True),
            ("page01-mask.png", True),
            ("page01.mask.png", True),
            ("mask_page01.png", True),
            ("page01.png", False),
            ("masked_hero.png", False),
        ],
    )
    def test_is_mask_file(self, tmp_path, name, expected):
        assert is_mask_file(tmp_path / name) is expected

    def test_find_images_sorted(self, tmp_path):
        """Test pages are returned in filename order without masks."""
        for name in ("page10.png", "page02.JPG", "page01.tif", "page01_mask.png", "notes.txt"):
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "masks").mkdir()

        files = find_images(tmp_path)

        assert [f.name for f in files] == ["page01.tif", "page02.JPG", "page10.png"]

    def test_find_images_missing_dir(self, tmp_path):
        with pytest.raises(SourceReadError):
            find_images(tmp_path / "nope")

    def test_find_mask_sibling(self, tmp_path):
        image = tmp_path / "page01.jpg"
        image.write_bytes(b"")
        (tmp_path / "page01_mask.png").write_bytes(b"")

        assert find_mask(image) == tmp_path / "page01_mask.png"

    def test_find_mask_subdirectory(self, tmp_path):
        image = tmp_path / "page02.jpg"
        image.write_bytes(b"")
        (tmp_path / "masks").mkdir()
        (tmp_path / "masks" / "page02.mask.png").write_bytes(b"")

        assert find_mask(image) == tmp_path / "masks" / "page02.mask.png"

    def test_find_mask_none(self, tmp_path):
        image = tmp_path / "page03.jpg"
        image.write_bytes(b"")

        assert find_mask(image) is None
