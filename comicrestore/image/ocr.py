"""Text extraction delegate using RapidOCR."""

import threading
from typing import Any

import numpy as np

from comicrestore.core.models import PixelBuffer
from comicrestore.exceptions import ConfigurationError
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)


class RapidOCRTextExtractor:
    """Callable text extractor for the post-processor.

    The ONNX engine is expensive to create, so one engine is shared by all
    instances and created on first use.
    """

    _engine: Any = None
    _init_lock = threading.Lock()

    @classmethod
    def ensure_available(cls) -> None:
        """Fail early when the optional OCR dependency is missing.

        Raises:
            ConfigurationError: If rapidocr is not installed
        """
        try:
            import rapidocr  # noqa: F401
        except ImportError as e:
            raise ConfigurationError(
                "OCR requires the optional 'rapidocr' package. "
                "Install with: pip install 'comicrestore[ocr]'"
            ) from e

    @classmethod
    def get_engine(cls) -> Any:
        if cls._engine is None:
            with cls._init_lock:
                if cls._engine is None:
                    cls.ensure_available()
                    from rapidocr import RapidOCR

                    log.debug("Creating shared OCR engine")
                    cls._engine = RapidOCR(params={"Global.log_level": "warning"})
        return cls._engine

    def __call__(self, buffer: PixelBuffer) -> str:
        result = self.get_engine()(np.asarray(buffer.convert("RGB")))
        texts = list(result.txts) if result.txts is not None else []
        log.debug("OCR completed", blocks=len(texts))
        return "\n".join(texts)
