"""
Text recognition for scanned receipts.
Wraps Tesseract OCR with OpenCV preprocessing and PyMuPDF for PDF uploads.
"""

import io
import logging
from pathlib import Path
from typing import Optional

import cv2
import fitz  # PyMuPDF
import numpy as np
import pytesseract
from PIL import Image

from .config import settings
from .exceptions import OCRError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.bmp', '.tiff', '.tif'}
PDF_EXTENSIONS = {'.pdf'}


class TextRecognizer:
    """Turns receipt images and PDFs into raw text."""

    SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS | PDF_EXTENSIONS

    def __init__(self):
        """Initialize the recognizer and probe for Tesseract."""
        self.logger = logger

        try:
            pytesseract.get_tesseract_version()
            self.tesseract_available = True
            self.logger.info("Tesseract OCR is available")
        except Exception as e:
            self.tesseract_available = False
            self.logger.warning(f"Tesseract OCR not available: {e}")

    def recognize(self, content: bytes, filename: str, language: Optional[str] = None) -> str:
        """Extract raw text from an uploaded receipt.

        Args:
            content: Raw file content as bytes
            filename: Original filename, used to pick the decoder
            language: Tesseract language identifier

        Returns:
            Recognized text (possibly empty)

        Raises:
            OCRError: If recognition fails for any reason
        """
        language = language or settings.OCR_LANGUAGE
        file_ext = Path(filename).suffix.lower()

        if file_ext in PDF_EXTENSIONS:
            return self._recognize_pdf(content, language)
        return self._recognize_image(content, language)

    def _recognize_pdf(self, content: bytes, language: str) -> str:
        """Read the text layer of the first PDF page, falling back to OCR."""
        try:
            pdf_document = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            self.logger.error(f"Could not open PDF: {str(e)}")
            raise OCRError(f"Could not open PDF: {str(e)}")

        try:
            if pdf_document.page_count == 0:
                raise OCRError("PDF file is empty")

            # Receipts are usually single page
            page = pdf_document[0]
            text = page.get_text()

            if text.strip():
                return text

            self.logger.info("No text found in PDF, attempting OCR")
            pix = page.get_pixmap(matrix=fitz.Matrix(2.0, 2.0))
            img_data = pix.tobytes("png")
        finally:
            pdf_document.close()

        return self._recognize_image(img_data, language)

    def _recognize_image(self, content: bytes, language: str) -> str:
        """Run Tesseract over a preprocessed image."""
        if not self.tesseract_available:
            raise OCRError("OCR not available - Tesseract not installed")

        try:
            image = Image.open(io.BytesIO(content)).convert("RGB")
            cv_image = cv2.cvtColor(np.array(image), cv2.COLOR_RGB2BGR)
            processed_image = self._preprocess_image(cv_image)

            text = pytesseract.image_to_string(processed_image, lang=language)
        except Exception as e:
            self.logger.error(f"OCR Error: {str(e)}")
            raise OCRError(f"Failed to extract text from image: {str(e)}")

        self.logger.info(f"Recognized {len(text)} characters of text")
        return text

    def _preprocess_image(self, image: np.ndarray) -> np.ndarray:
        """Preprocess image for better OCR accuracy.

        Args:
            image: Input image as numpy array

        Returns:
            Preprocessed image
        """
        try:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
            blurred = cv2.GaussianBlur(gray, (5, 5), 0)
            thresh = cv2.adaptiveThreshold(
                blurred, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 11, 2
            )
            kernel = np.ones((1, 1), np.uint8)
            return cv2.morphologyEx(thresh, cv2.MORPH_CLOSE, kernel)

        except Exception as e:
            self.logger.warning(f"Image preprocessing failed, using original: {str(e)}")
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
