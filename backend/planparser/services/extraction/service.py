import os
from typing import Optional

from planparser.core.errors import ExtractionError, UnsupportedDocumentError
from planparser.core.logging import get_logger
from planparser.models.results import ExtractionResult
from planparser.services.extraction.docx_reader import DOCXExtractor
from planparser.services.extraction.pdf_reader import PDFExtractor
from planparser.services.extraction.preprocess import TextPreprocessor
from planparser.services.extraction.text_reader import TextExtractor

logger = get_logger("extraction")

CONTENT_TYPES = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "text/plain": "text",
    "text/markdown": "text",
}

EXTENSIONS = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".txt": "text",
    ".text": "text",
    ".md": "text",
}


def detect_document_type(filename: str, content_type: Optional[str] = None) -> str:
    """Declared content type wins when we know it; otherwise go by extension."""
    if content_type:
        declared = content_type.split(";")[0].strip().lower()
        if declared in CONTENT_TYPES:
            return CONTENT_TYPES[declared]

    extension = os.path.splitext(filename or "")[1].lower()
    if extension in EXTENSIONS:
        return EXTENSIONS[extension]

    shown = extension or content_type or "unknown"
    raise UnsupportedDocumentError(f"Unsupported document type: {shown}")


class ExtractionService:
    def __init__(self, preprocessor: Optional[TextPreprocessor] = None, structured_docx: bool = True):
        preprocessor = preprocessor or TextPreprocessor()
        self._extractors = {
            "pdf": PDFExtractor(preprocessor),
            "docx": DOCXExtractor(preprocessor, structured=structured_docx),
            "text": TextExtractor(preprocessor),
        }

    def extract(self, path: str, filename: Optional[str] = None, content_type: Optional[str] = None) -> ExtractionResult:
        document_type = detect_document_type(filename or path, content_type)
        logger.info(f"Extracting {filename or path} as {document_type}")
        result = self._extractors[document_type].extract(path)
        if not result.text.strip():
            raise ExtractionError("No text could be extracted from the document")
        return result
