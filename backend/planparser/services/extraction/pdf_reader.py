import fitz  # PyMuPDF

from planparser.core.errors import ExtractionError
from planparser.core.logging import get_logger
from planparser.models.results import ExtractionResult
from planparser.services.extraction.preprocess import TextPreprocessor, analyze_lines, extract_tables, looks_tabular
from planparser.services.extraction.validators import validate_pdf

logger = get_logger("pdf_extractor")


class PDFExtractor:
    document_type = "pdf"

    def __init__(self, preprocessor: TextPreprocessor):
        self.preprocessor = preprocessor

    def extract(self, path: str) -> ExtractionResult:
        size = validate_pdf(path)
        try:
            with fitz.open(path) as doc:
                pages = [page.get_text("text") for page in doc]
                page_count = doc.page_count
                metadata = {k: v for k, v in (doc.metadata or {}).items() if v}
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(f"Could not read PDF: {e}") from e

        raw_text = "\n\n".join(pages)
        text = self.preprocessor.normalize(raw_text)
        elements, lists = analyze_lines(text)
        tables = extract_tables(raw_text)
        metadata["file_size"] = size

        logger.info(f"Extracted {len(text)} chars from {page_count} PDF page(s)")
        return ExtractionResult(
            text=text,
            formatted_elements=elements,
            tables=tables,
            lists=lists,
            has_tables=bool(tables) or looks_tabular(raw_text),
            page_or_section_count=page_count,
            document_type=self.document_type,
            metadata=metadata,
        )
