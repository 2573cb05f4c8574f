from planparser.core.logging import get_logger
from planparser.models.results import ExtractionResult
from planparser.services.extraction.preprocess import TextPreprocessor, analyze_lines, extract_tables, looks_tabular
from planparser.services.extraction.validators import validate_text

logger = get_logger("text_extractor")

# cp1251 is the usual legacy encoding for Russian plain-text documents
FALLBACK_ENCODING = "cp1251"


class TextExtractor:
    document_type = "text"

    def __init__(self, preprocessor: TextPreprocessor):
        self.preprocessor = preprocessor

    def extract(self, path: str) -> ExtractionResult:
        size = validate_text(path)
        with open(path, "rb") as fh:
            raw_bytes = fh.read()

        encoding = "utf-8-sig"
        try:
            raw_text = raw_bytes.decode(encoding)
        except UnicodeDecodeError:
            encoding = FALLBACK_ENCODING
            raw_text = raw_bytes.decode(encoding, errors="replace")

        text = self.preprocessor.normalize(raw_text)
        elements, lists = analyze_lines(text)
        tables = extract_tables(raw_text)
        sections = len([block for block in text.split("\n\n") if block.strip()])

        logger.info(f"Read {size} bytes of {encoding} text, {sections} section(s)")
        return ExtractionResult(
            text=text,
            formatted_elements=elements,
            tables=tables,
            lists=lists,
            has_tables=bool(tables) or looks_tabular(raw_text),
            page_or_section_count=sections,
            document_type=self.document_type,
            metadata={"file_size": size, "encoding": encoding},
        )
