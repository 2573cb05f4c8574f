import re
import zipfile
from typing import List, Optional

from docx import Document as open_document
from docx.opc.exceptions import PackageNotFoundError

from planparser.core.errors import ExtractionError
from planparser.core.logging import get_logger
from planparser.models.results import ExtractionResult, FormattedElement, ListBlock
from planparser.services.extraction.preprocess import TextPreprocessor
from planparser.services.extraction.validators import validate_docx

logger = get_logger("docx_extractor")

_HEADING_STYLE = re.compile(r"^(?:Heading|Заголовок)\s*(\d+)$", re.IGNORECASE)


def heading_level(style_name: str) -> Optional[int]:
    if style_name == "Title":
        return 1
    match = _HEADING_STYLE.match(style_name.strip())
    return int(match.group(1)) if match else None


class DOCXExtractor:
    document_type = "docx"

    def __init__(self, preprocessor: TextPreprocessor, structured: bool = True):
        self.preprocessor = preprocessor
        self.structured = structured

    def extract(self, path: str) -> ExtractionResult:
        size = validate_docx(path)
        try:
            document = open_document(path)
        except (PackageNotFoundError, KeyError, ValueError, zipfile.BadZipFile) as e:
            raise ExtractionError(f"Could not read DOCX: {e}") from e

        elements: List[FormattedElement] = []
        lists: List[ListBlock] = []
        current_list = None

        for paragraph in document.paragraphs:
            text = paragraph.text.strip()
            if not text:
                current_list = None
                continue
            style = paragraph.style.name if paragraph.style is not None else ""
            level = heading_level(style or "")
            if level:
                elements.append(FormattedElement(text=text, type="heading", heading_level=level))
                current_list = None
            elif (style or "").startswith("List"):
                ordered = "Number" in style
                if current_list is None or current_list.ordered != ordered:
                    current_list = ListBlock(ordered=ordered)
                    lists.append(current_list)
                current_list.items.append(text)
                elements.append(FormattedElement(text=text, type="list_item"))
            else:
                elements.append(FormattedElement(text=text, type="paragraph"))
                current_list = None

        tables = []
        for table in document.tables:
            rows = [[cell.text.strip() for cell in row.cells] for row in table.rows]
            if rows:
                tables.append(rows)

        if self.structured:
            body = self.preprocessor.render_structure(elements)
        else:
            body = "\n\n".join(element.text for element in elements)
        table_text = "\n\n".join("\n".join(" | ".join(row) for row in rows) for rows in tables)
        text = self.preprocessor.normalize("\n\n".join(part for part in (body, table_text) if part))

        properties = document.core_properties
        metadata = {"file_size": size}
        if properties.title:
            metadata["title"] = properties.title
        if properties.author:
            metadata["author"] = properties.author

        logger.info(f"Extracted {len(text)} chars, {len(elements)} elements and {len(tables)} table(s) from DOCX")
        return ExtractionResult(
            text=text,
            formatted_elements=elements,
            tables=tables,
            lists=lists,
            has_tables=bool(tables),
            page_or_section_count=len(document.sections),
            document_type=self.document_type,
            metadata=metadata,
        )
