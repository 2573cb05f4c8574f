import re
from typing import List

from planparser.models.results import ValidationResult

MIN_CONTENT_LENGTH = 100
MIN_CYRILLIC_RATIO = 0.1

_LETTER = re.compile(r"[^\W\d_]")
_CYRILLIC = re.compile(r"[Ѐ-ӿ]")


class DocumentValidator:
    """Advisory checks on extracted text. Only empty content makes it invalid."""

    def __init__(self, check_cyrillic: bool = False):
        self.check_cyrillic = check_cyrillic

    def validate(self, content: str) -> ValidationResult:
        issues: List[str] = []
        warnings: List[str] = []
        suggestions: List[str] = []
        score = 1.0

        stripped = (content or "").strip()
        if not stripped:
            return ValidationResult(is_valid=False, issues=["Document content is empty"], quality_score=0.0)

        if len(stripped) < MIN_CONTENT_LENGTH:
            warnings.append(f"Document content is very short ({len(stripped)} characters)")
            suggestions.append("Upload a document with a fuller project description")
            score *= 0.5

        if "\x00" in content:
            warnings.append("Document contains null bytes")
            score *= 0.5

        if self.check_cyrillic:
            letters = _LETTER.findall(stripped)
            if letters:
                ratio = len(_CYRILLIC.findall(stripped)) / len(letters)
                if ratio < MIN_CYRILLIC_RATIO:
                    suggestions.append("Document has little Cyrillic text; check the document language")

        return ValidationResult(
            is_valid=True,
            issues=issues,
            quality_score=score,
            warnings=warnings,
            suggestions=suggestions,
        )
