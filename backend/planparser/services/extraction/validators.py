import os
import zipfile

from planparser.core.errors import DocumentValidationError

MB = 1024 * 1024
PDF_MAX_SIZE = 100 * MB
DOCX_MAX_SIZE = 50 * MB
TEXT_MAX_SIZE = 10 * MB

PDF_MAGIC = b"%PDF"
DOCX_REQUIRED_PARTS = ("word/document.xml", "word/_rels/document.xml.rels")


def check_file(path: str, max_size: int, label: str) -> int:
    if not os.path.isfile(path):
        raise DocumentValidationError(f"{label} file not found")
    size = os.path.getsize(path)
    if size == 0:
        raise DocumentValidationError(f"{label} file is empty")
    if size > max_size:
        raise DocumentValidationError(f"{label} file exceeds the {max_size // MB} MB limit")
    return size


def validate_pdf(path: str) -> int:
    size = check_file(path, PDF_MAX_SIZE, "PDF")
    with open(path, "rb") as fh:
        header = fh.read(len(PDF_MAGIC))
    if header != PDF_MAGIC:
        raise DocumentValidationError("File is not a valid PDF (missing %PDF header)")
    return size


def validate_docx(path: str) -> int:
    size = check_file(path, DOCX_MAX_SIZE, "DOCX")
    if not zipfile.is_zipfile(path):
        raise DocumentValidationError("File is not a valid DOCX archive")
    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile as e:
        raise DocumentValidationError("DOCX archive is corrupted") from e
    missing = [part for part in DOCX_REQUIRED_PARTS if part not in names]
    if missing:
        raise DocumentValidationError(f"DOCX archive is missing {', '.join(missing)}")
    return size


def validate_text(path: str) -> int:
    return check_file(path, TEXT_MAX_SIZE, "Text")
