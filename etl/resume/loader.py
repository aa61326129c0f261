"""
Document Text Loader - plain text from resume files.

Supports .txt, .md, .pdf (pypdf) and .docx (python-docx).

Extraction problems inside a readable file do not raise: the loader
returns an "Error parsing ..." placeholder instead, which downstream
chunking recognizes and refuses to index.
"""
import logging
from pathlib import Path
from typing import List
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

PDF_ERROR_PREFIX = "Error parsing PDF:"
DOCUMENT_ERROR_PREFIX = "Error parsing document:"


class DocumentTextLoader:
    """Load resume text from a file, choosing the reader by extension."""

    SUPPORTED_FORMATS = {'.txt', '.md', '.pdf', '.docx'}

    def load(self, file_path: str) -> str:
        """Return the document text, or an error placeholder.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the extension is unsupported
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        ext = path.suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            supported = ', '.join(sorted(self.SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported document format: {ext}. Supported formats: {supported}")

        logger.info(f"Loading document text from {file_path} (format: {ext})")

        if ext == '.pdf':
            return self._load_pdf(path)
        if ext == '.docx':
            return self._load_docx(path)
        return self._load_text(path)

    def _load_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            logger.error(f"File encoding issue in {path}: {e}")
            return f"{DOCUMENT_ERROR_PREFIX} {path.name} is not UTF-8 encoded"

    def _load_docx(self, path: Path) -> str:
        try:
            doc = Document(str(path))
        except (PackageNotFoundError, BadZipFile, ValueError, KeyError, OSError) as e:
            logger.error(f"Failed to open DOCX file {path}: {e}")
            return f"{DOCUMENT_ERROR_PREFIX} {e}"

        blocks: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        # Tables are common in resume layouts
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    blocks.append(' '.join(cells))

        text = '\n\n'.join(blocks)
        if not text.strip():
            logger.warning(f"Empty or minimal content in DOCX: {path}")
        return text

    def _load_pdf(self, path: Path) -> str:
        try:
            reader = PdfReader(path)
            pages = list(reader.pages)
        except (PyPdfError, ValueError, OSError) as e:
            logger.error(f"Failed to open PDF file {path}: {e}")
            return f"{PDF_ERROR_PREFIX} {e}"

        if not pages:
            return f"{PDF_ERROR_PREFIX} file has no pages"

        pages_text: List[str] = []
        for i, page in enumerate(pages):
            try:
                page_text = page.extract_text()
            except (PyPdfError, ValueError, KeyError) as e:
                logger.warning(f"Failed to extract text from page {i + 1}: {e}")
                continue
            if page_text and page_text.strip():
                pages_text.append(page_text.strip())

        text = '\n\n'.join(pages_text)
        if not text.strip():
            logger.warning(
                f"No text extracted from PDF {path}. "
                f"The PDF may be scanned images or have text extraction disabled."
            )
        logger.debug(f"Loaded PDF {path} ({len(pages)} pages, {len(text)} chars extracted)")
        return text
