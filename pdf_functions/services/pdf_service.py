from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from pathlib import Path
from typing import List
import logging

from pdf_functions.core.errors import InvalidInputFormat

logger = logging.getLogger(__name__)


def open_pdf(path: Path) -> PdfReader:
    """Open ``path`` read-only, mapping parse failures to InvalidInputFormat."""
    try:
        reader = PdfReader(str(path))
        # Page tree problems only surface once the pages are walked
        len(reader.pages)
    except (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError) as e:
        raise InvalidInputFormat(f"{Path(path).name} is not a valid PDF: {e}") from e
    return reader


class DocumentAssembler:
    def merge(self, inputs: List[Path], output_path: Path) -> Path:
        """Merge PDFs into ``output_path``, copying pages in input order."""
        if not inputs:
            raise InvalidInputFormat("No PDF documents to merge")

        merger = PdfWriter()
        for pdf_path in inputs:
            reader = open_pdf(pdf_path)
            for page in reader.pages:
                merger.add_page(page)

        with open(output_path, "wb") as output:
            merger.write(output)

        logger.info("Merged %d documents (%d pages) into %s", len(inputs), len(merger.pages), output_path)
        return output_path

document_assembler = DocumentAssembler()
