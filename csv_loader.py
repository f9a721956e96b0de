import csv
import io
import os
import logging
from typing import BinaryIO, Iterator, List

from pydantic import BaseModel

logger = logging.getLogger("route_assets_service")

class CSVRow(BaseModel):
    line_number: int
    fields: List[str]

class RecipientCSVLoader:
    """
    Streams raw recipient rows out of a delimited file.

    Expected column order: name, wallet address, USD amount, asset symbol.
    Blank lines and lines starting with the comment prefix are skipped;
    field validation is left to the recipient store.
    """

    def __init__(self, base_path: str = ".", comment_prefix: str = "//", delimiter: str = ","):
        self.base_path = base_path
        self.comment_prefix = comment_prefix
        self.delimiter = delimiter

    def iter_rows(self, source: BinaryIO) -> Iterator[CSVRow]:
        text = io.TextIOWrapper(source, encoding="utf-8-sig", newline="")
        # physical number of the last line handed to the reader
        last_line = [0]

        def content_lines():
            for number, line in enumerate(text, start=1):
                last_line[0] = number
                if line.startswith(self.comment_prefix):
                    continue
                yield line

        try:
            reader = csv.reader(content_lines(), delimiter=self.delimiter)
            for fields in reader:
                if not any(field.strip() for field in fields):
                    continue
                yield CSVRow(line_number=last_line[0], fields=fields)
        finally:
            # leave the caller's stream open
            text.detach()

    def iter_file(self, filename: str) -> Iterator[CSVRow]:
        filepath = os.path.join(self.base_path, filename)
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"CSV file not found: {filepath}")

        logger.info(f"Reading recipients from {filepath}")
        with open(filepath, mode="rb") as f:
            yield from self.iter_rows(f)
