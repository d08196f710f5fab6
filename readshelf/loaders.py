"""Load book records from YAML or JSON files."""

import json
import logging
from pathlib import Path
from typing import Any, List

import yaml

from .collection import BookCollection
from .models import BookRecord

logger = logging.getLogger(__name__)


def load_records(path: Path) -> List[BookRecord]:
    """
    Read book records from a file.

    The file holds either a list of book mappings or a mapping with a
    ``books`` list. ``.json`` files are parsed as JSON, everything else as
    YAML.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the content is not a list of valid book entries
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Books file not found: {path}")

    with open(path, encoding='utf-8') as f:
        if path.suffix.lower() == '.json':
            data: Any = json.load(f)
        else:
            data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get('books')
    if data is None:
        data = []
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of books in {path}")

    records = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Book entry #{i + 1} in {path} is not a mapping")
        try:
            records.append(BookRecord.from_dict(entry))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid book entry #{i + 1} in {path}: {e}") from e

    logger.debug(f"Loaded {len(records)} books from {path}")
    return records


def load_collection(path: Path) -> BookCollection:
    """
    Build a collection from a books file.

    Entries repeating an earlier id are skipped with a warning.
    """
    collection = BookCollection()
    with collection.batch():
        for record in load_records(path):
            if record.id in collection:
                logger.warning(f"Skipping duplicate book id '{record.id}' in {path}")
                continue
            collection.add(record)
    return collection
