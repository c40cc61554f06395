"""Bulk import of seed documents from YAML."""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from beartype import beartype

from careerdesk.storage.document_store import DocumentStore, DuplicateDocumentError
from careerdesk.utils.dates import to_iso

logger = logging.getLogger(__name__)


def _to_json_value(value: Any) -> Any:
    """Turn the date objects PyYAML produces back into ISO strings."""
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    return value


@beartype
def parse_seed(yaml_content: str) -> dict[str, list[dict[str, Any]]]:
    """Parse seed YAML of the form ``{collection: [document, ...]}``.

    Args:
        yaml_content: YAML text.

    Returns:
        Documents per collection name.

    Raises:
        ValueError: If the content does not have the expected shape.
    """
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        msg = f"Invalid seed file: {e}"
        raise ValueError(msg) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = "Invalid seed file: expected a mapping of collection names"
        raise ValueError(msg)

    seed: dict[str, list[dict[str, Any]]] = {}
    for collection, documents in data.items():
        if not isinstance(collection, str):
            msg = f"Invalid seed file: collection name {collection!r} must be a string"
            raise ValueError(msg)
        if not isinstance(documents, list):
            msg = f"Invalid seed file: '{collection}' must be a list of documents"
            raise ValueError(msg)
        for i, document in enumerate(documents):
            if not isinstance(document, dict):
                msg = (
                    f"Invalid document at index {i} in '{collection}': "
                    f"expected a mapping, got {type(document).__name__}"
                )
                raise ValueError(msg)
        seed[collection] = [_to_json_value(document) for document in documents]
    return seed


@beartype
def load_seed_file(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load and parse a seed YAML file."""
    return parse_seed(path.read_text(encoding="utf-8"))


async def _check_ids(
    store: DocumentStore,
    seed: dict[str, list[dict[str, Any]]],
) -> None:
    for collection, documents in seed.items():
        taken = [doc.get("id") for doc in await store.find(collection)]
        for document in documents:
            document_id = document.get("id")
            if not document_id:
                continue
            if document_id in taken:
                msg = f"Document '{document_id}' already exists in '{collection}'"
                raise DuplicateDocumentError(msg)
            taken.append(document_id)


@beartype
async def import_documents(
    store: DocumentStore,
    seed: dict[str, list[dict[str, Any]]],
) -> dict[str, int]:
    """Create every seed document in its collection.

    Documents keep their ``id`` if the seed gives one; otherwise a new one is
    assigned. Seed ids are checked against the store and against each other
    before anything is written, so a clashing seed leaves the store untouched.
    The import is not a transaction: a write error partway through still
    leaves the documents created before it.

    Returns:
        Number of documents created per collection.

    Raises:
        DuplicateDocumentError: If a seed id is already taken.
    """
    await _check_ids(store, seed)

    counts: dict[str, int] = {}
    for collection, documents in seed.items():
        for document in documents:
            await store.create(collection, document)
        counts[collection] = len(documents)
        logger.info("Imported %d documents into %s", len(documents), collection)
    return counts
