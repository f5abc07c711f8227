"""Catalog provider - loads the closed item set once at startup."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

from models.ranking import CatalogItem

logger = logging.getLogger(__name__)

# Highest national dex number introduced by each generation
GENERATION_UPPER_BOUNDS: Dict[int, int] = {
    1: 151,
    2: 251,
    3: 386,
    4: 493,
    5: 649,
    6: 721,
    7: 809,
    8: 905,
    9: 1025,
}


class CatalogError(ValueError):
    """Raised when the catalog file is missing or malformed."""
    pass


def parse_catalog(records: Iterable[Mapping[str, Any]]) -> List[CatalogItem]:
    """
    Build catalog items from ``{id, name, display_meta}`` records.

    Raises:
        CatalogError: On a record without id/name or a repeated id
    """
    items: List[CatalogItem] = []
    seen = set()
    for position, record in enumerate(records):
        try:
            item_id = int(record["id"])
            name = str(record["name"])
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Invalid catalog record at position {position}: {e}") from e
        if item_id in seen:
            raise CatalogError(f"Duplicate catalog id {item_id}")
        seen.add(item_id)
        items.append(CatalogItem(id=item_id, name=name, display_meta=dict(record.get("display_meta") or {})))
    return items


def load_catalog(path: Union[str, Path]) -> List[CatalogItem]:
    """Load catalog items from a JSON file holding a list of records."""
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}")

    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog file {path} is not valid JSON: {e}") from e

    if not isinstance(records, list):
        raise CatalogError(f"Catalog file {path} must contain a list of items")

    items = parse_catalog(records)
    logger.info(f"Loaded {len(items)} catalog items from {path}")
    return items


def filter_by_generation(item_ids: Iterable[int], generation: int) -> List[int]:
    """
    Ids available up to and including ``generation``.

    Generation 0 means no filter. Later generations include every earlier
    one, so generation 2 keeps ids 1-251.

    Raises:
        ValueError: If the generation is unknown
    """
    item_ids = list(item_ids)
    if generation == 0:
        return item_ids
    upper = GENERATION_UPPER_BOUNDS.get(generation)
    if upper is None:
        raise ValueError(f"Unknown generation {generation}, expected 0-{max(GENERATION_UPPER_BOUNDS)}")
    return [item_id for item_id in item_ids if item_id <= upper]
