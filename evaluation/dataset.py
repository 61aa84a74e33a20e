"""Loading of the labeled evaluation dataset."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from schemas.models import EvalDataset

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """The evaluation dataset is missing or malformed."""


def load_dataset(path: Path | str) -> EvalDataset:
    """
    Load and validate an evaluation dataset.

    Args:
        path: JSON file with ``metadata`` and ``queries``

    Returns:
        Validated EvalDataset

    Raises:
        DatasetError: If the file is missing, not JSON, or fails validation
    """
    path = Path(path)
    if not path.exists():
        raise DatasetError(f"Evaluation dataset not found at {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DatasetError(f"Evaluation dataset is not valid JSON: {e}") from e

    try:
        dataset = EvalDataset.model_validate(raw)
    except ValidationError as e:
        raise DatasetError(f"Evaluation dataset is invalid: {e}") from e

    ids = [q.id for q in dataset.queries]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise DatasetError(f"Duplicate query ids in dataset: {', '.join(duplicates)}")

    declared = dataset.metadata.total_queries
    if declared is not None and declared != len(dataset.queries):
        logger.warning(
            f"Dataset declares {declared} queries but contains {len(dataset.queries)}"
        )

    logger.info(f"Loaded {len(dataset.queries)} evaluation queries from {path}")
    return dataset
