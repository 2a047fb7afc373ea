import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from ecosync.models.repository import TrackedRepository

logger = structlog.get_logger('storage')


def load_tracked(filepath: str | Path) -> list[TrackedRepository]:
    """
    Loads the tracked repository ledger written by the discovery layer.

    One JSON object per line; duplicates of the same (name, organization)
    keep the last record. Unparseable lines are logged and skipped.
    """
    path = Path(filepath)
    if not path.exists():
        logger.warning('Tracked repository file not found', path=str(path))
        return []

    records: dict[tuple[str, str], TrackedRepository] = {}
    with path.open(encoding='utf-8') as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                tracked = TrackedRepository.model_validate_json(line)
            except ValidationError as e:
                logger.warning(
                    'Skipping invalid tracked repository',
                    path=str(path), line=lineno, errors=e.error_count(),
                )
                continue
            records[tracked.key] = tracked
    return list(records.values())


def save_tracked(filepath: str | Path, repositories: list[TrackedRepository]) -> None:
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as f:
        for tracked in repositories:
            f.write(json.dumps(tracked.model_dump(mode='json')) + '\n')
