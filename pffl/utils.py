"""File I/O and small helpers shared by the store, config and CLI tools."""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('pffl.utils')


def load_json(path: Path | str, schema: type[T] | None = None) -> Any | T:
    """
    Read a JSON document, optionally validating it against a pydantic model.

    Args:
        path: File to read
        schema: Model to validate with; the validated instance is returned

    Returns:
        The parsed document, or a schema instance when schema is given

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
        ValueError: If the document does not match the schema

    Example:
        from pffl.schemas import LeagueFile
        league = load_json('data/league.json', schema=LeagueFile)
    """
    path = Path(path)
    if not path.exists():
        logger.error(f'File not found: {path}')
        raise FileNotFoundError(f'File not found: {path}')

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        logger.error(f'Invalid JSON in {path}: {e.msg} at position {e.pos}')
        raise json.JSONDecodeError(f'Invalid JSON in {path}: {e.msg}', e.doc, e.pos) from e

    if schema is None:
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        logger.error(f'{path} does not match {schema.__name__}: {e.error_count()} errors')
        raise ValueError(f'Schema validation failed for {path}:\n{e}') from e


def save_json(path: Path | str, data: Any, indent: int = 2) -> None:
    """
    Write a JSON document atomically.

    The document goes to '<name>.tmp' next to the target and is then renamed
    over it, so readers see either the old league file or the new one.
    Pydantic models are dumped in JSON mode (datetimes as ISO strings).

    Raises:
        TypeError: If data is not JSON-serializable
        OSError: If the file cannot be written
    """
    path = Path(path)
    payload = data.model_dump(mode='json') if isinstance(data, BaseModel) else data
    try:
        text = json.dumps(payload, indent=indent, ensure_ascii=False)
    except TypeError as e:
        logger.error(f'Data for {path} is not JSON-serializable: {e}')
        raise

    tmp_path = path.with_suffix(path.suffix + '.tmp')
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(text, encoding='utf-8')
        tmp_path.replace(path)
    except OSError as e:
        logger.error(f'Failed to write {path}: {e}')
        raise
    logger.debug(f'Saved {path}')


def new_id(prefix: str) -> str:
    """Short unique record id, e.g. 'fx_3f2a9c1b0d4e'."""
    return f'{prefix}_{uuid.uuid4().hex[:12]}'


def round_points(value: float) -> float:
    """Round a points value for storage and display."""
    return round(float(value), 2)
