"""
Output module for repoman.

Commands print human-readable Rich output by default; ``--json`` switches
them to JSONL (one JSON object per line) for piping into jq and friends.

Usage:
    from repoman.output import emit, emit_error

    emit(summary.details)                         # one line per detail
    emit_error("Not found", type="RepositoryNotFound")
"""

import json
import sys
from typing import Any, Iterable, Optional, Dict


def to_data(item: Any) -> Dict[str, Any]:
    if hasattr(item, 'to_dict'):
        return item.to_dict()
    if isinstance(item, dict):
        return item
    return {'value': str(item)}


def emit(items: Iterable[Any], err: bool = False) -> None:
    """
    Emit items as JSONL.

    Args:
        items: Items to emit (should have to_dict() method or be dicts)
        err: If True, output to stderr instead of stdout
    """
    stream = sys.stderr if err else sys.stdout
    for item in items:
        print(json.dumps(to_data(item), ensure_ascii=False, default=str), file=stream, flush=True)


def emit_one(item: Any) -> None:
    emit([item])


def emit_error(
    message: str,
    type: str = "error",
    exit_code: Optional[int] = None,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """Emit a structured error object to stderr."""
    payload: Dict[str, Any] = {'error': message, 'type': type}
    if exit_code is not None:
        payload['exit_code'] = exit_code
    if context:
        payload['context'] = context
    print(json.dumps(payload, ensure_ascii=False), file=sys.stderr, flush=True)
