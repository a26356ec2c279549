"""
Export and Import of the whole larder state.

Export format: {"app", "schema", "exportedAt", "state"}, pretty-printed JSON.
Import accepts that wrapper or a bare state object and always re-runs the
repair pipeline before the state is used.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple

from larder.domain.State import AppState
from larder.infra.State_Repository import parse_state_text, post_load_repair
from larder.infra.migrations import ensure_state_shape
from larder.logic.audit.integrity import AuditReport
from larder.utilities.constants import APP_NAME, CURRENT_SCHEMA
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import to_iso, utc_now

logger = logging.getLogger(__name__)

__all__ = ['export_state_json', 'import_state_text', 'export_to_file', 'import_from_file']


def export_state_json(state: AppState, now: datetime, pretty: bool = True) -> str:
    payload = {
        'app': APP_NAME,
        'schema': CURRENT_SCHEMA,
        'exportedAt': to_iso(now),
        'state': state.to_dict(),
    }
    return json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False)


def import_state_text(text: str, now: datetime, new_id: Callable[[], str] = default_new_id,
                      strict_logs: bool = False) -> Tuple[AppState, AuditReport]:
    """Parse exported text (wrapper or bare state) into a repaired AppState.

    Raises ValueError when the text is not a JSON object.
    """
    parsed = parse_state_text(text)
    maybe_state = parsed.get('state') if isinstance(parsed.get('state'), dict) else parsed
    if maybe_state is not parsed and parsed.get('app') not in (None, APP_NAME):
        logger.warning(f"Importing export of unknown app {parsed.get('app')!r}")
    state = ensure_state_shape(maybe_state, new_id, now)
    report = post_load_repair(state, now, new_id, strict_logs)
    logger.info(f"Imported state: {state}")
    return state, report


def export_to_file(state: AppState, output_path: Optional[Path] = None, now: Optional[datetime] = None,
                   export_dir: Optional[Path] = None) -> Path:
    """Write an export file; default name is timestamped inside ``export_dir``."""
    now = now or utc_now()
    if output_path is None:
        timestamp = now.strftime("%Y%m%d_%H%M%S")
        output_path = Path(export_dir or '.') / f"{APP_NAME}_export_{timestamp}.json"
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(export_state_json(state, now))
    logger.info(f"Exported state to {output_path}")
    return output_path


def import_from_file(input_path: Path, now: Optional[datetime] = None,
                     new_id: Callable[[], str] = default_new_id,
                     strict_logs: bool = False) -> Tuple[AppState, AuditReport]:
    with open(input_path, 'r', encoding='utf-8') as f:
        text = f.read()
    return import_state_text(text, now or utc_now(), new_id, strict_logs)
