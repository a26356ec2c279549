"""Configuration management for the larder core."""
import os
from typing import Final
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)

# File Paths
BASE_DIR: Final[Path] = Path(__file__).parent.parent
DATA_DIR: Final[Path] = Path(os.getenv('LARDER_DATA_DIR', str(BASE_DIR / 'data')))

# Persistence
QUARANTINE_LIMIT: Final[int] = int(os.getenv('LARDER_QUARANTINE_LIMIT', '3'))
STRICT_LOGS: Final[bool] = os.getenv('LARDER_STRICT_LOGS', 'False').lower() == 'true'

# Undo window after destructive pantry/shopping actions
UNDO_SECONDS: Final[int] = int(os.getenv('LARDER_UNDO_SECONDS', '10'))

# Logging
LOG_LEVEL: Final[str] = os.getenv('LARDER_LOG_LEVEL', 'INFO').upper()
