from pathlib import Path

from larder.utilities.config import DATA_DIR as CONFIG_DATA_DIR

# Centralized paths for data files (single source of truth)
DATA_DIR: Path = Path(CONFIG_DATA_DIR).resolve()
STORE_DIR = DATA_DIR / 'store'
EXPORT_DIR = DATA_DIR / 'exports'

__all__ = ['DATA_DIR', 'STORE_DIR', 'EXPORT_DIR']
