"""
Utilities for loading environment variables from the project .env file.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@lru_cache(maxsize=1)
def load_env(dotenv_path: Optional[Path] = None) -> Path:
    """
    Load APP_* settings from a .env file once per path.
    Defaults to the .env in the current working directory.
    Values already present in the process environment win over the file.
    """
    path = Path(dotenv_path) if dotenv_path else Path.cwd() / ".env"
    load_dotenv(dotenv_path=path, override=False)
    return path
