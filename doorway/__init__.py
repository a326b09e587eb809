# python
"""doorway package"""
__version__ = "0.1"

from doorway.env import load_env

# Load .env values at import time so APP_* settings come from python-dotenv.
load_env()
