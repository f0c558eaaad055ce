"""
discord-delete - delete your Discord message history

Walks every open DM, every relationship and every guild the account belongs
to, searches for messages the account wrote and deletes them one at a time,
backing off whenever Discord asks it to.
"""

__version__ = "1.0.0"

from .config import Settings, load_token
from .enumerator import Enumerator
from .models import RunCounters

__all__ = ['Enumerator', 'RunCounters', 'Settings', 'load_token', '__version__']
