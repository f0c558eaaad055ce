"""Run configuration and token loading."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Union

from .errors import AuthenticationError, ValidationError
from .transport import DEFAULT_API_BASE

TOKEN_ENV = "DISCORD_TOKEN"
API_BASE_ENV = "DISCORD_API_BASE"

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Everything the engine needs from the outside world."""

    token: str
    dry_run: bool = False
    skip_channels: FrozenSet[str] = field(default_factory=frozenset)
    verbose: bool = False
    # Skip to the next context when one fails instead of aborting the run
    keep_going: bool = False
    api_base: str = field(default_factory=lambda: os.environ.get(API_BASE_ENV, DEFAULT_API_BASE))
    timeout: float = 30

    def __post_init__(self):
        if not self.token:
            raise AuthenticationError("No Discord token provided")
        self.skip_channels = parse_skip_channels(self.skip_channels)
        if self.timeout <= 0:
            raise ValidationError("Invalid timeout", details=repr(self.timeout))


def parse_skip_channels(value: Union[None, str, Iterable[str]]) -> FrozenSet[str]:
    """Accept ``"123, 456"`` (as passed to --skip) or any iterable of IDs."""
    if not value:
        return frozenset()
    if isinstance(value, str):
        value = value.split(',')
    ids = frozenset(str(v).strip() for v in value if str(v).strip())
    for channel_id in ids:
        if not channel_id.isdigit():
            raise ValidationError("Invalid channel ID to skip", details=repr(channel_id))
    return ids


def load_token(token_arg: Optional[str] = None, env_file: Union[str, Path] = '.env') -> str:
    """Load the Discord token.

    Priority:
        1. explicit argument (--token)
        2. DISCORD_TOKEN environment variable
        3. DISCORD_TOKEN= line in a .env file
    """
    if token_arg:
        logger.info("Using token from command-line argument")
        return token_arg

    if os.environ.get(TOKEN_ENV):
        logger.info("Using token from environment variable")
        return os.environ[TOKEN_ENV]

    env_file = Path(env_file)
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line.startswith(f'{TOKEN_ENV}='):
                    token = line.split('=', 1)[1].strip().strip('"\'')
                    if token:
                        logger.info("Using token from .env file")
                        return token

    raise AuthenticationError(
        "No Discord token found",
        details=f"pass --token, set {TOKEN_ENV} or add {TOKEN_ENV}=... to a .env file",
    )
