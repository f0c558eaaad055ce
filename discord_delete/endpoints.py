"""Path builders for every Discord endpoint the engine talks to."""

from urllib.parse import urlencode

from .errors import ValidationError

# Discord's search endpoints return at most 25 context groups per page.
MESSAGE_LIMIT = 25


def _snowflake(name: str, value) -> str:
    value = str(value) if value is not None else ''
    if not value.isdigit():
        raise ValidationError(f"Invalid {name}", details=repr(value))
    return value


def _search_query(author_id, offset: int, limit: int) -> str:
    if not isinstance(offset, int) or offset < 0:
        raise ValidationError("Invalid offset", details=repr(offset))
    if not isinstance(limit, int) or not 1 <= limit <= MESSAGE_LIMIT:
        raise ValidationError("Invalid limit", details=repr(limit))
    return urlencode({
        'author_id': _snowflake('author_id', author_id),
        'include_nsfw': 'true',
        'offset': offset,
        'limit': limit,
    })


def me() -> str:
    return "/users/@me"


def relationships() -> str:
    return "/users/@me/relationships"


def guilds() -> str:
    return "/users/@me/guilds"


def guild_channels(guild_id) -> str:
    return f"/guilds/{_snowflake('guild_id', guild_id)}/channels"


def channels() -> str:
    return "/users/@me/channels"


def open_channel() -> str:
    """POST target that opens (or returns) the DM with a user."""
    return "/users/@me/channels"


def channel_messages(channel_id, author_id, offset: int, limit: int = MESSAGE_LIMIT) -> str:
    return (f"/channels/{_snowflake('channel_id', channel_id)}/messages/search"
            f"?{_search_query(author_id, offset, limit)}")


def guild_messages(guild_id, author_id, offset: int, limit: int = MESSAGE_LIMIT) -> str:
    return (f"/guilds/{_snowflake('guild_id', guild_id)}/messages/search"
            f"?{_search_query(author_id, offset, limit)}")


def delete_message(channel_id, message_id) -> str:
    return (f"/channels/{_snowflake('channel_id', channel_id)}"
            f"/messages/{_snowflake('message_id', message_id)}")
