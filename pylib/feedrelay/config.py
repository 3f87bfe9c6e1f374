'''Runtime configuration from FEEDRELAY_* environment variables.'''

from __future__ import annotations

import os
from dataclasses import dataclass

from feedrelay.batcher import DEFAULT_MAX_RUNES
from feedrelay.errors import ConfigError
from feedrelay.fetchers.http import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HEADER_TIMEOUT

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off', ''}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(name, raw, 'a boolean')


def _env_number(name: str, default, kind=int, minimum=None):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = kind(raw.strip())
    except ValueError as e:
        raise ConfigError(name, raw, f'a {kind.__name__}') from e
    if minimum is not None and value < minimum:
        raise ConfigError(name, raw, f'a {kind.__name__} >= {minimum}')
    return value


@dataclass(frozen=True)
class RelayConfig:
    heartbeat_minutes: float = 15
    group_messages: bool = True
    show_description: bool = True
    sort_by_timestamp: bool = False
    max_batch_runes: int = DEFAULT_MAX_RUNES
    gravatar_default: str = 'mp'
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    header_timeout: float = DEFAULT_HEADER_TIMEOUT
    strict_rss_diff: bool = False
    keys_page_size: int = 50
    hide_urls: bool = False
    store_dir: str = 'data/channels'
    webhook_url: str = ''

    @property
    def heartbeat_seconds(self) -> float:
        return self.heartbeat_minutes * 60

    @classmethod
    def from_env(cls) -> RelayConfig:
        '''Build config from env vars. Raises ConfigError on malformed values.'''
        return cls(
            heartbeat_minutes=_env_number('FEEDRELAY_HEARTBEAT_MINUTES', 15, float, minimum=0.01),
            group_messages=_env_bool('FEEDRELAY_GROUP_MESSAGES', True),
            show_description=_env_bool('FEEDRELAY_SHOW_DESCRIPTION', True),
            sort_by_timestamp=_env_bool('FEEDRELAY_SORT_BY_TIMESTAMP', False),
            max_batch_runes=_env_number('FEEDRELAY_MAX_BATCH_RUNES', DEFAULT_MAX_RUNES, int, minimum=4),
            gravatar_default=os.environ.get('FEEDRELAY_GRAVATAR_DEFAULT') or 'mp',
            connect_timeout=_env_number('FEEDRELAY_CONNECT_TIMEOUT', DEFAULT_CONNECT_TIMEOUT, float, minimum=0),
            header_timeout=_env_number('FEEDRELAY_HEADER_TIMEOUT', DEFAULT_HEADER_TIMEOUT, float, minimum=0),
            strict_rss_diff=_env_bool('FEEDRELAY_STRICT_RSS_DIFF', False),
            keys_page_size=_env_number('FEEDRELAY_KEYS_PAGE_SIZE', 50, int, minimum=1),
            hide_urls=_env_bool('FEEDRELAY_HIDE_URLS', False),
            store_dir=os.environ.get('FEEDRELAY_STORE_DIR') or 'data/channels',
            webhook_url=os.environ.get('FEEDRELAY_WEBHOOK_URL') or '',
        )
