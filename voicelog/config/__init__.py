"""
Configuration package for voicelog.

```python
from voicelog.config import get_config
config = get_config()
print(config.openai.get_websocket_url())
```
"""

from .env_loader import load_application_config, load_env_file
from .models import (
    ApplicationConfig,
    AudioConfig,
    BootstrapConfig,
    LedgerConfig,
    LoggingConfig,
    LogLevel,
    NotificationConfig,
    OpenAIConfig,
    RealtimeConfig,
)
from .settings import get_config, reload_config, set_config

__all__ = [
    "ApplicationConfig",
    "AudioConfig",
    "BootstrapConfig",
    "LedgerConfig",
    "LoggingConfig",
    "LogLevel",
    "NotificationConfig",
    "OpenAIConfig",
    "RealtimeConfig",
    "get_config",
    "load_application_config",
    "load_env_file",
    "reload_config",
    "set_config",
]
