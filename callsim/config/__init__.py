"""
Configuration module for the call simulator.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants such as sample rates, IVR timings,
  model names and visualizer geometry.
- logging_config: Console and rotating-file logging for the ``callsim`` logger.
- settings: A pydantic Settings model populated from the environment (and an
  optional ``.env`` file).

Usage examples:
```python
from callsim.config.constants import LOGGER_NAME, RING_DURATION_MS
from callsim.config.logging_config import configure_logging
from callsim.config.settings import load_settings

logger = configure_logging()
settings = load_settings()
logger.info(f"Live model: {settings.live_model}")
```
"""
