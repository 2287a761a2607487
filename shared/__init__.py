"""
Shared module for configuration and infrastructure used by the relay.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging

- shared.infrastructure: Cross-cutting runtime support
  - correlation.py: client_id context for log records

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger, setup_logging
    from shared.infrastructure.correlation import client_id_var
"""
