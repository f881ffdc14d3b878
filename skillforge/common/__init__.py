"""
Common Components for SkillForge

Shared infrastructure used by the engine:
1. Logging - Centralized logging configuration
2. Configuration - Typed settings loaded from files and the environment
3. Errors - The engine's exception hierarchy
4. Serialization - Dict/JSON support for records
"""

# Initialize logging
from skillforge.common.logger import app_logger

from skillforge.common.exceptions import (
    BaseError, NotFoundError, ValidationError, ConfigurationError,
    StoreError, ExternalIntegrationError
)

from skillforge.common.serialization import SerializableMixin, serialize, to_json
