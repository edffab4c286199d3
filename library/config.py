"""Library circulation configuration.

Re-exports CirculationConfig from the patterns module and builds the
process-wide instance from LIBRARY_* environment variables.
"""

from patterns.domain_config import CirculationConfig

# Default configuration instance
config = CirculationConfig.from_env()
