"""
Configuration settings for diff section application.

This module provides centralized configuration for matching and approval
parameters that can be adjusted based on the specific use case or environment.
"""

import os
from dataclasses import dataclass

# Sentinel end line meaning "replace from start_line to the end of the file"
FULL_FILE_SENTINEL = -1

# Confidence thresholds
EXACT_MATCH_CONFIDENCE = 1.0           # Byte-exact match
NORMALIZED_MATCH_CONFIDENCE = 0.9      # Equal after whitespace normalization
CASE_INSENSITIVE_MATCH_CONFIDENCE = 0.85  # Equal after whitespace and case normalization
CONFIRMATION_THRESHOLD = 0.9           # Below this a match is surfaced as a warning
SIGNIFICANT_DIFFERENCE_THRESHOLD = 0.95  # Similarity matches below this get an issue
DEFAULT_MIN_CONFIDENCE = 0.7           # Default cut-off for pick_best
DEFAULT_SIMILARITY_THRESHOLD = 0.7     # Lowest similarity accepted by the validator
DEFAULT_CONTEXTUAL_THRESHOLD = 0.7     # Content similarity needed by contextual matching

# Search radius settings
DEFAULT_HINT_RADIUS = 5                # Radius for the exact-near-hint strategy
DEFAULT_CONTEXT_RADIUS = 3             # Surrounding lines weighed by contextual matching

# Context weights for contextual matching plausibility
CONTEXT_CONTENT_WEIGHT = 0.8
CONTEXT_SIDE_WEIGHT = 0.1

# Approval settings
DEFAULT_APPROVAL_TIMEOUT = 300.0       # Seconds before silence counts as rejection
DEFAULT_AUTO_APPROVE = False
DEFAULT_ADAPT_INDENTATION = True

# Environment variable names for configuration overrides
ENV_PREFIX = "PATCHMATE_DIFF_"
ENV_SIMILARITY_THRESHOLD = f"{ENV_PREFIX}SIMILARITY_THRESHOLD"
ENV_CONTEXTUAL_THRESHOLD = f"{ENV_PREFIX}CONTEXTUAL_THRESHOLD"
ENV_HINT_RADIUS = f"{ENV_PREFIX}HINT_RADIUS"
ENV_CONTEXT_RADIUS = f"{ENV_PREFIX}CONTEXT_RADIUS"
ENV_APPROVAL_TIMEOUT = f"{ENV_PREFIX}APPROVAL_TIMEOUT"
ENV_AUTO_APPROVE = f"{ENV_PREFIX}AUTO_APPROVE"
ENV_ADAPT_INDENTATION = f"{ENV_PREFIX}ADAPT_INDENTATION"


def get_config_value(env_var: str, default_value):
    """
    Get a configuration value from environment variable or use default.

    Args:
        env_var: The environment variable name
        default_value: The default value to use if env var is not set

    Returns:
        The configuration value
    """
    value = os.environ.get(env_var)
    if value is None:
        return default_value

    # Try to convert to the same type as default_value
    try:
        if isinstance(default_value, bool):
            return value.lower() in ('true', 'yes', '1', 'y')
        elif isinstance(default_value, int):
            return int(value)
        elif isinstance(default_value, float):
            return float(value)
        else:
            return value
    except (ValueError, TypeError):
        return default_value


def get_similarity_threshold() -> float:
    """Get the configured similarity threshold."""
    return get_config_value(ENV_SIMILARITY_THRESHOLD, DEFAULT_SIMILARITY_THRESHOLD)


def get_contextual_threshold() -> float:
    """Get the configured contextual matching threshold."""
    return get_config_value(ENV_CONTEXTUAL_THRESHOLD, DEFAULT_CONTEXTUAL_THRESHOLD)


def get_hint_radius() -> int:
    """Get the configured radius around the line hint for exact matching."""
    return get_config_value(ENV_HINT_RADIUS, DEFAULT_HINT_RADIUS)


def get_context_radius() -> int:
    """Get the configured number of surrounding lines for contextual matching."""
    return get_config_value(ENV_CONTEXT_RADIUS, DEFAULT_CONTEXT_RADIUS)


@dataclass
class ApplyConfig:
    """Settings for a single orchestrator instance."""
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    contextual_threshold: float = DEFAULT_CONTEXTUAL_THRESHOLD
    hint_radius: int = DEFAULT_HINT_RADIUS
    context_radius: int = DEFAULT_CONTEXT_RADIUS
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT
    auto_approve: bool = DEFAULT_AUTO_APPROVE
    adapt_indentation: bool = DEFAULT_ADAPT_INDENTATION

    @classmethod
    def from_env(cls) -> "ApplyConfig":
        """Build a config from PATCHMATE_DIFF_* environment variables."""
        return cls(
            similarity_threshold=get_similarity_threshold(),
            contextual_threshold=get_contextual_threshold(),
            hint_radius=get_hint_radius(),
            context_radius=get_context_radius(),
            approval_timeout=get_config_value(ENV_APPROVAL_TIMEOUT, DEFAULT_APPROVAL_TIMEOUT),
            auto_approve=get_config_value(ENV_AUTO_APPROVE, DEFAULT_AUTO_APPROVE),
            adapt_indentation=get_config_value(ENV_ADAPT_INDENTATION, DEFAULT_ADAPT_INDENTATION),
        )
