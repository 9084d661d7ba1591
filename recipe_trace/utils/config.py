"""Configuration management for Recipe Trace.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Ingredient Bullet: glyph prefixed to ingredient lines that carry no bullet of their own
        self.INGREDIENT_BULLET: str = os.getenv("INGREDIENT_BULLET", "•")
        # Highlight Min Length: nutrition prose longer than this (chars) is kept as highlights. Default: 15
        self.HIGHLIGHT_MIN_LENGTH: int = int(os.getenv("HIGHLIGHT_MIN_LENGTH", "15"))
        # Message recorded on a tool call that never received a result
        self.UNRESOLVED_TOOL_MESSAGE: str = os.getenv("UNRESOLVED_TOOL_MESSAGE", "No tool result returned")
        # Message recorded when a tool flags an error without explaining it
        self.GENERIC_TOOL_ERROR_MESSAGE: str = os.getenv("GENERIC_TOOL_ERROR_MESSAGE", "Tool reported an error")
        # Post-hooks: attach parsed recipe / tool trace to agent run metadata
        self.ENABLE_RECIPE_PARSING_HOOK: bool = _env_bool("ENABLE_RECIPE_PARSING_HOOK", "true")
        self.ENABLE_TOOL_TRACE_HOOK: bool = _env_bool("ENABLE_TOOL_TRACE_HOOK", "true")
        # Service name recorded on traces built from agent runs. Default: "recipe"
        self.TRACE_SERVICE_NAME: str = os.getenv("TRACE_SERVICE_NAME", "recipe")
        # Output Format for query.py: "rich" or "json". Default: "rich"
        # "rich": coloured tables and panels for terminal reading
        # "json": camelCase JSON for piping into other tools
        self.OUTPUT_FORMAT: str = os.getenv("OUTPUT_FORMAT", "rich")

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a setting is missing or out of range.
        """
        if not self.INGREDIENT_BULLET.strip():
            raise ValueError("INGREDIENT_BULLET must be a non-empty string")
        if self.HIGHLIGHT_MIN_LENGTH < 0:
            raise ValueError(
                f"HIGHLIGHT_MIN_LENGTH must be at least 0, got: {self.HIGHLIGHT_MIN_LENGTH}"
            )
        if not self.UNRESOLVED_TOOL_MESSAGE.strip():
            raise ValueError("UNRESOLVED_TOOL_MESSAGE must be a non-empty string")
        if not self.GENERIC_TOOL_ERROR_MESSAGE.strip():
            raise ValueError("GENERIC_TOOL_ERROR_MESSAGE must be a non-empty string")
        if not self.TRACE_SERVICE_NAME.strip():
            raise ValueError("TRACE_SERVICE_NAME must be a non-empty string")
        if self.OUTPUT_FORMAT not in ("rich", "json"):
            raise ValueError(
                f"OUTPUT_FORMAT must be 'rich' or 'json', got: {self.OUTPUT_FORMAT}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
