"""Configuration schema using Pydantic."""

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from emul_agent.utils.helpers import DEFAULT_LINE_LIMIT, get_data_path


def _default_prompt_path() -> str:
    """Default system prompt file under the active data directory."""
    return str(get_data_path() / "prompt.txt")


class GeminiConfig(BaseModel):
    """Gemini generation endpoint configuration."""
    api_key: str = ""
    model: str = "gemini-2.5-pro"
    fast_model: str = "gemini-2.5-flash"  # Used by the addressing classifier
    api_base: str | None = None
    timeout_seconds: float = 60.0  # Per attempt
    max_attempts: int = 3
    initial_backoff_seconds: float = 1.0


class AgentConfig(BaseModel):
    """Conversation agent configuration."""
    nickname: str = "Emul"
    prompt_path: str = Field(default_factory=_default_prompt_path)
    max_tool_rounds: int = 2
    history_lines: int = 50


class InterjectionConfig(BaseModel):
    """Target rates for unprompted replies."""
    chance: float = Field(default=0.02, gt=0, lt=1)
    mention_chance: float = Field(default=0.2, gt=0, lt=1)  # Ambiguous name mentions


class ImageToolConfig(BaseModel):
    cache_size: int = 20
    max_bytes: int = 4 * 1024 * 1024
    max_pixels: int = 1024 * 1024
    timeout_seconds: float = 15.0
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp", "image/gif"]
    )


class WebToolConfig(BaseModel):
    timeout_seconds: float = 20.0
    max_chars: int = 8000


class TorrentToolConfig(BaseModel):
    timeout_seconds: float = 20.0


class ToolsConfig(BaseModel):
    """Tools configuration."""
    image: ImageToolConfig = Field(default_factory=ImageToolConfig)
    web: WebToolConfig = Field(default_factory=WebToolConfig)
    torrent: TorrentToolConfig = Field(default_factory=TorrentToolConfig)


class ChannelConfig(BaseModel):
    """Outgoing message shaping."""
    line_limit: int = DEFAULT_LINE_LIMIT
    send_delay_seconds: float = 0.6


class Config(BaseSettings):
    """Root configuration for emul."""
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    interjection: InterjectionConfig = Field(default_factory=InterjectionConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)

    @property
    def prompt_file(self) -> Path:
        """Get expanded system prompt path."""
        return Path(self.agent.prompt_path).expanduser()

    def get_api_key(self) -> str | None:
        """Configured Gemini key, falling back to ``GEMINI_API_KEY``."""
        if self.gemini.api_key:
            return self.gemini.api_key
        return os.environ.get("GEMINI_API_KEY") or None

    model_config = SettingsConfigDict(
        env_prefix="EMUL_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Config file values arrive as init kwargs; EMUL_* variables win over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings
