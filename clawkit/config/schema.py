"""Configuration schema using Pydantic.

Keys are camelCase on the wire and snake_case on the models. Every model
forbids unknown keys and every leaf is strictly typed, so a typo anywhere in
the tree fails validation instead of being dropped or coerced.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

GroupPolicy = Literal["open", "disabled", "allowlist"]
MediaCapability = Literal["image", "audio", "video"]
MemorySearchProvider = Literal["openai", "gemini", "local", "voyage"]
MemorySearchFallback = Literal["openai", "gemini", "local", "voyage", "none"]
LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

# Telegram chat and user ids show up both as strings and as bare numbers.
ChatId = StrictStr | StrictInt


class Base(BaseModel):
    """Closed-world base: camelCase aliases, unknown keys rejected."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
    )


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


class SsrfConfig(Base):
    """Outbound fetch restrictions for media downloads."""
    allowed_hostnames: list[StrictStr] = Field(default_factory=list)  # Exempt from the private-network check
    allow_private_network: StrictBool = False


class NetworkConfig(Base):
    """Channel network settings."""
    ssrf: SsrfConfig = Field(default_factory=SsrfConfig)


class TelegramTopicConfig(Base):
    """Per-topic overrides inside a forum group. Unset fields inherit from the group."""
    enabled: StrictBool | None = None
    group_policy: GroupPolicy | None = None
    require_mention: StrictBool | None = None
    allow_from: list[ChatId] | None = None
    system_prompt: StrictStr | None = None
    skills: list[StrictStr] | None = None


class TelegramGroupConfig(TelegramTopicConfig):
    """Per-group overrides. Unset fields inherit from the account or channel."""
    topics: dict[str, TelegramTopicConfig] = Field(default_factory=dict)  # Keyed by message_thread_id


class TelegramAccountConfig(Base):
    """One bot account. Unset fields inherit from the channel."""
    enabled: StrictBool | None = None
    bot_token: StrictStr | None = None
    allow_from: list[ChatId] | None = None
    group_allow_from: list[ChatId] | None = None
    group_policy: GroupPolicy | None = None
    require_mention: StrictBool | None = None
    proxy: StrictStr | None = None
    network: NetworkConfig | None = None
    groups: dict[str, TelegramGroupConfig] = Field(default_factory=dict)  # Keyed by chat id


class TelegramConfig(Base):
    """Telegram channel configuration."""
    enabled: StrictBool = False
    bot_token: StrictStr = ""  # Bot token from @BotFather
    allow_from: list[ChatId] = Field(default_factory=list)  # Allowed user IDs or usernames
    group_allow_from: list[ChatId] = Field(default_factory=list)
    group_policy: GroupPolicy = "allowlist"
    require_mention: StrictBool = True
    proxy: StrictStr | None = None  # HTTP/SOCKS5 proxy URL, e.g. "socks5://127.0.0.1:1080"
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    groups: dict[str, TelegramGroupConfig] = Field(default_factory=dict)  # Keyed by chat id
    accounts: dict[str, TelegramAccountConfig] = Field(default_factory=dict)

    def resolve_group_policy(
        self,
        chat_id: str | int,
        topic_id: str | int | None = None,
        account_id: str | None = None,
    ) -> GroupPolicy:
        """Resolve the effective group policy, most specific override first.

        Lookup order: topic, group, account, channel. Group and topic
        tables of an account shadow the channel-level tables for that account.
        """
        account = self.accounts.get(account_id) if account_id else None
        groups = account.groups if account and account.groups else self.groups
        group = groups.get(str(chat_id))

        if group is not None:
            if topic_id is not None:
                topic = group.topics.get(str(topic_id))
                if topic is not None and topic.group_policy is not None:
                    return topic.group_policy
            if group.group_policy is not None:
                return group.group_policy
        if account is not None and account.group_policy is not None:
            return account.group_policy
        return self.group_policy


class WhatsAppGroupConfig(Base):
    """Per-group overrides for WhatsApp."""
    group_policy: GroupPolicy | None = None
    require_mention: StrictBool | None = None


class WhatsAppConfig(Base):
    """WhatsApp channel configuration."""
    enabled: StrictBool = False
    bridge_url: StrictStr = "ws://localhost:3001"
    allow_from: list[StrictStr] = Field(default_factory=list)  # Allowed phone numbers
    group_policy: GroupPolicy = "allowlist"
    groups: dict[str, WhatsAppGroupConfig] = Field(default_factory=dict)  # Keyed by group JID


class ChannelsConfig(Base):
    """Configuration for chat channels."""
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


class MemorySearchConfig(Base):
    """Memory search backend selection."""
    enabled: StrictBool = True
    provider: MemorySearchProvider = "openai"
    fallback: MemorySearchFallback = "none"
    model: StrictStr = ""


class AgentDefaults(Base):
    """Default agent configuration."""
    workspace: StrictStr = "~/.clawkit/workspace"
    model: StrictStr = "anthropic/claude-opus-4-5"
    memory_search: MemorySearchConfig = Field(default_factory=MemorySearchConfig)


class AgentsConfig(Base):
    """Agent configuration."""
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class ProviderConfig(Base):
    """Credentials for one upstream provider."""
    api_key: StrictStr = ""
    api_base: StrictStr | None = None


class ProvidersConfig(Base):
    """Configuration for model providers."""
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)
    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)

    def get(self, name: str) -> ProviderConfig | None:
        """Look up a provider block by id."""
        return {
            "openai": self.openai,
            "anthropic": self.anthropic,
            "gemini": self.gemini,
            "groq": self.groq,
            "openrouter": self.openrouter,
        }.get(name.lower())


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class MediaModelConfig(Base):
    """One provider/model candidate for media understanding."""
    provider: StrictStr = ""
    model: StrictStr = ""  # Empty means the provider's default model
    capabilities: list[MediaCapability] | None = None  # Restricts shared entries


class MediaCapabilityConfig(Base):
    """Settings for one media capability (image, audio, video)."""
    enabled: StrictBool | None = None  # Unset means enabled
    strip_from_prompt: StrictBool = False  # Remove media references when not processed
    models: list[MediaModelConfig] = Field(default_factory=list)
    prompt: StrictStr | None = None
    max_bytes: StrictInt | None = Field(default=None, ge=1)
    max_chars: StrictInt | None = Field(default=None, ge=1)
    max_attachments: StrictInt = Field(default=1, ge=1)
    timeout_seconds: StrictInt = Field(default=60, ge=1)

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False


class MediaToolsConfig(Base):
    """Media understanding configuration."""
    image: MediaCapabilityConfig = Field(default_factory=MediaCapabilityConfig)
    audio: MediaCapabilityConfig = Field(default_factory=MediaCapabilityConfig)
    video: MediaCapabilityConfig = Field(default_factory=MediaCapabilityConfig)
    models: list[MediaModelConfig] = Field(default_factory=list)  # Shared fallbacks for every capability

    def for_capability(self, capability: str) -> MediaCapabilityConfig | None:
        """Return the block for *capability*, or None when it isn't a known capability."""
        return {
            "image": self.image,
            "audio": self.audio,
            "video": self.video,
        }.get(capability)


class ToolsConfig(Base):
    """Tools configuration."""
    media: MediaToolsConfig = Field(default_factory=MediaToolsConfig)


class LoggingConfig(Base):
    """Logging configuration."""
    level: LogLevel = "INFO"


class Config(Base):
    """Root configuration for clawkit."""
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
