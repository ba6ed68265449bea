"""
Configuration Management for Bruh

Loads configuration from ~/.bruh/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("bruh.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".bruh"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class SlackConfig:
    """Slack workspace configuration"""
    bot_token: str = ""
    user_token: str = ""  # search.messages refuses bot tokens
    signing_secret: str = ""
    workspace_domain: str = ""  # e.g. "acme" for acme.slack.com
    bot_display_name: str = "bruh"
    api_base_url: str = "https://slack.com/api"
    timeout: float = 10.0


@dataclass
class LLMConfig:
    """LLM provider configuration"""
    provider: str = "google"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    timeout: float = 30.0


@dataclass
class EscalationConfig:
    """Progressive search configuration"""
    max_iterations: int = 3
    history_limit: int = 100
    channel_match_cap: int = 10
    search_result_limit: int = 100
    oracle_char_budget: int = 1500
    workspace_sample_size: int = 10  # messages shown to the oracle per workspace check
    refiner_sample_size: int = 3


@dataclass
class GatewayConfig:
    """Inbound event gateway configuration"""
    port: int = 8080
    event_ttl_seconds: float = 120.0


@dataclass
class BruhConfig:
    """Main Bruh configuration"""
    slack: SlackConfig = field(default_factory=SlackConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)

    @property
    def model_for_provider(self) -> str:
        """Model name configured for the active LLM provider"""
        return getattr(self.llm, f"{self.llm.provider}_model", "")


def _parse_slack_config(data: dict) -> SlackConfig:
    """Parse slack section from config dict"""
    slack_data = data.get("slack", {})
    return SlackConfig(
        bot_token=slack_data.get("bot_token", ""),
        user_token=slack_data.get("user_token", ""),
        signing_secret=slack_data.get("signing_secret", ""),
        workspace_domain=slack_data.get("workspace_domain", ""),
        bot_display_name=slack_data.get("bot_display_name", "bruh"),
        api_base_url=slack_data.get("api_base_url", "https://slack.com/api"),
        timeout=slack_data.get("timeout", 10.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "google"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_escalation_config(data: dict) -> EscalationConfig:
    """Parse escalation section from config dict"""
    esc_data = data.get("escalation", {})
    return EscalationConfig(
        max_iterations=esc_data.get("max_iterations", 3),
        history_limit=esc_data.get("history_limit", 100),
        channel_match_cap=esc_data.get("channel_match_cap", 10),
        search_result_limit=esc_data.get("search_result_limit", 100),
        oracle_char_budget=esc_data.get("oracle_char_budget", 1500),
        workspace_sample_size=esc_data.get("workspace_sample_size", 10),
        refiner_sample_size=esc_data.get("refiner_sample_size", 3),
    )


def _parse_gateway_config(data: dict) -> GatewayConfig:
    """Parse gateway section from config dict"""
    gateway_data = data.get("gateway", {})
    return GatewayConfig(
        port=gateway_data.get("port", 8080),
        event_ttl_seconds=gateway_data.get("event_ttl_seconds", 120.0),
    )


def load_config() -> BruhConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.bruh/config.json)
    3. Default values
    """
    config = BruhConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.slack = _parse_slack_config(data)
            config.llm = _parse_llm_config(data)
            config.escalation = _parse_escalation_config(data)
            config.gateway = _parse_gateway_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Slack env var overrides
    _env_slack_map = {
        "SLACK_BOT_TOKEN": "bot_token",
        "SLACK_USER_TOKEN": "user_token",
        "SLACK_SIGNING_SECRET": "signing_secret",
        "SLACK_WORKSPACE_DOMAIN": "workspace_domain",
        "BRUH_BOT_NAME": "bot_display_name",
    }
    for env_var, attr in _env_slack_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.slack, attr, val)
            config._env_sourced_keys.add(attr)

    # LLM env var overrides
    _env_llm_map = {
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "BRUH_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("BRUH_MAX_ITERATIONS"):
        config.escalation.max_iterations = int(os.getenv("BRUH_MAX_ITERATIONS"))
    if os.getenv("BRUH_PORT"):
        config.gateway.port = int(os.getenv("BRUH_PORT"))

    return config


def save_config(config: BruhConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written as
    empty strings so that they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())
    _secret_fields = {
        "bot_token", "user_token", "signing_secret",
        "google_api_key", "anthropic_api_key", "openai_api_key",
    }

    def _secret(attr: str, value: str) -> str:
        if attr in _secret_fields and attr in env_sourced:
            return ""
        return value

    data = {
        "slack": {
            "bot_token": _secret("bot_token", config.slack.bot_token),
            "user_token": _secret("user_token", config.slack.user_token),
            "signing_secret": _secret("signing_secret", config.slack.signing_secret),
            "workspace_domain": config.slack.workspace_domain,
            "bot_display_name": config.slack.bot_display_name,
            "api_base_url": config.slack.api_base_url,
            "timeout": config.slack.timeout,
        },
        "llm": {
            "provider": config.llm.provider,
            "google_api_key": _secret("google_api_key", config.llm.google_api_key),
            "google_model": config.llm.google_model,
            "anthropic_api_key": _secret("anthropic_api_key", config.llm.anthropic_api_key),
            "anthropic_model": config.llm.anthropic_model,
            "openai_api_key": _secret("openai_api_key", config.llm.openai_api_key),
            "openai_model": config.llm.openai_model,
            "timeout": config.llm.timeout,
        },
        "escalation": {
            "max_iterations": config.escalation.max_iterations,
            "history_limit": config.escalation.history_limit,
            "channel_match_cap": config.escalation.channel_match_cap,
            "search_result_limit": config.escalation.search_result_limit,
            "oracle_char_budget": config.escalation.oracle_char_budget,
            "workspace_sample_size": config.escalation.workspace_sample_size,
            "refiner_sample_size": config.escalation.refiner_sample_size,
        },
        "gateway": {
            "port": config.gateway.port,
            "event_ttl_seconds": config.gateway.event_ttl_seconds,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
