# case_reasoning/services/llm_service.py
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from contextlib import contextmanager
import logging
import os

import dspy
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_PROVIDER_ENV_KEYS = {
    'groq': 'GROQ_API_KEY',
    'openai': 'OPENAI_API_KEY',
    'anthropic': 'ANTHROPIC_API_KEY',
    'together': 'TOGETHER_API_KEY',
}


class LLMConfigProvider(ABC):
    """Abstract interface for LLM configuration"""

    @abstractmethod
    def get_api_key(self, provider: str) -> Optional[str]:
        """Get API key for a provider (groq, openai, anthropic, together)"""
        pass

    @abstractmethod
    def get_model_name(self, role: str) -> Optional[str]:
        """Get model name for a role (primary, secondary)"""
        pass


class EnvironmentLLMConfig(LLMConfigProvider):
    """Configuration provider that reads from environment variables"""

    def __init__(self):
        self._model_defaults = {
            'primary': 'groq/llama-3.3-70b-versatile',
            'secondary': 'openai/gpt-4o-mini',
        }

    def get_api_key(self, provider: str) -> Optional[str]:
        env_key = _PROVIDER_ENV_KEYS.get(provider.lower())
        return os.getenv(env_key) if env_key else None

    def get_model_name(self, role: str) -> Optional[str]:
        return os.getenv(f"{role.upper()}_LLM_MODEL", self._model_defaults.get(role))


class ConfigBasedLLMConfig(LLMConfigProvider):
    """Configuration provider backed by a BaseEngineConfig"""

    def __init__(self, config):
        self.config = config

    def get_api_key(self, provider: str) -> Optional[str]:
        key_map = {
            'groq': self.config.groq_api_key,
            'openai': self.config.openai_api_key,
            'anthropic': self.config.anthropic_api_key,
            'together': self.config.together_api_key,
        }
        return key_map.get(provider.lower())

    def get_model_name(self, role: str) -> Optional[str]:
        model_map = {
            'primary': self.config.primary_llm_model,
            'secondary': self.config.secondary_llm_model,
        }
        return model_map.get(role)


class LLMService:
    """
    Registry of dspy language models keyed by role.
    Models are resolved lazily by the oracle; nothing here calls the network.
    """

    STANDARD_ROLES = ('primary', 'secondary')

    def __init__(self, config_provider: LLMConfigProvider, max_tokens: int = 2000):
        self.config_provider = config_provider
        self.max_tokens = max_tokens
        self.models: Dict[str, dspy.LM] = {}
        self.default_name: Optional[str] = None

    def register_model(self, name: str, model_name: str, api_key: Optional[str] = None, **kwargs) -> None:
        """Register a model with explicit parameters"""
        provider = self._extract_provider(model_name)
        if api_key is None:
            api_key = self.config_provider.get_api_key(provider)
        if not api_key:
            raise ValueError(f"No API key found for provider: {provider}")

        kwargs.setdefault('max_tokens', self.max_tokens)
        if provider == 'together':
            self.models[name] = dspy.LM(
                model=model_name.replace('together/', 'together_ai/'),
                api_key=api_key,
                api_base="https://api.together.xyz/v1",
                **kwargs
            )
        else:
            self.models[name] = dspy.LM(model=model_name, api_key=api_key, **kwargs)

        if self.default_name is None:
            self.default_name = name

    def register_role(self, role: str, **kwargs) -> None:
        """Register a model by role (primary, secondary)"""
        model_name = self.config_provider.get_model_name(role)
        if not model_name:
            raise ValueError(f"No model configured for role: {role}")
        self.register_model(role, model_name, **kwargs)

    def setup_standard_models(self) -> List[str]:
        """Register every standard role that has credentials; returns the roles registered."""
        registered = []
        for role in self.STANDARD_ROLES:
            try:
                self.register_role(role)
                registered.append(role)
                logger.info(f"Registered {role} model: {self.config_provider.get_model_name(role)}")
            except ValueError as e:
                logger.warning(f"Could not register {role} model: {e}")

        if 'primary' in registered:
            self.default_name = 'primary'
        elif registered:
            self.default_name = registered[0]
            logger.warning(f"Primary model not available, using {registered[0]} as default")
        return registered

    def get_model(self, name: str = "default") -> dspy.LM:
        """Get a registered model"""
        if name == "default":
            if self.default_name is None:
                raise ValueError("No default model set")
            name = self.default_name

        if name not in self.models:
            available = list(self.models.keys())
            raise ValueError(f"Model '{name}' not found. Available: {available}")

        return self.models[name]

    @contextmanager
    def use_model(self, name: str):
        """Context manager for temporarily switching models"""
        model = self.get_model(name)
        with dspy.context(lm=model):
            yield model

    def list_models(self) -> Dict[str, str]:
        """List all registered models"""
        return {name: str(model) for name, model in self.models.items()}

    def has_model(self, name: str) -> bool:
        """Check if a model is available"""
        return name in self.models

    def get_fallback_model(self, preferred: str, fallback: str = "primary") -> str:
        """Get preferred model if available, otherwise fallback"""
        return preferred if self.has_model(preferred) else fallback if self.has_model(fallback) else "default"

    @staticmethod
    def _extract_provider(model_name: str) -> str:
        """Extract provider from model name"""
        if '/' in model_name:
            return model_name.split('/')[0].lower()
        return 'openai'


def create_llm_service_from_config(config) -> LLMService:
    """Create LLM service using a BaseEngineConfig"""
    service = LLMService(ConfigBasedLLMConfig(config), max_tokens=config.oracle_max_tokens)
    service.setup_standard_models()
    return service
