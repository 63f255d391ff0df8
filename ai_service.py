"""
Centralized AI Service Manager
Handles all AI API calls with retry logic, error handling, and configuration management
"""
import time
import logging
from typing import Optional, Dict, Any, List
from functools import wraps

import anthropic
import openai

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Base exception for AI service errors"""
    pass


class AIServiceUnavailable(AIServiceError):
    """Raised when AI service is not configured or unavailable"""
    pass


class AIServiceTimeout(AIServiceError):
    """Raised when AI service times out"""
    pass


def retry_on_failure(max_attempts=3, delay=2, backoff=2):
    """
    Decorator to retry a service method on failure with exponential backoff.

    The instance config (AI_RETRY_ATTEMPTS / AI_RETRY_DELAY) overrides the
    decorator defaults. An unconfigured provider is never retried.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            attempts = self.config.get('AI_RETRY_ATTEMPTS', max_attempts)
            current_delay = self.config.get('AI_RETRY_DELAY', delay)
            last_exception = None

            for attempt in range(attempts):
                try:
                    return func(self, *args, **kwargs)
                except AIServiceUnavailable:
                    raise
                except Exception as e:
                    last_exception = e
                    logger.warning(
                        f"Attempt {attempt + 1}/{attempts} failed for {func.__name__}: {str(e)}"
                    )

                    if attempt < attempts - 1:
                        logger.info(f"Retrying in {current_delay} seconds...")
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All {attempts} attempts failed for {func.__name__}")

            raise last_exception

        return wrapper
    return decorator


class AIService:
    """
    Centralized AI service manager with retry logic and error handling
    """

    def __init__(self, config):
        """
        Initialize AI service with configuration

        Args:
            config: Flask app configuration object (or any mapping)
        """
        self.config = config
        self.anthropic_client = None
        self.openai_client = None

        self._initialize_clients()

    def _initialize_clients(self):
        """Initialize AI API clients"""
        timeout = self.config.get('AI_TIMEOUT', 120)

        # Anthropic Claude
        if self.config.get('ANTHROPIC_API_KEY'):
            try:
                self.anthropic_client = anthropic.Anthropic(
                    api_key=self.config['ANTHROPIC_API_KEY'],
                    timeout=timeout
                )
                logger.info("Anthropic Claude client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Anthropic client: {e}")

        # OpenAI GPT
        if self.config.get('OPENAI_API_KEY'):
            try:
                self.openai_client = openai.OpenAI(
                    api_key=self.config['OPENAI_API_KEY'],
                    timeout=timeout
                )
                logger.info("OpenAI client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI client: {e}")

    @retry_on_failure(max_attempts=3, delay=2, backoff=2)
    def call_claude(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        system: Optional[str] = None
    ):
        """
        Call Claude API with retry logic

        Args:
            messages: List of message dictionaries
            model: Model name (defaults to config)
            max_tokens: Maximum tokens (defaults to config)
            temperature: Temperature setting (defaults to config)
            system: System prompt

        Returns:
            Anthropic Message response

        Raises:
            AIServiceUnavailable: If Claude is not configured
            AIServiceError: On API errors
        """
        if not self.anthropic_client:
            raise AIServiceUnavailable("Anthropic Claude is not configured")

        model_config = self.config['AI_MODELS']['claude']
        model = model or model_config['model']
        max_tokens = max_tokens or model_config['max_tokens']
        temperature = model_config['temperature'] if temperature is None else temperature

        try:
            logger.info(f"Calling Claude API: model={model}, max_tokens={max_tokens}")

            params = {
                'model': model,
                'max_tokens': max_tokens,
                'temperature': temperature,
                'messages': messages,
            }
            if system:
                params['system'] = system

            response = self.anthropic_client.messages.create(**params)

            logger.info(f"Claude API call successful: stop_reason={response.stop_reason}")
            return response

        except anthropic.APITimeoutError as e:
            logger.error(f"Claude API timeout: {e}")
            raise AIServiceTimeout(f"Claude API timed out: {e}")
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise AIServiceError(f"Claude API error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error calling Claude: {e}")
            raise AIServiceError(f"Unexpected error: {e}")

    @retry_on_failure(max_attempts=3, delay=2, backoff=2)
    def call_gpt(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False
    ):
        """
        Call the OpenAI chat completions API with retry logic

        Raises:
            AIServiceUnavailable: If OpenAI is not configured
            AIServiceError: On API errors
        """
        if not self.openai_client:
            raise AIServiceUnavailable("OpenAI is not configured")

        model_config = self.config['AI_MODELS']['gpt']
        model = model or model_config['model']
        max_tokens = max_tokens or model_config['max_tokens']
        temperature = model_config['temperature'] if temperature is None else temperature

        try:
            logger.info(f"Calling OpenAI API: model={model}, max_tokens={max_tokens}")

            params = {
                'model': model,
                'messages': messages,
                'max_tokens': max_tokens,
                'temperature': temperature,
            }
            if json_mode:
                params['response_format'] = {'type': 'json_object'}

            response = self.openai_client.chat.completions.create(**params)

            logger.info("OpenAI API call successful")
            return response

        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise AIServiceTimeout(f"OpenAI API timed out: {e}")
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise AIServiceError(f"OpenAI API error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error calling OpenAI: {e}")
            raise AIServiceError(f"Unexpected error: {e}")

    def complete(self, system: str, prompt: str, provider: Optional[str] = None,
                 max_tokens: Optional[int] = None, json_mode: bool = False) -> str:
        """
        Single-turn completion returning the reply text.

        Uses ``provider`` when given, else AI_DEFAULT_PROVIDER, else whichever
        provider is configured.
        """
        provider = provider or self.default_provider()
        messages = [{'role': 'user', 'content': prompt}]

        if provider == 'claude':
            response = self.call_claude(messages, max_tokens=max_tokens, system=system)
            return ''.join(
                block.text for block in response.content if getattr(block, 'type', '') == 'text'
            ).strip()

        response = self.call_gpt(
            [{'role': 'system', 'content': system}] + messages,
            max_tokens=max_tokens,
            json_mode=json_mode
        )
        if not response.choices:
            return ''
        return (response.choices[0].message.content or '').strip()

    def default_provider(self) -> str:
        preferred = self.config.get('AI_DEFAULT_PROVIDER', 'gpt')
        if self.is_available(preferred):
            return preferred
        for provider in ('gpt', 'claude'):
            if self.is_available(provider):
                return provider
        return preferred

    def model_name(self, provider: Optional[str] = None) -> str:
        provider = provider or self.default_provider()
        return self.config['AI_MODELS'].get(provider, {}).get('model', provider)

    def is_available(self, service: str = 'any') -> bool:
        """
        Check if a specific AI service is available

        Args:
            service: Service name ('claude', 'gpt', 'any')
        """
        if service == 'claude':
            return self.anthropic_client is not None
        elif service == 'gpt':
            return self.openai_client is not None
        elif service == 'any':
            return self.anthropic_client is not None or self.openai_client is not None
        else:
            return False
