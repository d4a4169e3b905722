"""
Machine translation through an OpenAI-compatible chat completions endpoint.

DeepSeek is the default backend; any endpoint speaking the OpenAI chat
protocol works by changing ``translation.base_url`` and ``translation.model``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)


class TranslationError(Exception):
    """Translation request failed or returned unusable output."""
    pass


DESCRIPTION_PROMPT = (
    "You are a professional translator of game descriptions. Translate the "
    "following visual novel description into natural, fluent {language}. "
    "Keep the tone and style of the original and do not add notes or "
    "explanations. If the text is already in {language}, return it unchanged."
)

TAGS_PROMPT = (
    "You translate game tags. Translate each of the following tags into "
    "concise {language}, one tag per line, keeping exactly the same number "
    "of lines and the same order. Output only the translations, without "
    "numbering or explanations."
)


class ChatTranslator:
    """
    Translates descriptions and tag lists for the library.

    A fresh API client is built per call because the credential is a user
    setting that can change between calls.
    """

    DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
    DEFAULT_MODEL = "deepseek-chat"

    def __init__(
        self,
        config: Dict[str, Any],
        client_factory: Optional[Callable[[str], Any]] = None
    ):
        """
        Initialize translator.

        Args:
            config: Configuration dictionary (reads the 'translation' section)
            client_factory: Optional callable building a client from a
                credential; defaults to AsyncOpenAI against ``base_url``
        """
        translation_config = config.get('translation', {})
        self.base_url = translation_config.get('base_url', self.DEFAULT_BASE_URL)
        self.model = translation_config.get('model', self.DEFAULT_MODEL)
        self.request_timeout = translation_config.get('request_timeout', 60)
        self.target_language = translation_config.get('target_language', 'Simplified Chinese')
        self._client_factory = client_factory or self._default_client

    def _default_client(self, credential: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=credential,
            base_url=self.base_url,
            timeout=self.request_timeout,
            max_retries=0,
        )

    async def _complete(
        self,
        credential: str,
        system_prompt: str,
        user_content: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        client = self._client_factory(credential)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
            )
        except OpenAIError as e:
            raise TranslationError(f"Translation API error: {e}")

        choices = response.choices or []
        content = choices[0].message.content if choices else None
        return (content or "").strip()

    async def translate_text(self, text: str, credential: str) -> str:
        """
        Translate one block of text.

        Args:
            text: Text to translate (already cleaned of markup)
            credential: API key

        Returns:
            Translated text; the input unchanged if text or credential is blank

        Raises:
            TranslationError: On API failure or empty output
        """
        if not text.strip() or not credential.strip():
            return text

        result = await self._complete(
            credential,
            DESCRIPTION_PROMPT.format(language=self.target_language),
            text,
            temperature=0.3,
            max_tokens=2048,
        )
        if not result:
            raise TranslationError("Translation API returned an empty response")

        logger.debug(f"Translated {len(text)} chars -> {len(result)} chars")
        return result

    async def translate_tags(self, tags: Sequence[str], credential: str) -> List[str]:
        """
        Translate a batch of tags with a single request.

        Args:
            tags: Tag names
            credential: API key

        Returns:
            Translations in input order, same length as ``tags``

        Raises:
            TranslationError: On API failure or when the number of output
                lines does not match the number of tags
        """
        if not tags or not credential.strip():
            return list(tags)

        content = await self._complete(
            credential,
            TAGS_PROMPT.format(language=self.target_language),
            "\n".join(tags),
            temperature=0.0,
            max_tokens=1024,
        )

        translated = [line.strip() for line in content.splitlines() if line.strip()]
        if len(translated) != len(tags):
            raise TranslationError(
                f"Tag translation returned {len(translated)} lines for {len(tags)} tags"
            )

        return translated

    async def test_credential(self, credential: str) -> bool:
        """Check an API key with a minimal request."""
        if not credential.strip():
            return False

        client = self._client_factory(credential)
        try:
            await client.chat.completions.create(
                model=self.model,
                max_tokens=1,
                messages=[{"role": "user", "content": "Hi"}],
            )
        except OpenAIError as e:
            logger.info(f"Translation credential rejected: {e}")
            return False
        return True
