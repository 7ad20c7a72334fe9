"""Text generation backend.

The case engine only needs `generate(prompt) -> str`; structure is recovered
afterwards by `game.lenient_json`. The OpenAI-backed implementation goes
through a LangChain prompt | model | parser chain.
"""

import logging
from typing import Optional, Protocol

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from config.settings import get_env_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the writers' room for a murder-mystery investigation game. "
    "Follow the requested output format exactly. When JSON is requested, "
    "return only JSON with properly escaped strings."
)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str:
        ...


class ChatTextGenerator:
    """TextGenerator backed by an OpenAI chat model."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
    ):
        settings = get_env_settings()
        self.llm = ChatOpenAI(
            model=model or settings.text_model,
            temperature=settings.text_temperature if temperature is None else temperature,
            api_key=api_key or settings.openai_api_key,
        )
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", SYSTEM_PROMPT),
                ("human", "{prompt}"),
            ]
        )
        self.chain = prompt | self.llm | StrOutputParser()

    def generate(self, prompt: str) -> str:
        logger.debug("[LLM] Prompt (%d chars)", len(prompt))
        text = self.chain.invoke({"prompt": prompt})
        logger.debug("[LLM] Response (%d chars)", len(text))
        return text


# Global text generator instance
_text_generator: Optional[ChatTextGenerator] = None


def get_text_generator() -> ChatTextGenerator:
    """Get or create the global text generator."""
    global _text_generator
    if _text_generator is None:
        _text_generator = ChatTextGenerator()
    return _text_generator
