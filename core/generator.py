# ============================================================
# nlql - Natural Language SQL Terminal
# core/generator.py - Natural language to SQL via LangChain
# ============================================================
#
# LLM INTEGRATION POINT:
#     Claude goes through langchain-anthropic, OpenAI through
#     langchain-openai. Model names and limits come from
#     NLQL_* settings in .env (see config.AIConfig).
# ============================================================

import os
import re
import time
from enum import Enum
from typing import Optional, Tuple, Mapping

from loguru import logger
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import StrOutputParser
from langchain_core.language_models import BaseChatModel

from config import ai_config
from core.errors import GenerationError, MissingCredentialError


SYSTEM_PROMPT = """You are a SQL query generator. Given a natural language request, generate a valid SQL query.

Database schema:
{schema}

Rules:
- Output ONLY the SQL query, no explanations or markdown
- Use proper SQL syntax for the database
- Be precise with table and column names from the schema
- For SELECT queries, be specific about columns when possible
- For PostgreSQL: cast timestamp/date columns to text (e.g., created_at::text)
- Add reasonable LIMIT if none specified (max 100 rows)"""


class Provider(Enum):
    CLAUDE = "claude"
    OPENAI = "openai"

    @property
    def display_name(self) -> str:
        return "Claude (Anthropic)" if self is Provider.CLAUDE else "OpenAI (GPT)"

    @property
    def env_vars(self) -> Tuple[str, ...]:
        if self is Provider.CLAUDE:
            return ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY")
        return ("OPENAI_API_KEY",)

    @property
    def default_model(self) -> str:
        return ai_config.model_for(self.value)

    def credential_from_env(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """First non-empty API key found in the provider's env vars."""
        environ = os.environ if environ is None else environ
        for name in self.env_vars:
            value = (environ.get(name) or "").strip()
            if value:
                return value
        return None

    @classmethod
    def parse(cls, name: str) -> "Provider":
        aliases = {
            "claude": cls.CLAUDE,
            "anthropic": cls.CLAUDE,
            "openai": cls.OPENAI,
            "chatgpt": cls.OPENAI,
            "gpt": cls.OPENAI,
        }
        try:
            return aliases[name.strip().lower()]
        except KeyError:
            raise ValueError(f"unknown provider: {name}") from None


PROVIDERS = (Provider.CLAUDE, Provider.OPENAI)


def resolve_api_key(provider: Provider, api_key: Optional[str] = None) -> str:
    """Explicit key wins, then the environment; otherwise fail."""
    if api_key and api_key.strip():
        return api_key.strip()
    from_env = provider.credential_from_env()
    if from_env:
        return from_env
    raise MissingCredentialError(provider.value, provider.env_vars)


_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_FENCE = re.compile(r"```(?:sql)?", re.IGNORECASE)


def clean_sql(text: str) -> str:
    """Strip reasoning blocks and markdown code fences from model output."""
    text = _THINK_BLOCK.sub("", text)
    text = _FENCE.sub("", text)
    return text.strip()


def build_chat_model(provider: Provider, api_key: str, model: Optional[str] = None) -> BaseChatModel:
    model = model or provider.default_model
    if provider is Provider.CLAUDE:
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(
            model=model,
            api_key=api_key,
            max_tokens=ai_config.max_tokens,
            temperature=ai_config.temperature,
            timeout=ai_config.timeout,
        )

    from langchain_openai import ChatOpenAI
    return ChatOpenAI(
        model=model,
        api_key=api_key,
        max_tokens=ai_config.max_tokens,
        temperature=ai_config.temperature,
        timeout=ai_config.timeout,
    )


class SQLGenerator:
    """
    Turns a natural-language request plus schema text into one
    SQL statement. Stateless between calls, so a single instance
    is shared by the whole session without locking.
    """

    def __init__(
            self,
            provider: Provider,
            api_key: Optional[str] = None,
            model: Optional[str] = None,
            llm: Optional[BaseChatModel] = None,
    ):
        self.provider = provider
        self.model = model or provider.default_model
        if llm is None:
            llm = build_chat_model(provider, resolve_api_key(provider, api_key), self.model)
        self._prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_PROMPT),
            ("human", "{request}"),
        ])
        self._chain = self._prompt | llm | StrOutputParser()
        logger.info(f"SQL generator ready ({provider.value} / {self.model})")

    async def generate(self, prompt: str, schema: str) -> str:
        start = time.time()
        try:
            raw = await self._chain.ainvoke({"schema": schema, "request": prompt})
        except Exception as e:
            logger.error(f"{self.provider.value} generation failed: {e}")
            raise GenerationError(f"{self.provider.value} request failed: {e}") from e

        sql = clean_sql(raw)
        elapsed = int((time.time() - start) * 1000)
        if not sql:
            logger.warning(f"{self.provider.value} returned no SQL ({elapsed}ms)")
            raise GenerationError("model returned an empty response")

        logger.info(f"Generated SQL in {elapsed}ms: {sql[:120]}")
        return sql

    def __repr__(self):
        return f"<SQLGenerator {self.provider.value}:{self.model}>"
