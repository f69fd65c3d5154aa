"""Session-bound agent runtime.

A `SessionAgent` runs a pydantic-ai agent against a stored session. It loads
the session history, runs the prompt and persists the new messages. It then
charges the run's cost to that session. The large model answers prompts. The
small model handles auxiliary work such as generating session titles.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from pydantic_ai import Agent as PydanticAgent  # type: ignore

from sidekick.agent.ai_types import AgentDeps, AgentRunner
from sidekick.agent.context import invocation_context
from sidekick.agent.models import Model, effective_max_tokens, provider_options
from sidekick.agent.prompt import title_prompt
from sidekick.agent.session_store import PLACEHOLDER_TITLES, SessionStore
from sidekick.agent.tools import ToolSet, register_toolset
from sidekick.agent.usage import normalize_usage, usage_cost, usage_tokens
from sidekick.config import ProviderConfig
from sidekick.log_utils import log_context, log_event

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50
TITLE_MAX_TOKENS = 40


@dataclass
class SessionAgentOptions:
    large_model: Model
    small_model: Model
    system_prompt: str
    sessions: SessionStore
    tools: ToolSet = ()
    system_prompt_prefix: str = ""
    generate_titles: bool = True
    working_dir: Path = field(default_factory=Path.cwd)


@dataclass(frozen=True)
class SessionAgentCall:
    session_id: str
    prompt: str
    max_output_tokens: int
    provider_options: Dict[str, Any] = field(default_factory=dict)
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    @classmethod
    def for_model(
        cls,
        session_id: str,
        prompt: str,
        model: Model,
        provider_cfg: ProviderConfig,
    ) -> "SessionAgentCall":
        """Run parameters for a model: catalog/config token limit plus sampling overrides."""

        cfg = model.config
        return cls(
            session_id=session_id,
            prompt=prompt,
            max_output_tokens=effective_max_tokens(model),
            provider_options=provider_options(model, provider_cfg),
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            top_k=cfg.top_k,
            frequency_penalty=cfg.frequency_penalty,
            presence_penalty=cfg.presence_penalty,
        )


@dataclass(frozen=True)
class AgentResult:
    response: str
    usage: Any
    cost: float


def build_model_settings(call: SessionAgentCall) -> Dict[str, Any]:
    """Translate run parameters into pydantic-ai ModelSettings.

    Unset sampling parameters are left out so provider defaults apply. top_k
    has no portable setting and travels in the request body.
    """

    settings: Dict[str, Any] = dict(call.provider_options)
    settings["max_tokens"] = call.max_output_tokens
    for key in ("temperature", "top_p", "frequency_penalty", "presence_penalty"):
        value = getattr(call, key)
        if value is not None:
            settings[key] = value
    if call.top_k is not None:
        settings["extra_body"] = {**settings.get("extra_body", {}), "top_k": call.top_k}
    return settings


class SessionAgent:
    def __init__(self, options: SessionAgentOptions) -> None:
        self._options = options
        prompt = options.system_prompt
        if options.system_prompt_prefix:
            prompt = f"{options.system_prompt_prefix.strip()}\n\n{prompt}"
        self._system_prompt = prompt
        self._runner: AgentRunner = PydanticAgent(
            options.large_model.llm,
            system_prompt=prompt,
            deps_type=AgentDeps,
        )
        register_toolset(self._runner, options.tools)

    def model(self) -> Model:
        return self._options.large_model

    def small_model(self) -> Model:
        return self._options.small_model

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def tools(self) -> ToolSet:
        return self._options.tools

    async def run(self, call: SessionAgentCall) -> AgentResult:
        if not call.prompt:
            raise ValueError("prompt is required")

        sessions = self._options.sessions
        session = await sessions.get(call.session_id)
        history = await sessions.load_messages(call.session_id)
        message_id = uuid.uuid4().hex

        with invocation_context(session_id=call.session_id, message_id=message_id), log_context(
            session_id=call.session_id, message_id=message_id
        ):
            result = await self._runner.run(
                call.prompt,
                message_history=history or None,
                deps=AgentDeps(working_dir=self._options.working_dir, session_id=call.session_id),
                model_settings=build_model_settings(call),  # type: ignore[arg-type]
            )

            new_messages = result.new_messages()
            await sessions.append_messages(call.session_id, new_messages)
            usage = normalize_usage(result.usage)
            input_tokens, output_tokens = usage_tokens(usage)
            cost = usage_cost(usage, self.model().catalog)
            await sessions.add_usage(
                call.session_id,
                cost=cost,
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                messages=len(new_messages),
            )
            log_event(
                logger,
                "session_agent.run.finish",
                model=self.model().model_id,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost=cost,
            )

            if not history and self._options.generate_titles and session.title in PLACEHOLDER_TITLES:
                await self._generate_title(call.session_id, call.prompt)

        return AgentResult(response=str(result.output), usage=usage, cost=cost)

    async def _generate_title(self, session_id: str, prompt: str) -> None:
        """Name a fresh session with the small model and charge its cost there.

        A failed title is logged and skipped; it never fails the run.
        """

        small = self.small_model()
        titler = PydanticAgent(small.llm, system_prompt=title_prompt())
        try:
            result = await titler.run(prompt, model_settings={"max_tokens": TITLE_MAX_TOKENS})
        except Exception as exc:
            log_event(logger, "session_agent.title.failed", level=logging.WARNING, error=str(exc))
            return

        lines = str(result.output).strip().splitlines()
        title = lines[0].strip().strip('"')[:TITLE_MAX_CHARS] if lines else ""
        if title:
            await self._options.sessions.set_title(session_id, title)
        usage = normalize_usage(result.usage)
        input_tokens, output_tokens = usage_tokens(usage)
        await self._options.sessions.add_usage(
            session_id,
            cost=usage_cost(usage, small.catalog),
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        )
