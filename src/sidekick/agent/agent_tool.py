"""The `agent` tool: delegate a sub-task to a nested agent session.

The parent agent calls the tool with a task prompt. The tool creates a child
session, runs a task agent in it, adds the child session's cost to the parent
session, and returns the sub-agent's text answer.

Failures come in two classes:

* Soft: an empty prompt, or the sub-agent run failing. These are returned as
  error payloads so the parent agent can react and keep going.
* Hard: missing invocation identity, or a broken session, model, prompt or
  tool setup. These raise `DelegationError` and abort the parent's turn.

Cost rollup is a read-modify-write of the parent session, done while holding
the session store's per-session lock. The store must provide that lock for
concurrent delegations under one parent to add up correctly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import RunContext  # type: ignore

from sidekick.agent.ai_types import AgentDeps
from sidekick.agent.context import (
    get_message_from_context,
    get_session_from_context,
    invocation_context,
    response_message_id,
)
from sidekick.agent.errors import (
    DelegationError,
    MissingInvocationContextError,
    ModelBuildError,
    PromptBuildError,
    ToolBuildError,
)
from sidekick.agent.models import Model
from sidekick.agent.prompt import PromptTemplate, agent_tool_description, task_prompt
from sidekick.agent.session_agent import SessionAgent, SessionAgentCall, SessionAgentOptions
from sidekick.agent.session_store import TASK_SESSION_TITLE
from sidekick.agent.tools import ToolSpec
from sidekick.config import AGENT_TASK, AgentConfig, ProviderConfig
from sidekick.log_utils import log_context, log_event

if TYPE_CHECKING:
    from sidekick.agent.coordinator import Coordinator

logger = logging.getLogger(__name__)

AGENT_TOOL_NAME = "agent"


class AgentParams(BaseModel):
    """Arguments the parent agent passes to the `agent` tool."""

    model_config = ConfigDict(extra="ignore")

    prompt: str = Field("", description="The task for the agent to perform")
    use_small_model: bool = Field(
        False,
        description=(
            "If true, use the small model for faster/cheaper execution "
            "(good for simple searches or lightweight tasks)"
        ),
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the wire; `use_small_model` is omitted when false."""

        data = self.model_dump()
        if not self.use_small_model:
            data.pop("use_small_model")
        return data


@dataclass(frozen=True)
class ToolResponse:
    content: str
    is_error: bool = False

    def as_payload(self) -> Dict[str, Any]:
        """Tool result in the `{"content", "error"}` shape all tools return."""

        if self.is_error:
            return {"content": "", "error": self.content}
        return {"content": self.content, "error": None}


def text_response(text: str) -> ToolResponse:
    return ToolResponse(content=text)


def text_error_response(text: str) -> ToolResponse:
    return ToolResponse(content=text, is_error=True)


class Tier(str, Enum):
    LARGE = "large"
    SMALL = "small"


@dataclass(frozen=True)
class TierBundle:
    """Everything tier-specific about a delegated run."""

    tier: Tier
    agent: SessionAgent
    model: Model
    provider_cfg: ProviderConfig


class AgentTool:
    """Delegation tool bound to a coordinator.

    The large tier is built once, when the tool is created. The small tier is
    rebuilt on every call that asks for it.
    """

    name = AGENT_TOOL_NAME

    def __init__(
        self,
        coordinator: "Coordinator",
        agent_cfg: AgentConfig,
        template: PromptTemplate,
        large_agent: SessionAgent,
    ) -> None:
        self._coordinator = coordinator
        self._agent_cfg = agent_cfg
        self._template = template
        self._large_agent = large_agent

    @classmethod
    async def create(cls, coordinator: "Coordinator") -> "AgentTool":
        agent_cfg = coordinator.config.agents.get(AGENT_TASK)
        if agent_cfg is None:
            raise DelegationError("task agent not configured")
        template = task_prompt(
            working_dir=coordinator.config.working_path(),
            context_paths=tuple(agent_cfg.context_paths),
        )
        large_agent = await coordinator.build_agent(template, agent_cfg, is_sub_agent=True)
        return cls(coordinator, agent_cfg, template, large_agent)

    @property
    def description(self) -> str:
        return agent_tool_description()

    @property
    def large_agent(self) -> SessionAgent:
        return self._large_agent

    async def __call__(self, params: AgentParams, call_id: str) -> ToolResponse:
        if not params.prompt:
            log_event(logger, "delegate.soft_error", level=logging.WARNING, reason="prompt is required")
            return text_error_response("prompt is required")

        session_id = get_session_from_context()
        if not session_id:
            raise MissingInvocationContextError("session id missing from context")
        message_id = get_message_from_context()
        if not message_id:
            raise MissingInvocationContextError("agent message id missing from context")

        with log_context(parent_session_id=session_id, tool_call_id=call_id):
            try:
                return await self._delegate(params, session_id, message_id, call_id)
            except DelegationError as exc:
                log_event(logger, "delegate.hard_error", level=logging.WARNING, error=str(exc))
                raise

    async def _delegate(self, params: AgentParams, session_id: str, message_id: str, call_id: str) -> ToolResponse:
        sessions = self._coordinator.sessions
        # Resolve the tier first so a configuration failure leaves no orphan session.
        bundle = await (self._small_bundle() if params.use_small_model else self._large_bundle())

        child_id = sessions.derive_child_session_id(message_id, call_id)
        try:
            child = await sessions.create_task_session(child_id, session_id, TASK_SESSION_TITLE)
        except Exception as exc:
            raise DelegationError(f"error creating session: {exc}") from exc

        log_event(
            logger,
            "delegate.start",
            child_session_id=child.id,
            tier=bundle.tier.value,
            model=bundle.model.model_id,
        )
        call = SessionAgentCall.for_model(child.id, params.prompt, bundle.model, bundle.provider_cfg)
        try:
            result = await bundle.agent.run(call)
        except Exception as exc:
            log_event(
                logger,
                "delegate.run_failed",
                level=logging.WARNING,
                child_session_id=child.id,
                error=repr(exc),
            )
            return text_error_response("error generating response")

        child_cost = await self._rollup_cost(child.id, session_id)
        log_event(logger, "delegate.finish", child_session_id=child.id, child_cost=child_cost)
        return text_response(result.response)

    async def _large_bundle(self) -> TierBundle:
        model = self._large_agent.model()
        provider_cfg = self._coordinator.config.provider(model.provider_id)
        if provider_cfg is None:
            raise DelegationError("model provider not configured")
        return TierBundle(Tier.LARGE, self._large_agent, model, provider_cfg)

    async def _small_bundle(self) -> TierBundle:
        coordinator = self._coordinator
        config = coordinator.config
        primary_type = config.options.small_tier_roles.primary
        selected = config.models.get(primary_type)
        provider_cfg = config.provider(selected.provider) if selected is not None else None
        if provider_cfg is None:
            raise DelegationError("small model provider not configured")

        try:
            primary, auxiliary = coordinator.build_agent_models(self._agent_cfg, small_tier=True)
        except ModelBuildError as exc:
            raise DelegationError(f"error building models: {exc}") from exc
        try:
            system_prompt = await self._template.build(primary.provider_id, primary.model_id, config)
        except PromptBuildError as exc:
            raise DelegationError(f"error building system prompt: {exc}") from exc
        try:
            tools = await coordinator.build_tools(self._agent_cfg, is_sub_agent=True)
        except ToolBuildError as exc:
            raise DelegationError(f"error building tools: {exc}") from exc

        agent = SessionAgent(
            SessionAgentOptions(
                large_model=primary,
                small_model=auxiliary,
                system_prompt=system_prompt,
                system_prompt_prefix=provider_cfg.system_prompt_prefix,
                sessions=coordinator.sessions,
                tools=tools,
                generate_titles=config.options.generate_titles,
                working_dir=config.working_path(),
            )
        )
        return TierBundle(Tier.SMALL, agent, primary, provider_cfg)

    async def _rollup_cost(self, child_id: str, parent_id: str) -> float:
        """Add the child's final cost to a fresh read of the parent session."""

        sessions = self._coordinator.sessions
        try:
            child = await sessions.get(child_id)
        except Exception as exc:
            raise DelegationError(f"error getting session: {exc}") from exc

        async with sessions.lock(parent_id):
            try:
                parent = await sessions.get(parent_id)
            except Exception as exc:
                raise DelegationError(f"error getting parent session: {exc}") from exc
            parent.cost += child.cost
            try:
                await sessions.save(parent)
            except Exception as exc:
                raise DelegationError(f"error saving parent session: {exc}") from exc

        log_event(logger, "delegate.cost_rollup", child_session_id=child_id, child_cost=child.cost, parent_cost=parent.cost)
        return child.cost

    def as_tool_spec(self) -> ToolSpec:
        """Expose the tool to a pydantic-ai agent.

        Soft results become `{"content", "error"}` payloads; hard errors
        propagate and end the parent run. Providers may reuse tool call ids
        across responses (`call_0`), so the message identity is narrowed to
        the model response that issued the call.
        """

        async def agent(ctx: RunContext[AgentDeps], prompt: str, use_small_model: bool = False) -> Dict[str, Any]:
            call_id = getattr(ctx, "tool_call_id", None)
            if not call_id:
                raise MissingInvocationContextError("tool call id missing from context")
            params = AgentParams(prompt=prompt, use_small_model=use_small_model)
            logger.info("Tool invoked: %s args=%s", AGENT_TOOL_NAME, params.to_payload())
            run_message_id = get_message_from_context()
            message_id = response_message_id(run_message_id, ctx.run_step) if run_message_id else ""
            with invocation_context(session_id=get_session_from_context(), message_id=message_id):
                response = await self(params, call_id)
            return response.as_payload()

        agent.__doc__ = self.description
        return ToolSpec(AGENT_TOOL_NAME, agent, timeout=None)
