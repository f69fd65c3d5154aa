"""Coordinator: builds agents for configured roles and runs the primary agent.

The coordinator owns the configuration and the session store. It is the only
place that knows how a role's models, system prompt and tools fit together,
so the delegation tool asks it to build sub-agents.
"""

from __future__ import annotations

import asyncio
import logging

from sidekick.agent.agent_tool import AGENT_TOOL_NAME, AgentTool
from sidekick.agent.errors import ConfigError, ModelBuildError
from sidekick.agent.models import Model, resolve_model
from sidekick.agent.prompt import PromptTemplate, coder_prompt
from sidekick.agent.session_agent import (
    AgentResult,
    SessionAgent,
    SessionAgentCall,
    SessionAgentOptions,
)
from sidekick.agent.session_store import DEFAULT_SESSION_TITLE, Session, SessionStore
from sidekick.agent.tools import ToolSet
from sidekick.agent.tools import build_tools as build_toolset
from sidekick.config import AGENT_CODER, AgentConfig, AppConfig
from sidekick.log_utils import log_context, log_event

logger = logging.getLogger(__name__)


class Coordinator:
    def __init__(self, config: AppConfig, sessions: SessionStore) -> None:
        self.config = config
        self.sessions = sessions
        self._agent_tool: AgentTool | None = None
        self._coder: SessionAgent | None = None
        self._build_lock = asyncio.Lock()
        # Separate from _build_lock: building the coder awaits agent_tool().
        self._tool_lock = asyncio.Lock()

    def build_agent_models(self, agent_cfg: AgentConfig, *, small_tier: bool = False) -> tuple[Model, Model]:
        """Resolve the (primary, auxiliary) models for a role.

        A small-tier build uses the configured small-tier roles instead of the
        role's own model choice.
        """

        if small_tier:
            roles = self.config.options.small_tier_roles
            primary_type, auxiliary_type = roles.primary, roles.auxiliary
        else:
            primary_type, auxiliary_type = agent_cfg.model, "small"
        return resolve_model(self.config, primary_type), resolve_model(self.config, auxiliary_type)

    async def build_tools(self, agent_cfg: AgentConfig, *, is_sub_agent: bool) -> ToolSet:
        # Sub-agents never get the agent tool; nested delegation is not supported.
        if is_sub_agent:
            return build_toolset(agent_cfg, optional={AGENT_TOOL_NAME})
        extra = []
        if agent_cfg.allowed_tools is None or AGENT_TOOL_NAME in agent_cfg.allowed_tools:
            extra.append((await self.agent_tool()).as_tool_spec())
        return build_toolset(agent_cfg, extra=extra)

    async def build_agent(
        self,
        template: PromptTemplate,
        agent_cfg: AgentConfig,
        *,
        is_sub_agent: bool,
    ) -> SessionAgent:
        large, small = self.build_agent_models(agent_cfg)
        provider_cfg = self.config.provider(large.provider_id)
        if provider_cfg is None:
            raise ModelBuildError(f"provider {large.provider_id!r} not configured")
        system_prompt = await template.build(large.provider_id, large.model_id, self.config)
        tools = await self.build_tools(agent_cfg, is_sub_agent=is_sub_agent)
        log_event(
            logger,
            "coordinator.agent.built",
            agent=agent_cfg.id,
            model=large.model_id,
            tools=[spec.name for spec in tools],
            sub_agent=is_sub_agent,
        )
        return SessionAgent(
            SessionAgentOptions(
                large_model=large,
                small_model=small,
                system_prompt=system_prompt,
                system_prompt_prefix=provider_cfg.system_prompt_prefix,
                sessions=self.sessions,
                tools=tools,
                generate_titles=self.config.options.generate_titles,
                working_dir=self.config.working_path(),
            )
        )

    async def agent_tool(self) -> AgentTool:
        async with self._tool_lock:
            if self._agent_tool is None:
                self._agent_tool = await AgentTool.create(self)
        return self._agent_tool

    async def coder(self) -> SessionAgent:
        async with self._build_lock:
            if self._coder is None:
                agent_cfg = self.config.agents.get(AGENT_CODER)
                if agent_cfg is None:
                    raise ConfigError("coder agent not configured")
                template = coder_prompt(
                    working_dir=self.config.working_path(),
                    context_paths=tuple(agent_cfg.context_paths),
                )
                self._coder = await self.build_agent(template, agent_cfg, is_sub_agent=False)
        return self._coder

    async def create_session(self, title: str = DEFAULT_SESSION_TITLE) -> Session:
        return await self.sessions.create(title)

    async def run(self, session_id: str, prompt: str) -> AgentResult:
        """Run the primary agent on a session."""

        agent = await self.coder()
        model = agent.model()
        provider_cfg = self.config.provider(model.provider_id)
        if provider_cfg is None:
            raise ModelBuildError(f"provider {model.provider_id!r} not configured")
        with log_context(session_id=session_id):
            log_event(logger, "coordinator.run.start", model=model.model_id)
            result = await agent.run(SessionAgentCall.for_model(session_id, prompt, model, provider_cfg))
            log_event(logger, "coordinator.run.finish", cost=result.cost)
        return result
