from __future__ import annotations

import pytest

from sidekick.agent.coordinator import Coordinator
from sidekick.agent.session_agent import SessionAgentCall
from sidekick.agent.session_store import TASK_SESSION_TITLE, SessionStore
from tests.utils import SUB_AGENT_ANSWER


@pytest.mark.asyncio
async def test_run_charges_usage_to_its_session(coordinator: Coordinator, store: SessionStore):
    parent = await store.create()
    child = await store.create_task_session("child-1", parent.id, TASK_SESSION_TITLE)
    agent = (await coordinator.agent_tool()).large_agent
    model = agent.model()
    call = SessionAgentCall.for_model(child.id, "look around", model, coordinator.config.provider(model.provider_id))

    result = await agent.run(call)

    assert result.response == SUB_AGENT_ANSWER
    assert result.cost > 0
    stored = await store.get(child.id)
    assert stored.cost == pytest.approx(result.cost)
    assert stored.prompt_tokens > 0
    assert stored.message_count > 0
    assert len(await store.load_messages(child.id)) == stored.message_count


@pytest.mark.asyncio
async def test_run_rejects_empty_prompt(coordinator: Coordinator, store: SessionStore):
    session = await store.create()
    agent = await coordinator.coder()
    model = agent.model()

    with pytest.raises(ValueError, match="prompt is required"):
        await agent.run(SessionAgentCall.for_model(session.id, "", model, coordinator.config.provider(model.provider_id)))
