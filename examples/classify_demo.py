"""Interactive terminal demo: classify a product against the sample taxonomy.

Requires OPENAI_API_KEY (or another provider configured in config.yaml).
"""

import asyncio
from pathlib import Path

from tariff_agent.agents.dialogue_controller import DialogueController
from tariff_agent.config.settings import settings
from tariff_agent.domain.taxonomy import ConversationState, Message
from tariff_agent.infrastructure.storage.memory_store import InMemoryTaxonomyStore
from tariff_agent.providers import create_provider
from tariff_agent.providers.gateway import ModelGateway
from tariff_agent.tools.definitions import OPERATION_SCHEMA

SAMPLE = Path(__file__).resolve().parents[1] / "data" / "sample_taxonomy.json"


async def main() -> None:
    gateway = ModelGateway(create_provider(), settings.default_model, OPERATION_SCHEMA)
    controller = DialogueController(gateway, InMemoryTaxonomyStore.from_file(SAMPLE))
    state = ConversationState.initial()
    history = []
    while True:
        text = input("You: ").strip()
        if not text:
            break
        history.append(Message(role="user", content=text))
        result = await controller.run_turn(history, state)
        state = result.state
        if isinstance(result.response, str):
            print("Agent:", result.response)
        else:
            for node in result.response:
                print(f"  [{node.id}] {node.code} {node.description}{' (leaf)' if node.is_leaf else ''}")
        print(f"  -- phase: {state.phase.value}")


if __name__ == "__main__":
    asyncio.run(main())
