"""LangGraph construction and node implementations for one dialogue turn.

prompt -> gateway -> dispatch -> fold -> END
                  +-> passthrough -> END   (no operation requested)

The compiled graph has no checkpointer: every invocation starts from the
TurnState it is given, so one compiled graph can serve concurrent turns.
"""

from __future__ import annotations

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from tariff_agent.flows.state import TurnState
from tariff_agent.flows.transitions import fold
from tariff_agent.infrastructure.logging.logger import logger
from tariff_agent.prompts import PromptBuilder
from tariff_agent.providers.gateway import ModelGateway
from tariff_agent.tools.dispatcher import FunctionDispatcher


def gateway_router(state: TurnState) -> str:
    reply = state.get("reply")
    if reply is not None and reply.operation is not None:
        return "dispatch"
    return "passthrough"


def passthrough_node(state: TurnState) -> TurnState:
    reply = state.get("reply")
    logger.info("passthrough_node", extra={"extra": {"trace_id": state.get("trace_id")}})
    return {
        "response": reply.text if reply else "",
        "next_conversation": state["conversation"],
    }


def fold_node(state: TurnState) -> TurnState:
    next_conversation, response = fold(state["conversation"], state["outcome"])
    logger.info(
        "fold_node",
        extra={"extra": {
            "trace_id": state.get("trace_id"),
            "from_phase": state["conversation"].phase.value,
            "to_phase": next_conversation.phase.value,
            "results": len(response),
        }},
    )
    return {"response": response, "next_conversation": next_conversation}


def build_graph(
    prompt_builder: PromptBuilder,
    gateway: ModelGateway,
    dispatcher: FunctionDispatcher,
) -> CompiledStateGraph:
    def prompt_node(state: TurnState) -> TurnState:
        conversation = state["conversation"]
        prompt = prompt_builder.build(conversation.phase, conversation.current_results)
        return {"system_prompt": prompt}

    async def gateway_node(state: TurnState) -> TurnState:
        logger.info(
            "gateway_node.start",
            extra={"extra": {"trace_id": state.get("trace_id"), "phase": state["conversation"].phase.value}},
        )
        reply = await gateway.complete(state["user_message"], state["system_prompt"])
        logger.info(
            "gateway_node.end",
            extra={"extra": {
                "trace_id": state.get("trace_id"),
                "operation": reply.operation.name if reply.operation else None,
            }},
        )
        return {"reply": reply}

    async def dispatch_node(state: TurnState) -> TurnState:
        request = state["reply"].operation
        logger.info(
            "dispatch_node.execute",
            extra={"extra": {"trace_id": state.get("trace_id"), "operation": request.name}},
        )
        outcome = await dispatcher.dispatch(request, state["conversation"])
        return {"outcome": outcome}

    graph = StateGraph(TurnState)
    graph.add_node("prompt", prompt_node)
    graph.add_node("gateway", gateway_node)
    graph.add_node("dispatch", dispatch_node)
    graph.add_node("fold", fold_node)
    graph.add_node("passthrough", passthrough_node)
    graph.set_entry_point("prompt")
    graph.add_edge("prompt", "gateway")
    graph.add_conditional_edges("gateway", gateway_router, {"dispatch": "dispatch", "passthrough": "passthrough"})
    graph.add_edge("dispatch", "fold")
    graph.add_edge("fold", END)
    graph.add_edge("passthrough", END)
    return graph.compile()
