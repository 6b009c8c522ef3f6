"""对外 API 服务模块。

提供简化的函数接口供 HTTP 层或其他上层应用调用：负责按配置装配控制器，
并在线上格式（dict）与领域对象之间做转换。
"""

from typing import Any, Dict, List, Mapping, Optional

from tariff_agent.agents.dialogue_controller import DialogueController
from tariff_agent.config.settings import settings
from tariff_agent.domain.exceptions import BusinessError, InvalidRequest
from tariff_agent.domain.taxonomy import ConversationState, Message, TaxonomyStore
from tariff_agent.infrastructure.storage.memory_store import InMemoryTaxonomyStore
from tariff_agent.infrastructure.storage.retrying import RetryingTaxonomyStore
from tariff_agent.infrastructure.storage.weaviate_store import WeaviateTaxonomyStore
from tariff_agent.providers import create_provider
from tariff_agent.providers.gateway import ModelGateway
from tariff_agent.tools.definitions import OPERATION_SCHEMA


_controller: Optional[DialogueController] = None


def build_store(cfg=settings) -> TaxonomyStore:
    """按配置创建分类库，并包上超时与有限次重试。"""
    if cfg.store_backend == "weaviate":
        if not cfg.weaviate_url:
            raise BusinessError("WEAVIATE_URL not set", code="MISSING_STORE_CONFIG")
        inner: TaxonomyStore = WeaviateTaxonomyStore(
            url=cfg.weaviate_url,
            collection=cfg.weaviate_collection,
            api_key=cfg.weaviate_api_key,
            timeout=cfg.http_timeout,
        )
    else:
        if not cfg.taxonomy_file:
            raise BusinessError("TAXONOMY_FILE not set", code="MISSING_STORE_CONFIG")
        inner = InMemoryTaxonomyStore.from_file(cfg.taxonomy_file)
    return RetryingTaxonomyStore(
        inner,
        attempts=cfg.store_retry_attempts,
        timeout=cfg.store_timeout,
        initial_backoff=cfg.store_retry_backoff,
        max_backoff=cfg.store_retry_backoff_max,
    )


def build_controller(cfg=settings) -> DialogueController:
    gateway = ModelGateway(
        provider=create_provider(cfg.default_provider),
        model=cfg.default_model,
        tools=OPERATION_SCHEMA,
        temperature=cfg.gateway_temperature,
        timeout=cfg.gateway_timeout,
    )
    return DialogueController(
        gateway=gateway,
        store=build_store(cfg),
        default_top_k=cfg.search_top_k,
        max_top_k=cfg.max_search_top_k,
    )


def get_default_controller() -> DialogueController:
    """获取默认控制器实例（单例，只持有不可变协作对象）。"""
    global _controller
    if _controller is None:
        _controller = build_controller()
    return _controller


def parse_messages(raw: Any) -> List[Message]:
    if not isinstance(raw, list) or not raw:
        raise InvalidRequest("Messages are required")
    return [Message.from_dict(item) for item in raw]


async def run_chat(
    messages: Any,
    state_object: Optional[Mapping[str, Any]] = None,
    controller: Optional[DialogueController] = None,
) -> Dict[str, Any]:
    """运行一轮分类对话。

    Args:
        messages: 线上格式的消息列表
        state_object: 上一轮返回的 stateObject（可选，缺省为初始状态）
        controller: 指定控制器（可选，默认使用单例）

    Returns:
        {"response": 文本或节点列表, "stateObject": 新状态}

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    parsed = parse_messages(messages)
    state = ConversationState.from_dict(state_object)
    result = await (controller or get_default_controller()).run_turn(parsed, state)
    return result.to_dict()
