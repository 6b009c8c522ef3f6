"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容端点的具体实现 (chat_client)。
- 面向控制器的模型网关 (gateway)。
"""

from typing import Optional

from tariff_agent.config.settings import settings
from tariff_agent.providers.base import ProviderClient
from tariff_agent.providers.chat_client import ChatCompletionsClient
from tariff_agent.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "openai")
    return ChatCompletionsClient(get_provider_config(provider_name), settings)
