"""领域层模型与协议。

包含：
- models: 模型网关使用的 ChatMessage / ChatRequest / ChatResult。
- taxonomy: 分类树节点、会话状态以及 TaxonomyStore 抽象。
- exceptions: 业务异常类型定义。
"""
