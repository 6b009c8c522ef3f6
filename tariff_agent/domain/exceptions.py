"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层统一捕获，并映射为 HTTP 状态码与 `{error, details}` 响应体。

除 InvalidRequest（用户可修正，400）外，其余错误对当前轮次都是不可恢复的，
统一映射为 500；调用方持有的 stateObject 不会被修改。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_UNAVAILABLE"）。
        message: 用户可读错误信息，会作为 details 返回给调用方。
        http_status: 映射到 HTTP 时可用的状态码。
        extra: 其他补充字段（例如 operation、phase 等），仅用于日志。
    """

    default_code = "BUSINESS_ERROR"
    default_status = 500

    def __init__(self, message: str, code: str | None = None, http_status: int | None = None, **extra):
        self.code = code or self.default_code
        self.message = message
        self.http_status = http_status or self.default_status
        self.extra = extra
        super().__init__(message)


class InvalidRequest(BusinessError):
    """请求体缺失或非法，例如 messages 为空。"""

    default_code = "INVALID_REQUEST"
    default_status = 400


class UnsupportedOperation(BusinessError):
    """模型请求了白名单之外的操作，或在当前阶段不允许的操作。"""

    default_code = "UNSUPPORTED_OPERATION"


class InvalidArgument(BusinessError):
    """操作参数未通过校验，例如 topK <= 0。"""

    default_code = "INVALID_ARGUMENT"


class MalformedOperationArguments(BusinessError):
    """操作参数文本无法解析为键值对象。"""

    default_code = "MALFORMED_OPERATION_ARGUMENTS"


class NotFound(BusinessError):
    """分类树中不存在指定节点。"""

    default_code = "NOT_FOUND"


class StoreUnavailable(BusinessError):
    """分类库调用在有限次重试后仍然失败。"""

    default_code = "STORE_UNAVAILABLE"


class GatewayFailure(BusinessError):
    """模型网关调用失败或超时。"""

    default_code = "GATEWAY_FAILURE"


class NetworkError(GatewayFailure):
    """网络层错误，例如连接失败、超时等。"""

    default_code = "NETWORK_ERROR"


class ApiError(GatewayFailure):
    """第三方 API 返回非 2xx/429 错误时抛出。"""

    default_code = "API_ERROR"


class RateLimitError(GatewayFailure):
    """Provider 限流错误。"""

    default_code = "RATE_LIMIT"


class ValidationError(GatewayFailure):
    """Provider 配置校验失败，例如缺少 API Key。"""

    default_code = "VALIDATION_ERROR"
