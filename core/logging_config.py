"""
Structlog 日志配置

标准库 logging 与 structlog 共用一条处理链；支付相关的敏感字段
（OpenID、签名、密文、密钥）在渲染前统一打码。
"""
import json
import logging
from typing import Any, List, Mapping, MutableMapping, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings


MASK = "***"

SENSITIVE_KEYS = frozenset({
    "openid",
    "payer_id",
    "pay_sign",
    "signature",
    "authorization",
    "ciphertext",
    "associated_data",
    "api_v3_key",
    "private_key",
    "attach",
})

# 第三方库只保留告警以上
_QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiomysql": logging.WARNING,
}


def redact(value: Any) -> Any:
    """递归打码 dict/list 中的敏感键"""
    if isinstance(value, Mapping):
        return {k: (MASK if str(k).lower() in SENSITIVE_KEYS else redact(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def _redact_processor(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = MASK
        elif isinstance(event_dict[key], (Mapping, list, tuple)):
            event_dict[key] = redact(event_dict[key])
    return event_dict


def _json_dumps(obj: Any, default: Any = None, **kwargs: Any) -> str:
    # 保留中文原文；structlog 会传入 default 等关键字参数
    return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)


def _renderer(debug: bool) -> Any:
    return ConsoleRenderer(colors=True) if debug else JSONRenderer(serializer=_json_dumps)


def configure_logging(debug: Optional[bool] = None) -> None:
    """配置 structlog 并把标准库 logging 接入同一渲染链；可重复调用"""
    debug = settings.DEBUG if debug is None else debug

    pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        structlog.stdlib.add_logger_name,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        _redact_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, _renderer(debug)],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
