"""
Shared plumbing for gateway adapters: a lazily created, reused httpx client
with per-phase timeouts, plus provider-tagged logging.
"""
from __future__ import annotations

from typing import Mapping, Optional

import httpx

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_TIMEOUTS: Mapping[str, float] = {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str,
        timeouts: Optional[Mapping[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeouts_cfg = {**DEFAULT_TIMEOUTS, **(timeouts or {})}
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        cfg = self._timeouts_cfg
        return httpx.Timeout(cfg["total"], connect=cfg["connect"], read=cfg["read"], write=cfg["write"])

    @property
    def http(self) -> httpx.AsyncClient:
        """连接池在调用之间复用，由 aclose() 释放"""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeouts,
                transport=self._transport,
                headers={"User-Agent": f"wechat-pay-service/{settings.VERSION}"},
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)
