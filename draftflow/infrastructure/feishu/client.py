from typing import Any, Dict, Optional
import asyncio
import time
import httpx
import structlog

logger = structlog.get_logger(__name__)

# Refresh the tenant token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 300


class FeishuAPIError(Exception):
    """Feishu Open API call failed"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class FeishuClient:
    """Minimal Feishu Open API client with tenant access token caching"""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = "https://open.feishu.cn",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.http = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def tenant_access_token(self) -> str:
        """Get a cached tenant access token, fetching a new one when near expiry"""

        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            data = await self._send(
                "POST",
                "/open-apis/auth/v3/tenant_access_token/internal",
                json={"app_id": self.app_id, "app_secret": self.app_secret},
            )
            token = data.get("tenant_access_token")
            if not token:
                raise FeishuAPIError("No tenant_access_token in response")

            expire = int(data.get("expire", 7200))
            self._token = token
            self._token_expires_at = time.monotonic() + max(expire - TOKEN_REFRESH_MARGIN, 60)
            logger.info("Feishu tenant token refreshed", expires_in=expire)
            return token

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Authenticated call returning the response's data object"""

        token = await self.tenant_access_token()
        body = await self._send(
            method,
            path,
            params=params,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )
        return body.get("data") or {}

    async def _send(self, method: str, path: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.http.request(method, path, headers=headers, **kwargs)
            body = response.json()
        except httpx.HTTPError as e:
            raise FeishuAPIError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise FeishuAPIError(f"{method} {path} returned invalid JSON") from e

        code = body.get("code", -1) if isinstance(body, dict) else -1
        if code != 0:
            message = body.get("msg", "") if isinstance(body, dict) else ""
            raise FeishuAPIError(f"{method} {path} failed: {code} {message}", code=code)

        return body

    async def aclose(self):
        await self.http.aclose()
