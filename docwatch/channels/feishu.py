"""
Feishu (Lark) channel — document metadata + chat notifications.

Features:
- Document metadata via the docs-api/meta endpoint (not wrapped by the SDK,
  sent as a raw request with the tenant token)
- Retry with backoff on transient failures
- Metadata and user-name caching through injected TTLCache objects
- Notifications as text messages to a chat_id

Setup:
1. Create a Feishu app at https://open.feishu.cn
2. Enable "Bot" capability and add the bot to the target group
3. Grant drive:drive:readonly, contact:user.base:readonly, im:message:send_as_bot

Environment variables:
    FEISHU_APP_ID      — App ID from developer console
    FEISHU_APP_SECRET  — App Secret from developer console
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Sequence

from loguru import logger

from docwatch.cache import TTLCache
from docwatch.channels.base import Channel, Notification
from docwatch.models import DocMetadata

try:
    import lark_oapi as lark
    from lark_oapi.api.contact.v3 import GetUserRequest
    from lark_oapi.api.im.v1 import CreateMessageRequest, CreateMessageRequestBody
    LARK_AVAILABLE = True
except ImportError:
    LARK_AVAILABLE = False
    lark = None  # type: ignore[assignment]


DOCS_META_URI = "/open-apis/suite/docs-api/meta"

DEFAULT_METADATA_TTL_MS = 30_000
DEFAULT_USER_TTL_MS = 60 * 60 * 1000
DEFAULT_BACKOFF_S = (0.1, 0.5, 2.0)


class FeishuAPIError(Exception):
    """A Feishu API call returned a non-zero code or an unusable payload."""


def parse_docs_meta(payload: dict[str, Any], doc_token: str, doc_type: str) -> DocMetadata:
    """Build DocMetadata from a docs-api/meta response body.

    Raises:
        FeishuAPIError: non-zero code, or no metadata for the document.
    """
    code = payload.get("code", 0)
    if code != 0:
        raise FeishuAPIError(f"API error {code}: {payload.get('msg') or 'unknown error'}")

    metas = (payload.get("data") or {}).get("docs_metas") or []
    if not metas:
        raise FeishuAPIError("No metadata in response (document may not exist)")

    meta = metas[0]
    return DocMetadata(
        doc_token=meta.get("docs_token") or doc_token,
        title=meta.get("title") or "Unknown",
        owner_id=meta.get("owner_id") or "unknown",
        created_time=int(meta.get("create_time") or 0),
        last_modified_user=meta.get("latest_modify_user") or "unknown",
        last_modified_time=int(meta.get("latest_modify_time") or 0),
        doc_type=meta.get("docs_type") or doc_type,
    )


class FeishuChannel(Channel):
    """Feishu document channel."""

    name = "feishu"

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        *,
        metadata_cache: TTLCache | None = None,
        user_cache: TTLCache | None = None,
        retry_attempts: int = 3,
        backoff_s: Sequence[float] = DEFAULT_BACKOFF_S,
    ) -> None:
        if not LARK_AVAILABLE:
            raise ImportError(
                "lark-oapi is required for Feishu support.\n"
                "Install with: pip install lark-oapi"
            )

        self.app_id = app_id
        self.app_secret = app_secret
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_s = tuple(backoff_s)

        if metadata_cache is None:
            metadata_cache = TTLCache(DEFAULT_METADATA_TTL_MS, name="feishu-metadata")
        if user_cache is None:
            user_cache = TTLCache(DEFAULT_USER_TTL_MS, name="feishu-users")
        self.metadata_cache = metadata_cache
        self.user_cache = user_cache

        # Feishu SDK client
        self._client = lark.Client.builder() \
            .app_id(app_id) \
            .app_secret(app_secret) \
            .log_level(lark.LogLevel.WARNING) \
            .build()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def fetch_metadata(
        self,
        doc_token: str,
        doc_type: str = "doc",
        *,
        use_cache: bool = True,
    ) -> DocMetadata | None:
        """Fetch who/when last modified a document. None after all retries fail."""
        if use_cache:
            cached = self.metadata_cache.get(doc_token)
            if cached is not None:
                logger.debug(f"[feishu] Metadata cache hit for {doc_token}")
                return cached

        for attempt in range(self.retry_attempts):
            if attempt > 0:
                delay = self._backoff(attempt - 1)
                logger.info(
                    f"[feishu] Retry {attempt + 1}/{self.retry_attempts} "
                    f"for {doc_token} (after {delay}s)"
                )
                await asyncio.sleep(delay)

            try:
                metadata = self._request_metadata(doc_token, doc_type)
            except Exception as exc:
                if attempt == self.retry_attempts - 1:
                    logger.error(
                        f"[feishu] Failed to get metadata for {doc_token} "
                        f"after {self.retry_attempts} attempts: {exc}"
                    )
                else:
                    logger.warning(f"[feishu] Attempt {attempt + 1} failed for {doc_token}: {exc}")
                continue

            self.metadata_cache.set(doc_token, metadata)
            logger.debug(f"[feishu] Metadata for {doc_token}: {metadata.title!r}")
            return metadata

        return None

    def _request_metadata(self, doc_token: str, doc_type: str) -> DocMetadata:
        req = lark.BaseRequest.builder() \
            .http_method(lark.HttpMethod.POST) \
            .uri(DOCS_META_URI) \
            .token_types({lark.AccessTokenType.TENANT}) \
            .body({"request_docs": [{"docs_token": doc_token, "docs_type": doc_type}]}) \
            .build()

        resp = self._client.request(req)
        if not resp.success():
            raise FeishuAPIError(f"API error {resp.code}: {resp.msg}")

        try:
            payload = json.loads(resp.raw.content)
        except (TypeError, ValueError) as exc:
            raise FeishuAPIError(f"Malformed response body: {exc}") from exc
        return parse_docs_meta(payload, doc_token, doc_type)

    def _backoff(self, index: int) -> float:
        if not self.backoff_s:
            return 0.0
        return self.backoff_s[min(index, len(self.backoff_s) - 1)]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def resolve_user_name(self, user_id: str) -> str | None:
        if not user_id:
            return None
        cached = self.user_cache.get(user_id)
        if cached is not None:
            return cached

        try:
            req = GetUserRequest.builder() \
                .user_id(user_id) \
                .user_id_type("open_id") \
                .build()
            resp = self._client.contact.v3.user.get(req)
            if not resp.success() or not resp.data or not resp.data.user:
                logger.warning(f"[feishu] Failed to fetch user info for {user_id}: {resp.msg}")
                return None
            name = resp.data.user.name or None
        except Exception as exc:
            logger.warning(f"[feishu] Error fetching user info for {user_id}: {exc}")
            return None

        if name:
            self.user_cache.set(user_id, name)
        return name

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(self, notification: Notification) -> bool:
        """Send a notification as a text message to a chat."""
        text = f"{notification.title}\n{notification.text}" if notification.title else notification.text
        content = json.dumps({"text": text}, ensure_ascii=False)

        req = CreateMessageRequest.builder() \
            .receive_id_type("chat_id") \
            .request_body(
                CreateMessageRequestBody.builder()
                .receive_id(notification.chat_id)
                .msg_type("text")
                .content(content)
                .build()
            ).build()

        try:
            resp = self._client.im.v1.message.create(req)
            if not resp.success():
                logger.error(f"[feishu] send failed: {resp.code} {resp.msg}")
                return False
            return True
        except Exception as exc:
            logger.error(f"[feishu] send error: {exc}")
            return False
