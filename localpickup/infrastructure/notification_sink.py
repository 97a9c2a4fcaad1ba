import httpx
import logging
import asyncio

from localpickup.domain.exceptions import NotificationError
from localpickup.application.interfaces import NotificationSink

logger = logging.getLogger(__name__)


class HTTPPushNotificationSink(NotificationSink):
    """Отправка push-уведомлений через HTTP push-gateway"""

    def __init__(
        self,
        base_url: str,
        api_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._transport = transport

    async def send(self, token: str, title: str, body: str, data: dict) -> None:
        """Отправка уведомления с повторными попытками"""
        if not token:
            return
        if not self._base_url:
            logger.info(f"Push-gateway не настроен, уведомление '{title}' пропущено")
            return

        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        f"{self._base_url}/api/push",
                        json={
                            "token": token,
                            "notification": {"title": title, "body": body},
                            "data": data
                        },
                        headers={"X-API-Key": self._api_token},
                        timeout=self._timeout
                    )

                    if response.status_code in (200, 201, 202):
                        logger.info(f"Уведомление отправлено (попытка {attempt + 1})")
                        return
                    else:
                        logger.warning(f"Push-gateway вернул статус {response.status_code}")

            except httpx.RequestError as e:
                logger.warning(f"Ошибка отправки уведомления (попытка {attempt + 1}/{self._max_retries}): {e}")

            # Ждем перед следующей попыткой (кроме последней)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        raise NotificationError(f"notification not delivered after {self._max_retries} attempts")
