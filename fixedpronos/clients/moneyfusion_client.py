"""Клиент для работы с MoneyFusion"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional

import aiohttp

from fixedpronos.exceptions import GatewayError

logger = logging.getLogger(__name__)


class MoneyFusionClient:
    """Клиент для создания платежных сессий MoneyFusion"""
    
    def __init__(
        self,
        api_url: str,
        status_url: str,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.api_url = api_url
        self.status_url = status_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
    
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session
    
    async def close(self) -> None:
        """Закрывает HTTP сессию"""
        if self._session and not self._session.closed:
            await self._session.close()
    
    async def create_payment_session(
        self,
        payment_id: str,
        user_id: str,
        amount: Decimal,
        plan: str,
        phone_number: str,
        customer_name: str,
        return_url: str,
        webhook_url: str
    ) -> dict[str, Any]:
        """
        Создает платежную сессию
        
        Args:
            payment_id: ID нашей записи платежа (возвращается в personal_Info)
            amount: Сумма платежа
            plan: Тариф подписки
            phone_number: Номер mobile money клиента
            customer_name: Имя клиента
            return_url: Куда вернуть клиента после оплаты
            webhook_url: Куда MoneyFusion отправит уведомление
        
        Returns:
            {'url': ..., 'token': ..., 'message': ...}
        """
        total = float(amount)
        payload = {
            "totalPrice": total,
            "article": [{f"Abonnement {plan.upper()} - FixedPronos": total}],
            "personal_Info": [
                {
                    "paymentId": payment_id,
                    "userId": user_id,
                    "plan": plan,
                }
            ],
            "numeroSend": phone_number,
            "nomclient": customer_name,
            "return_url": return_url,
            "webhook_url": webhook_url,
        }
        
        data = await self._request("POST", self.api_url, json=payload)
        
        if not data.get("statut") or not data.get("url") or not data.get("token"):
            logger.error(f"MoneyFusion вернул неожиданный ответ для платежа {payment_id}: {data}")
            raise GatewayError("Unexpected payment session response")
        
        return {
            "url": str(data["url"]),
            "token": str(data["token"]),
            "message": data.get("message"),
        }
    
    async def check_status(self, token: str) -> dict[str, Any]:
        """Запрашивает статус платежа у MoneyFusion по токену сессии"""
        return await self._request("GET", f"{self.status_url}/{token}")
    
    async def _request(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        session = self._get_session()
        try:
            async with session.request(method, url, timeout=self.timeout, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error(f"MoneyFusion ответил {response.status}: {body[:200]}")
                    raise GatewayError(f"Provider responded with HTTP {response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError) as e:
            logger.error(f"Ошибка запроса к MoneyFusion: {e!r}")
            raise GatewayError("Provider request failed") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Таймаут запроса к MoneyFusion ({self.timeout.total}s)")
            raise GatewayError("Provider request timed out") from e
        
        if not isinstance(data, dict):
            raise GatewayError("Provider response is not a JSON object")
        return data
