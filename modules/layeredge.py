#!/usr/bin/env python3
from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests
from eth_account import Account
from eth_account.messages import encode_defunct
from loguru import logger
from web3 import Web3

# Позволяет запускать файл напрямую: `python modules/layeredge.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if __name__ == "__main__":
    root_s = str(PROJECT_ROOT)
    if root_s not in sys.path:
        sys.path.insert(0, root_s)

from modules.proxy_utils import ProxyRoute, new_proxy_route, normalize_proxy

# ==================== КОНФИГУРАЦИЯ ====================
API_BASE = "https://referralapi.layeredge.io/api"
VERIFY_REFERRAL_URL = f"{API_BASE}/referral/verify-referral-code"
REGISTER_WALLET_URL = f"{API_BASE}/referral/register-wallet/{{ref_code}}"
NODE_ACTION_URL = f"{API_BASE}/light-node/node-action/{{address}}/{{action}}"
NODE_STATUS_URL = f"{API_BASE}/light-node/node-status/{{address}}"
WALLET_DETAILS_URL = f"{API_BASE}/referral/wallet-details/{{address}}"

REF_CODE = "ktb8KRwH"

REQUEST_TIMEOUT_SEC = 30
RETRY_DELAY_SEC = 2
DEFAULT_MAX_RETRIES = 30

# Ответ API при успешном старте ноды (сравнивается строго)
NODE_ACTION_SUCCESS_MESSAGE = "node action executed successfully"

ACTIVATION = "activation"
DEACTIVATION = "deactivation"


@dataclass(frozen=True)
class ActionResult:
    """
    Результат операции с API.

    Attributes:
        success: Операция выполнена (по правилу конкретного эндпоинта)
        message: Описание результата или причина ошибки
        data: Тело ответа или извлеченное значение
    """

    success: bool
    message: Optional[str] = None
    data: Any = None

    def __bool__(self) -> bool:
        return self.success


def _get_headers() -> dict[str, str]:
    """Стандартные заголовки для запросов к API LayerEdge"""
    return {
        "accept": "application/json, text/plain, */*",
        "accept-language": "en-US,en;q=0.9",
        "content-type": "application/json",
        "origin": "https://dashboard.layeredge.io",
        "referer": "https://dashboard.layeredge.io/",
        "user-agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
    }


def _json_body(response: Optional[requests.Response]) -> Any:
    """Тело ответа: JSON, либо сырой текст, если это не JSON; None если ответа нет."""
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _has_body(body: Any) -> bool:
    # Пустой объект {} тоже считается телом ответа
    return body is not None and body != ""


class LayerEdgeConnection:
    """
    Клиент API LayerEdge для одного кошелька.
    Прокси и таймаут задаются один раз при создании и используются во всех запросах.
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        private_key: Optional[str] = None,
        ref_code: str = REF_CODE,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            proxy: Рабочий прокси (scheme://host:port или host:port)
            private_key: Приватный ключ; если не указан, создается новый кошелек
            ref_code: Реферальный код
            session: HTTP сессия (по умолчанию новая requests.Session)
        """
        self.ref_code = ref_code
        self.proxy = proxy
        self.route: ProxyRoute = (
            new_proxy_route(normalize_proxy(proxy)) if proxy else None
        ) or ProxyRoute.direct()
        self.timeout = REQUEST_TIMEOUT_SEC

        self.wallet = Account.from_key(private_key) if private_key else Account.create()

        self.session = session or requests.Session()
        self.session.headers.update(_get_headers())

    def get_wallet(self):
        return self.wallet

    @property
    def address(self) -> str:
        return self.wallet.address

    def make_request(
        self,
        method: str,
        url: str,
        config: Optional[dict[str, Any]] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> Optional[requests.Response]:
        """
        Выполняет HTTP запрос с повторами через фиксированную паузу.

        Args:
            method: HTTP метод
            url: Полный URL
            config: Дополнительные параметры для requests (json, params, ...)
            max_retries: Максимальное количество попыток

        Returns:
            Ответ или None, если все попытки исчерпаны
        """
        attempts = max(1, int(max_retries))
        request_kwargs: dict[str, Any] = {
            "timeout": self.timeout,
            "proxies": self.route.proxies,
        }
        request_kwargs.update(config or {})

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(method.upper(), url, **request_kwargs)
                response.raise_for_status()
                return response
            except requests.RequestException as e:
                if attempt == attempts:
                    logger.error(f"Max retries reached - Request failed: {e}")
                    if self.proxy:
                        logger.error(f"Failed proxy: {self.route.safe_label} ({e})")
                    return None

                logger.warning(f"[RETRY] request failed: {e} => Retrying... ({attempt}/{attempts})")
                time.sleep(RETRY_DELAY_SEC)

        return None

    def build_signed_payload(self, action: str) -> dict[str, Any]:
        """
        Подписывает сообщение о старте/остановке ноды (EIP-191 personal_sign).

        Args:
            action: ACTIVATION или DEACTIVATION
        """
        timestamp = int(time.time() * 1000)
        message = f"Node {action} request for {self.wallet.address} at {timestamp}"
        signed = Account.sign_message(encode_defunct(text=message), self.wallet.key)
        return {
            "sign": Web3.to_hex(signed.signature),
            "timestamp": timestamp,
        }

    def check_invite(self) -> ActionResult:
        response = self.make_request(
            "post",
            VERIFY_REFERRAL_URL,
            {"json": {"invite_code": self.ref_code}},
        )
        body = _json_body(response)

        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict) and data.get("valid") is True:
            logger.info(f"Invite Code Valid: {body}")
            return ActionResult(True, "invite code valid", body)

        logger.error("Failed to check invite")
        return ActionResult(False, "invite code invalid or no response", body)

    def register_wallet(self) -> ActionResult:
        """Регистрирует адрес кошелька под реферальным кодом."""
        response = self.make_request(
            "post",
            REGISTER_WALLET_URL.format(ref_code=self.ref_code),
            {"json": {"walletAddress": self.wallet.address}},
        )
        body = _json_body(response)

        # Любое непустое тело считается успехом
        if _has_body(body):
            logger.info(f"Wallet successfully registered: {body}")
            return ActionResult(True, "wallet registered", body)

        logger.error("Failed to register wallet")
        return ActionResult(False, "empty response", body)

    def _node_action(self, action: str, endpoint: str) -> Any:
        payload = self.build_signed_payload(action)
        logger.debug(f"Node {action} payload: {payload}")
        response = self.make_request(
            "post",
            NODE_ACTION_URL.format(address=self.wallet.address, action=endpoint),
            {"json": payload},
        )
        return _json_body(response)

    def connect_node(self) -> ActionResult:
        """
        Запускает ноду. Успех только если message в ответе
        в точности равен NODE_ACTION_SUCCESS_MESSAGE.
        """
        body = self._node_action(ACTIVATION, "start")

        message = body.get("message") if isinstance(body, dict) else None
        if message == NODE_ACTION_SUCCESS_MESSAGE:
            logger.info(f"Connected Node Successfully: {body}")
            return ActionResult(True, message, body)

        logger.info("Failed to connect Node")
        return ActionResult(False, message or "empty response", body)

    def stop_node(self) -> ActionResult:
        """
        Останавливает ноду (сервер при этом начисляет накопленные поинты).
        Успех при любом непустом ответе, даже если API сообщает об ошибке.
        """
        body = self._node_action(DEACTIVATION, "stop")

        if _has_body(body):
            logger.info(f"Stop and Claim Points Result: {body}")
            message = body.get("message") if isinstance(body, dict) else None
            return ActionResult(True, message, body)

        logger.error("Failed to stop node and claim points")
        return ActionResult(False, "empty response", body)

    def check_node_status(self) -> ActionResult:
        """Нода считается запущенной, если data.startTimestamp не null."""
        response = self.make_request(
            "get",
            NODE_STATUS_URL.format(address=self.wallet.address),
        )
        body = _json_body(response)

        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict) and data.get("startTimestamp") is not None:
            logger.info(f"Node Status Running: {body}")
            return ActionResult(True, "running", body)

        if body is None:
            logger.error("Failed to check node status")
            return ActionResult(False, "no response", body)

        logger.warning("Node not running, trying to start node...")
        return ActionResult(False, "not running", body)

    def check_node_points(self) -> ActionResult:
        response = self.make_request(
            "get",
            WALLET_DETAILS_URL.format(address=self.wallet.address),
        )
        body = _json_body(response)

        if _has_body(body):
            data = body.get("data") if isinstance(body, dict) else None
            points = (data.get("nodePoints") if isinstance(data, dict) else None) or 0
            logger.info(f"{self.wallet.address} Total Points: {points}")
            return ActionResult(True, "points fetched", points)

        logger.error("Failed to check total points")
        return ActionResult(False, "no response", 0)
