#!/usr/bin/env python3
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

import requests
from loguru import logger

# Позволяет запускать файл напрямую: `python modules/proxy_utils.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if __name__ == "__main__":
    root_s = str(PROJECT_ROOT)
    if root_s not in sys.path:
        sys.path.insert(0, root_s)

# Файл с прокси (одна строка = один прокси)
PROXY_FILE = PROJECT_ROOT / "https.txt"

# Проверка прокси: внешний "what is my ip" эндпоинт
PROXY_TEST_URL = "https://api.ipify.org?format=json"
PROXY_TEST_TIMEOUT_SEC = 5

SOCKS_SCHEMES = ("socks4://", "socks5://")


class ProxyKind(Enum):
    DIRECT = "direct"
    HTTP = "http"
    SOCKS = "socks"


@dataclass(frozen=True)
class ProxyRoute:
    """Способ выхода в сеть, определяется один раз при создании клиента."""

    kind: ProxyKind
    url: Optional[str] = None

    @classmethod
    def direct(cls) -> "ProxyRoute":
        return cls(kind=ProxyKind.DIRECT)

    @property
    def proxies(self) -> Optional[dict[str, str]]:
        # Формат, который ожидает requests
        if self.kind is ProxyKind.DIRECT or not self.url:
            return None
        return {"http": self.url, "https": self.url}

    @property
    def safe_label(self) -> str:
        if not self.url:
            return "none"
        # Не светим логин/пароль в логах
        return self.url.rsplit("@", 1)[-1]


def new_proxy_route(proxy: Optional[str] = None) -> Optional[ProxyRoute]:
    """
    Строит маршрут для requests по строке прокси.

    Args:
        proxy: Прокси вида scheme://host:port (http, socks4, socks5)

    Returns:
        ProxyRoute или None, если прокси не задан или схема не поддерживается
    """
    if not proxy:
        return None
    if proxy.startswith("http://"):
        return ProxyRoute(kind=ProxyKind.HTTP, url=proxy)
    if proxy.startswith(SOCKS_SCHEMES):
        return ProxyRoute(kind=ProxyKind.SOCKS, url=proxy)
    logger.warning(f"Unsupported proxy type: {proxy}")
    return None


def normalize_proxy(proxy: str) -> str:
    """Строка host:port без схемы считается HTTP прокси."""
    proxy = proxy.strip()
    if proxy and "://" not in proxy:
        return f"http://{proxy}"
    return proxy


def load_proxy_candidates(path: Path = PROXY_FILE) -> list[str]:
    """Загружает список прокси из файла https.txt"""
    if not path.exists():
        return []
    candidates: list[str] = []
    for raw in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw.strip()
        # Пропускаем комментарии и пустые строки
        if line and not line.startswith("#"):
            candidates.append(line)
    return candidates


def check_proxy(proxy: str, session: Optional[requests.Session] = None) -> bool:
    """
    Проверяет прокси одним GET запросом к PROXY_TEST_URL.

    Returns:
        True если ответ пришел со статусом 200
    """
    logger.info(f"[PROXY] Testing proxy {proxy}")
    route = new_proxy_route(normalize_proxy(proxy))
    if route is None:
        return False

    try:
        if session is not None:
            response = session.get(PROXY_TEST_URL, proxies=route.proxies, timeout=PROXY_TEST_TIMEOUT_SEC)
        else:
            with requests.Session() as http:
                response = http.get(PROXY_TEST_URL, proxies=route.proxies, timeout=PROXY_TEST_TIMEOUT_SEC)
    except requests.RequestException as e:
        logger.debug(f"[PROXY] {route.safe_label} не отвечает: {e}")
        return False
    return response.status_code == 200


def find_working_proxy(
    candidates: Optional[Sequence[str]] = None,
    session: Optional[requests.Session] = None,
) -> Optional[str]:
    """
    Ищет первый рабочий прокси. Прокси проверяются строго по порядку,
    после первого успешного остальные не проверяются.

    Args:
        candidates: Список прокси; если None, читается из PROXY_FILE
        session: HTTP сессия (для тестов)

    Returns:
        Рабочий прокси (строка как в списке) или None, тогда работаем без прокси
    """
    if candidates is None:
        try:
            candidates = load_proxy_candidates()
        except OSError as e:
            logger.warning(f"[PROXY] Error reading proxy file: {e}. Running without proxy")
            return None

    if not candidates:
        logger.info("[PROXY] No proxies found, running without proxy")
        return None

    logger.info(f"[PROXY] Testing {len(candidates)} proxies...")
    for proxy in candidates:
        if check_proxy(proxy, session=session):
            logger.success(f"[PROXY] Found working proxy: {proxy}")
            return proxy

    logger.warning("[PROXY] No working proxy found, running without proxy")
    return None
