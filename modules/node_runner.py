#!/usr/bin/env python3
from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

# Позволяет запускать файл напрямую: `python modules/node_runner.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if __name__ == "__main__":
    root_s = str(PROJECT_ROOT)
    if root_s not in sys.path:
        sys.path.insert(0, root_s)

from modules.layeredge import ActionResult, LayerEdgeConnection
from modules.proxy_utils import find_working_proxy
from modules.wallets import WALLETS_FILE, WalletRecord, load_wallets

# ==================== КОНФИГУРАЦИЯ ====================
STARTUP_DELAY_SEC = 3

# Паузы между циклами ротируются по кругу
WAIT_TIMES_MINUTES = (25, 34, 90)


@dataclass(frozen=True)
class WaitScheduler:
    """
    Ротация пауз между циклами. Индекс сначала увеличивается, потом берется
    значение, поэтому свежий планировщик (index=0) выдает 34, 90, 25, 34, ... минут.
    """

    index: int = 0
    wait_times_minutes: tuple[int, ...] = WAIT_TIMES_MINUTES

    def advance(self) -> tuple["WaitScheduler", int]:
        """
        Returns:
            (новый планировщик, пауза в секундах)
        """
        next_index = (self.index + 1) % len(self.wait_times_minutes)
        wait_seconds = self.wait_times_minutes[next_index] * 60
        return WaitScheduler(next_index, self.wait_times_minutes), wait_seconds


@dataclass
class WalletCycleReport:
    """Итог обработки одного кошелька за цикл. stop=None значит остановка не запускалась."""

    address: str
    status: Optional[ActionResult] = None
    stop: Optional[ActionResult] = None
    start: Optional[ActionResult] = None
    points: Optional[ActionResult] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class CycleSummary:
    reports: list[WalletCycleReport] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.reports if r.failed)


ConnectionFactory = Callable[[Optional[str], WalletRecord], LayerEdgeConnection]


def _default_connection_factory(proxy: Optional[str], wallet: WalletRecord) -> LayerEdgeConnection:
    return LayerEdgeConnection(proxy=proxy, private_key=wallet.privateKey or None)


def _progress(address: str, step: str, status: str = "PROGRESS") -> None:
    logger.info(f"[{status}] {address} - {step}")


def run_wallet_steps(connection: LayerEdgeConnection, report: WalletCycleReport) -> WalletCycleReport:
    """
    Шаги для одного кошелька в фиксированном порядке:
    статус -> стоп (только если нода запущена) -> старт -> поинты.
    Неудача шага не прерывает следующие шаги.
    """
    address = report.address

    _progress(address, "Checking Node Status")
    report.status = connection.check_node_status()

    if report.status.success:
        _progress(address, "Claiming Node Points")
        report.stop = connection.stop_node()

    _progress(address, "Reconnecting Node")
    report.start = connection.connect_node()

    _progress(address, "Checking Node Points")
    report.points = connection.check_node_points()
    return report


def process_wallet(
    wallet: WalletRecord,
    proxy: Optional[str] = None,
    connection_factory: ConnectionFactory = _default_connection_factory,
) -> WalletCycleReport:
    """
    Обрабатывает один кошелек. Любое исключение ловится здесь,
    кошелек помечается как неудачный, цикл продолжается.
    """
    report = WalletCycleReport(address=wallet.address)
    _progress(wallet.address, "Wallet Processing Started", "START")
    try:
        connection = connection_factory(proxy, wallet)
        logger.info(
            f"Wallet Details: Address: {wallet.address}"
            + (f", Proxy: {proxy}" if proxy else "")
        )
        run_wallet_steps(connection, report)
        _progress(wallet.address, "Wallet Processing Complete", "SUCCESS")
    except Exception as e:
        report.error = str(e) or type(e).__name__
        _progress(wallet.address, "Wallet Processing Failed", "FAILED")
        logger.error(f"Wallet Processing Error: {report.error}")
    return report


def run_cycle(
    wallets: Sequence[WalletRecord],
    proxy: Optional[str] = None,
    connection_factory: ConnectionFactory = _default_connection_factory,
) -> CycleSummary:
    """Один проход по всем кошелькам строго по порядку, без параллельности."""
    summary = CycleSummary()
    for wallet in wallets:
        summary.reports.append(process_wallet(wallet, proxy, connection_factory))
    return summary


def run_node_loop(
    wallets: Sequence[WalletRecord],
    proxy: Optional[str] = None,
    scheduler: Optional[WaitScheduler] = None,
    connection_factory: ConnectionFactory = _default_connection_factory,
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: Optional[int] = None,
) -> WaitScheduler:
    """
    Бесконечный цикл: проход по кошелькам, затем пауза по ротации.

    Args:
        wallets: Кошельки
        proxy: Рабочий прокси или None
        scheduler: Состояние ротации пауз (по умолчанию с нуля)
        connection_factory: Создание клиента для кошелька
        sleep: Функция ожидания
        max_cycles: Ограничение числа циклов (None = бесконечно)

    Returns:
        Состояние планировщика после последнего цикла
    """
    scheduler = scheduler or WaitScheduler()
    iteration = 0

    while max_cycles is None or iteration < max_cycles:
        iteration += 1
        logger.info("[CYCLE] starting cycle #{}", iteration)

        summary = run_cycle(wallets, proxy, connection_factory)

        scheduler, wait_seconds = scheduler.advance()
        logger.info(
            "[CYCLE] #{} complete ({} failed of {}) - Waiting {} minutes before next run",
            iteration,
            summary.failed_count,
            len(summary.reports),
            wait_seconds // 60,
        )
        sleep(wait_seconds)

    return scheduler


def bootstrap(
    sleep: Callable[[float], None] = time.sleep,
    wallets_file: Path = WALLETS_FILE,
) -> tuple[Optional[str], list[WalletRecord]]:
    """Стартовая пауза, разовая проверка прокси и загрузка кошельков."""
    sleep(STARTUP_DELAY_SEC)

    working_proxy = None
    try:
        working_proxy = find_working_proxy()
    except Exception as e:
        logger.warning(f"Failed to setup proxy: {e}. Continuing without proxy")

    wallets = load_wallets(wallets_file)
    return working_proxy, wallets


def run() -> None:
    """
    Главная функция для запуска модуля из main.py.
    Крутит ноды всех кошельков из wallets.json бесконечно.
    """
    # Настройка логирования
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="INFO",
    )

    try:
        working_proxy, wallets = bootstrap()

        if not wallets:
            logger.error(
                'Wallet Configuration Missing: create wallets using "python main.py --module autoref"'
            )
            return

        logger.info(f"Wallet Processing: Total Wallets: {len(wallets)}")
        run_node_loop(wallets, working_proxy)

    except ValueError as e:
        logger.error(f"{e}")
        raise SystemExit(1)
    except Exception as e:
        logger.error(f"Ошибка при выполнении: {e}")
        raise


if __name__ == "__main__":
    run()
