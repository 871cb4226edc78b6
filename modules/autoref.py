#!/usr/bin/env python3
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from web3 import Web3

# Позволяет запускать файл напрямую: `python modules/autoref.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if __name__ == "__main__":
    root_s = str(PROJECT_ROOT)
    if root_s not in sys.path:
        sys.path.insert(0, root_s)

from modules.layeredge import REF_CODE, LayerEdgeConnection
from modules.proxy_utils import find_working_proxy
from modules.wallets import WALLETS_FILE, WalletRecord, save_wallets

MIN_WALLETS = 1
MAX_WALLETS = 100
DEFAULT_WALLETS = 1

DELAY_BETWEEN_WALLETS_SEC = 3


def get_wallet_count_from_user() -> int:
    """
    Запрашивает у пользователя количество новых кошельков.

    Returns:
        Целое число от MIN_WALLETS до MAX_WALLETS
    """
    while True:
        try:
            raw = input(f"Сколько кошельков создать ({MIN_WALLETS}-{MAX_WALLETS}): ").strip()

            if not raw:
                print("❌ Введите число. Попробуйте снова.")
                continue

            count = int(raw)
            if count < MIN_WALLETS or count > MAX_WALLETS:
                print(f"❌ Допустимо от {MIN_WALLETS} до {MAX_WALLETS}. Попробуйте снова.")
                continue

            return count

        except ValueError:
            print("❌ Неверный формат. Введите целое число (например: 5).")
            continue
        except (KeyboardInterrupt, EOFError):
            print(f"\nИспользуется значение по умолчанию: {DEFAULT_WALLETS}")
            return DEFAULT_WALLETS


def register_new_wallet(
    proxy: Optional[str] = None,
    ref_code: str = REF_CODE,
    connection_factory: Callable[..., LayerEdgeConnection] = LayerEdgeConnection,
) -> Optional[WalletRecord]:
    """
    Создает новый кошелек и регистрирует его под реферальным кодом.
    Реферальный код должен быть уже проверен.

    Returns:
        WalletRecord при успешной регистрации, иначе None
    """
    connection = connection_factory(proxy=proxy, ref_code=ref_code)
    wallet = connection.get_wallet()
    logger.info(f"Registering new wallet {wallet.address}")

    if not connection.register_wallet():
        return None

    return WalletRecord(address=wallet.address, privateKey=Web3.to_hex(wallet.key))


def run_autoref(
    count: int,
    proxy: Optional[str] = None,
    ref_code: str = REF_CODE,
    wallets_file: Path = WALLETS_FILE,
    connection_factory: Callable[..., LayerEdgeConnection] = LayerEdgeConnection,
    sleep: Callable[[float], None] = time.sleep,
) -> list[WalletRecord]:
    """
    Проверяет реферальный код один раз, затем создает и регистрирует count
    кошельков, успешные сохраняет в wallets.json.
    Ошибка одного кошелька не останавливает остальные.
    """
    if not connection_factory(proxy=proxy, ref_code=ref_code).check_invite():
        logger.error(f"[AUTOREF] Invite code {ref_code} is not valid, nothing to register")
        return []

    registered: list[WalletRecord] = []
    for i in range(count):
        logger.info(f"[AUTOREF] Wallet {i + 1}/{count}")
        try:
            record = register_new_wallet(proxy, ref_code, connection_factory)
        except Exception as e:
            logger.error(f"[AUTOREF] Ошибка при создании кошелька {i + 1}/{count}: {e}")
            record = None

        if record:
            registered.append(record)
            logger.success(f"[AUTOREF] Wallet registered: {record.address}")
        else:
            logger.warning(f"[AUTOREF] Wallet {i + 1}/{count} skipped")

        if i < count - 1:
            sleep(DELAY_BETWEEN_WALLETS_SEC)

    if registered:
        save_wallets(registered, wallets_file)
    return registered


def run(count: Optional[int] = None) -> None:
    """
    Главная функция для запуска модуля из main.py.
    Создает новые кошельки под реферальным кодом и дописывает их в wallets.json.
    """
    # Настройка логирования
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="INFO",
    )

    try:
        if count is None:
            count = get_wallet_count_from_user()

        working_proxy = find_working_proxy()
        registered = run_autoref(count, working_proxy)

        logger.info("=" * 60)
        logger.info(f"Зарегистрировано: {len(registered)} из {count}")
        logger.info("=" * 60)

    except ValueError as e:
        logger.error(f"{e}")
        raise SystemExit(1)
    except Exception as e:
        logger.error(f"Ошибка при выполнении: {e}")
        raise


if __name__ == "__main__":
    run()
