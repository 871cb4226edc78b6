#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import sys
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable

from loguru import logger

# Позволяет запускать файл напрямую: `python modules/wallets.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if __name__ == "__main__":
    root_s = str(PROJECT_ROOT)
    if root_s not in sys.path:
        sys.path.insert(0, root_s)

# Файл с кошельками: [{"address": "0x...", "privateKey": "0x..."}, ...]
WALLETS_FILE = PROJECT_ROOT / "wallets.json"


@dataclass(frozen=True)
class WalletRecord:
    address: str
    privateKey: str


def load_wallets(path: Path = WALLETS_FILE) -> list[WalletRecord]:
    """
    Загружает кошельки из wallets.json.
    Записи без address пропускаются с предупреждением, остальные кошельки работают.

    Args:
        path: Путь к файлу с кошельками

    Returns:
        Список кошельков (пустой, если файла нет)

    Raises:
        ValueError: Если файл не читается как JSON массив
    """
    if not path.exists():
        logger.info(f"No wallets found in {path.name}")
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Файл {path} поврежден: {e}") from e

    if not isinstance(raw, list):
        raise ValueError(f"Файл {path} должен содержать JSON массив кошельков")

    wallets: list[WalletRecord] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("address"):
            logger.warning(f"Запись #{i + 1} в {path.name} не содержит address, пропускаем")
            continue
        wallets.append(
            WalletRecord(address=str(item["address"]), privateKey=str(item.get("privateKey") or ""))
        )
    return wallets


def _write_json_atomic(path: Path, data: Any) -> None:
    # Пишем во временный файл рядом и подменяем, чтобы не оставить обрезанный файл
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def save_wallets(new_wallets: Iterable[WalletRecord], path: Path = WALLETS_FILE) -> int:
    """
    Дописывает кошельки в wallets.json (существующие записи сохраняются).
    Если wallets.json поврежден, новые кошельки сохраняются в отдельный
    файл wallets.recovered-<ms>.json и ошибка пробрасывается дальше.

    Returns:
        Количество добавленных кошельков
    """
    new_wallets = list(new_wallets)
    try:
        existing = load_wallets(path)
    except ValueError:
        recovery = path.with_name(f"{path.stem}.recovered-{int(time.time() * 1000)}{path.suffix}")
        _write_json_atomic(recovery, [asdict(w) for w in new_wallets])
        logger.error(f"{path.name} поврежден, новые кошельки сохранены в {recovery.name}")
        raise

    known = {w.address.lower() for w in existing}

    added = [w for w in new_wallets if w.address.lower() not in known]
    if not added:
        return 0

    _write_json_atomic(path, [asdict(w) for w in existing + added])
    logger.info(f"Data saved to {path.name}: +{len(added)} wallets")
    return len(added)
