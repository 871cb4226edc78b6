#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class Module:
    key: str
    title: str
    run: Callable[[], None]


def run_node() -> None:
    from modules.node_runner import run as node_run

    node_run()


def run_autoref(count: Optional[int] = None) -> None:
    from modules.autoref import run as autoref_run

    autoref_run(count)


def build_modules(count: Optional[int] = None) -> Dict[str, Module]:
    return {
        "1": Module(key="1", title="LayerEdge Light Node (бесконечный цикл)", run=run_node),
        "2": Module(key="2", title="Авторефер: создать и зарегистрировать кошельки", run=lambda: run_autoref(count)),
    }


def print_menu(modules: Dict[str, Module]) -> None:
    print("\n==============================")
    print("LayerEdge")
    print("==============================")
    for m in modules.values():
        print(f"{m.key}. {m.title}")

    print("\n0. Выход")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Единая точка входа: меню выбора модулей/запуск модулей по ключу.",
    )
    parser.add_argument(
        "--module",
        "-m",
        dest="module",
        help="Запустить модуль без интерактивного меню.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Показать доступные модули и выйти.",
    )
    parser.add_argument(
        "--count",
        "-n",
        type=int,
        default=None,
        help="Количество кошельков для авторефера (без интерактивного ввода).",
    )
    args = parser.parse_args()

    modules = build_modules(args.count)

    key_by_slug: Dict[str, str] = {
        "node": "1",
        "autoref": "2",
    }

    if args.list:
        print_menu(modules)
        return

    if args.module:
        choice = key_by_slug.get(args.module.strip().lower())
        if not choice:
            print(f"Неизвестный модуль: {args.module!r}")
            print("Доступные модули: " + ", ".join(sorted(key_by_slug.keys())))
            raise SystemExit(2)

        try:
            modules[choice].run()
        except KeyboardInterrupt:
            print("\nОстановлено пользователем.")
        return

    # Если окружение неинтерактивное (например, CI), не пытаемся читать input().
    if not sys.stdin.isatty():
        print_menu(modules)
        print("\nПодсказка: для неинтерактивного запуска используйте `--module`.")
        return

    while True:
        print_menu(modules)
        try:
            choice = input("Введите номер: ").strip()
        except EOFError:
            print("\nВвод недоступен (EOF). Используйте `--module` для запуска без меню.")
            return

        if choice in ("0", "q", "quit", "exit"):
            print("Выход.")
            return

        module = modules.get(choice)
        if not module:
            print("Неизвестный пункт меню. Попробуйте ещё раз.")
            continue

        try:
            module.run()
        except KeyboardInterrupt:
            print("\nОтмена пользователем.")
        except Exception as e:
            print(f"Ошибка при выполнении модуля: {e}")


if __name__ == "__main__":
    main()
