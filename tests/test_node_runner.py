"""
Tests for the wait rotation, per-wallet step ordering and the cycle loop.
"""

import pytest

from modules import node_runner
from modules.layeredge import ActionResult
from modules.node_runner import (
    STARTUP_DELAY_SEC,
    WaitScheduler,
    bootstrap,
    process_wallet,
    run_cycle,
    run_node_loop,
)
from modules.wallets import WalletRecord

WALLET_A = WalletRecord(address="0x" + "a" * 40, privateKey="0x" + "11" * 32)
WALLET_B = WalletRecord(address="0x" + "b" * 40, privateKey="0x" + "22" * 32)


class FakeConnection:
    """Записывает вызовы шагов в общий журнал."""

    def __init__(self, journal, address, running=False, stop_ok=True, start_ok=True, fail_on=None):
        self.journal = journal
        self.address = address
        self.running = running
        self.stop_ok = stop_ok
        self.start_ok = start_ok
        self.fail_on = fail_on

    def _record(self, step):
        self.journal.append((self.address, step))
        if step == self.fail_on:
            raise RuntimeError(f"{step} exploded")

    def check_node_status(self):
        self._record("status")
        return ActionResult(self.running, "running" if self.running else "not running")

    def stop_node(self):
        self._record("stop")
        return ActionResult(self.stop_ok)

    def connect_node(self):
        self._record("start")
        return ActionResult(self.start_ok)

    def check_node_points(self):
        self._record("points")
        return ActionResult(True, data=10)


def factory_for(journal, **options):
    def factory(proxy, wallet):
        return FakeConnection(journal, wallet.address, **options)

    return factory


# ---------- WaitScheduler ----------


def test_fresh_scheduler_sequence():
    scheduler = WaitScheduler()
    minutes = []
    for _ in range(7):
        scheduler, seconds = scheduler.advance()
        minutes.append(seconds // 60)

    assert minutes == [34, 90, 25, 34, 90, 25, 34]


def test_scheduler_period_is_three():
    scheduler = WaitScheduler()
    for _ in range(3):
        scheduler, _ = scheduler.advance()
    assert scheduler == WaitScheduler()


def test_scheduler_is_immutable():
    scheduler = WaitScheduler()
    next_scheduler, _ = scheduler.advance()
    assert scheduler.index == 0
    assert next_scheduler.index == 1


# ---------- process_wallet ----------


def test_not_running_node_is_started_without_stop():
    journal = []
    report = process_wallet(WALLET_A, connection_factory=factory_for(journal, running=False, start_ok=False))

    assert [step for _, step in journal] == ["status", "start", "points"]
    assert report.stop is None
    assert not report.start.success
    assert report.points.data == 10
    assert not report.failed


def test_running_node_is_stopped_before_start_even_if_stop_fails():
    journal = []
    report = process_wallet(WALLET_A, connection_factory=factory_for(journal, running=True, stop_ok=False))

    assert [step for _, step in journal] == ["status", "stop", "start", "points"]
    assert report.stop is not None and not report.stop.success
    assert report.start.success


def test_exception_marks_wallet_failed():
    journal = []
    report = process_wallet(WALLET_A, connection_factory=factory_for(journal, fail_on="start"))

    assert report.failed
    assert "start exploded" in report.error
    assert [step for _, step in journal] == ["status", "start"]


def test_factory_error_marks_wallet_failed():
    def broken_factory(proxy, wallet):
        raise ValueError("bad private key")

    report = process_wallet(WALLET_A, connection_factory=broken_factory)
    assert report.failed
    assert report.status is None


def test_proxy_is_passed_to_every_connection():
    seen = []

    def factory(proxy, wallet):
        seen.append((proxy, wallet.address))
        return FakeConnection([], wallet.address)

    run_cycle([WALLET_A, WALLET_B], proxy="1.1.1.1:8080", connection_factory=factory)
    assert seen == [("1.1.1.1:8080", WALLET_A.address), ("1.1.1.1:8080", WALLET_B.address)]


# ---------- run_cycle / run_node_loop ----------


def test_cycle_continues_after_failed_wallet():
    journal = []

    def factory(proxy, wallet):
        fail_on = "status" if wallet is WALLET_A else None
        return FakeConnection(journal, wallet.address, fail_on=fail_on)

    summary = run_cycle([WALLET_A, WALLET_B], connection_factory=factory)

    assert summary.failed_count == 1
    assert [r.address for r in summary.reports] == [WALLET_A.address, WALLET_B.address]
    assert journal[-3:] == [
        (WALLET_B.address, "status"),
        (WALLET_B.address, "start"),
        (WALLET_B.address, "points"),
    ]


def test_loop_processes_wallets_in_order_and_rotates_waits():
    journal = []
    sleeps = []

    scheduler = run_node_loop(
        [WALLET_A, WALLET_B],
        connection_factory=factory_for(journal),
        sleep=sleeps.append,
        max_cycles=2,
    )

    assert sleeps == [34 * 60, 90 * 60]
    assert scheduler.index == 2
    wallets_order = [address for address, step in journal if step == "status"]
    assert wallets_order == [WALLET_A.address, WALLET_B.address] * 2


def test_loop_resumes_from_given_scheduler():
    sleeps = []
    run_node_loop(
        [WALLET_A],
        scheduler=WaitScheduler(index=1),
        connection_factory=factory_for([]),
        sleep=sleeps.append,
        max_cycles=2,
    )
    assert sleeps == [90 * 60, 25 * 60]


# ---------- bootstrap / run ----------


def test_bootstrap_delays_checks_proxy_and_loads_wallets(tmp_path, monkeypatch):
    wallets_file = tmp_path / "wallets.json"
    wallets_file.write_text(
        '[{"address": "0xabc", "privateKey": "0x01"}]', encoding="utf-8"
    )
    monkeypatch.setattr(node_runner, "find_working_proxy", lambda: "2.2.2.2:8080")
    sleeps = []

    proxy, wallets = bootstrap(sleep=sleeps.append, wallets_file=wallets_file)

    assert sleeps == [STARTUP_DELAY_SEC]
    assert proxy == "2.2.2.2:8080"
    assert wallets == [WalletRecord(address="0xabc", privateKey="0x01")]


def test_bootstrap_survives_proxy_setup_error(tmp_path, monkeypatch):
    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(node_runner, "find_working_proxy", broken)

    proxy, wallets = bootstrap(sleep=lambda _: None, wallets_file=tmp_path / "none.json")
    assert proxy is None
    assert wallets == []


def test_run_stops_when_no_wallets(monkeypatch, reset_logger):
    monkeypatch.setattr(node_runner, "bootstrap", lambda: (None, []))

    def loop_must_not_start(*args, **kwargs):
        pytest.fail("loop started without wallets")

    monkeypatch.setattr(node_runner, "run_node_loop", loop_must_not_start)

    node_runner.run()


def test_run_exits_on_broken_wallet_file(monkeypatch, reset_logger):
    def broken():
        raise ValueError("wallets.json поврежден")

    monkeypatch.setattr(node_runner, "bootstrap", broken)

    with pytest.raises(SystemExit) as exc:
        node_runner.run()
    assert exc.value.code == 1


def test_run_keeps_going_past_bad_wallet_record(tmp_path, monkeypatch, reset_logger):
    wallets_file = tmp_path / "wallets.json"
    wallets_file.write_text(
        '[{"address": "0xabc", "privateKey": "0x01"}, {"privateKey": "0x02"}]',
        encoding="utf-8",
    )
    monkeypatch.setattr(node_runner, "find_working_proxy", lambda: None)
    monkeypatch.setattr(
        node_runner,
        "bootstrap",
        lambda: bootstrap(sleep=lambda _: None, wallets_file=wallets_file),
    )
    started = []
    monkeypatch.setattr(node_runner, "run_node_loop", lambda wallets, proxy: started.append(wallets))

    node_runner.run()

    assert started == [[WalletRecord(address="0xabc", privateKey="0x01")]]
