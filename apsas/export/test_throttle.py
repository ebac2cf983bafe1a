# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024-2025 The APSAS Developers

from pytest import raises

from apsas.export.throttle import Throttle


class FakeClock:
    def __init__(self):
        self.t = 0.0
        self.sleeps = []

    def __call__(self):
        return self.t

    def sleep(self, dt):
        self.sleeps.append(dt)
        self.t += dt


def test_first_wait_is_free() -> None:
    clock = FakeClock()
    Throttle(0.3, sleep=clock.sleep, clock=clock).wait()
    assert clock.sleeps == []


def test_sleeps_off_remaining_interval() -> None:
    clock = FakeClock()
    th = Throttle(0.3, sleep=clock.sleep, clock=clock)
    th.wait()
    clock.t += 0.1
    th.wait()
    assert clock.sleeps == [0.3 - 0.1]


def test_no_sleep_when_already_slow() -> None:
    clock = FakeClock()
    th = Throttle(0.3, sleep=clock.sleep, clock=clock)
    th.wait()
    clock.t += 5
    th.wait()
    assert clock.sleeps == []


def test_zero_interval_never_sleeps() -> None:
    clock = FakeClock()
    th = Throttle(0, sleep=clock.sleep, clock=clock)
    for _ in range(3):
        th.wait()
    assert clock.sleeps == []


def test_reset() -> None:
    clock = FakeClock()
    th = Throttle(1, sleep=clock.sleep, clock=clock)
    th.wait()
    th.reset()
    th.wait()
    assert clock.sleeps == []


def test_negative_interval() -> None:
    with raises(ValueError):
        Throttle(-1)
