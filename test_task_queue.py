"""
TextGenerationQueue tests — pacing, hourly budget and failure cooldown,
driven by a fake clock so nothing actually waits.
Run with pytest, or directly: python test_task_queue.py
"""

import asyncio
import sys
import traceback

from storyline.tools.task_queue import TextGenerationQueue


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class EchoGenerator:
    def __init__(self, fail_times=0):
        self.prompts = []
        self.fail_times = fail_times

    async def generate(self, prompt, options):
        self.prompts.append(prompt)
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("quota exceeded")
        return f"  reply to {prompt}  "


def make_queue(generator, clock, **kw):
    kw.setdefault("max_requests_per_hour", 50)
    kw.setdefault("min_interval", 3.0)
    kw.setdefault("cooldown", 300)
    return TextGenerationQueue(generator, clock=clock, sleep=clock.sleep, **kw)


def test_no_generator_always_returns_none():
    clock = FakeClock()
    queue = make_queue(None, clock)
    assert not queue.enabled
    assert asyncio.run(queue.submit("hello")) is None
    assert queue.requests_sent == 0


def test_requests_are_spaced_by_min_interval():
    clock = FakeClock()
    gen = EchoGenerator()
    queue = make_queue(gen, clock)

    async def three():
        return [await queue.submit(p) for p in ("a", "b", "c")]

    replies = asyncio.run(three())
    assert replies == ["reply to a", "reply to b", "reply to c"]
    assert clock.sleeps == [3.0, 3.0]
    assert queue.requests_sent == 3


def test_concurrent_callers_are_admitted_in_order():
    clock = FakeClock()
    gen = EchoGenerator()
    queue = make_queue(gen, clock)

    async def burst():
        return await asyncio.gather(*(queue.submit(p) for p in ("x", "y", "z")))

    asyncio.run(burst())
    assert gen.prompts == ["x", "y", "z"]
    assert len(clock.sleeps) == 2


def test_hourly_budget_refuses_then_recovers():
    clock = FakeClock()
    gen = EchoGenerator()
    queue = make_queue(gen, clock, max_requests_per_hour=2, min_interval=0)

    async def run(n):
        return [await queue.submit(str(i)) for i in range(n)]

    assert asyncio.run(run(3)) == ["reply to 0", "reply to 1", None]
    assert queue.requests_refused == 1
    assert queue.remaining_budget() == 0

    clock.now += 3600
    assert queue.remaining_budget() == 2
    assert asyncio.run(queue.submit("later")) == "reply to later"


def test_failure_starts_cooldown():
    clock = FakeClock()
    gen = EchoGenerator(fail_times=1)
    queue = make_queue(gen, clock, min_interval=0)

    assert asyncio.run(queue.submit("first")) is None
    assert queue.requests_failed == 1

    clock.now += 299
    assert asyncio.run(queue.submit("too soon")) is None
    assert gen.prompts == ["first"]

    clock.now += 1
    assert asyncio.run(queue.submit("after")) == "reply to after"


def test_blank_reply_is_none():
    class Blank:
        async def generate(self, prompt, options):
            return "   "

    clock = FakeClock()
    queue = make_queue(Blank(), clock)
    assert asyncio.run(queue.submit("p")) is None
    assert queue.requests_failed == 0


if __name__ == "__main__":
    print("=" * 70)
    print("TEXT GENERATION QUEUE")
    print("=" * 70)
    failed = 0
    for name, fn in list(globals().items()):
        if name.startswith("test_") and callable(fn):
            try:
                fn()
                print(f"  PASS  {name}")
            except Exception as e:
                failed += 1
                print(f"  FAIL  {name}: {e}")
                traceback.print_exc()
    sys.exit(1 if failed else 0)
