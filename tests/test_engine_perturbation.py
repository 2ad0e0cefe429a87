import asyncio
import random
from dataclasses import replace

import pytest

from micro_derby.engine import Phase, PerturbationScheduler, apply_perturbation, start_race


def _session(seed: int = 4):
    return start_race(1, (1000, 800), difficulty=4, rng_seed=seed)


def _velocities(session):
    return {racer_id: (state.vx, state.vy) for racer_id, state in session.racers.items()}


def test_apply_perturbation_redraws_velocity_in_spawn_range():
    session = _session()
    for _ in range(50):
        assert apply_perturbation(session, 2, random.Random()) is True
        state = session.racers[2]
        assert 0.3 <= state.vx <= 0.8
        assert -0.8 <= state.vy <= -0.3


def test_apply_perturbation_skips_finished_racer_and_other_phases():
    session = _session()
    session.racers[3] = replace(session.racers[3], finished=True)
    before = session.racers[3]
    assert apply_perturbation(session, 3) is False
    assert session.racers[3] is before

    session.phase = Phase.FINISHED
    racer_one = session.racers[1]
    assert apply_perturbation(session, 1) is False
    assert session.racers[1] is racer_one
    assert apply_perturbation(session, 99) is False


def test_next_delay_stays_in_configured_window():
    scheduler = PerturbationScheduler(delay_range_ms=(200, 600))
    rng = random.Random(0)
    delays = [scheduler.next_delay(rng) for _ in range(500)]
    assert min(delays) >= 0.2
    assert max(delays) < 0.6


def test_invalid_delay_range_is_rejected():
    with pytest.raises(ValueError):
        PerturbationScheduler(delay_range_ms=(600, 200))


def test_scheduler_kicks_every_racer_until_cancelled():
    async def scenario():
        session = _session()
        scheduler = PerturbationScheduler(delay_range_ms=(1, 2))
        scheduler.start(session)
        assert scheduler.task_count == 8
        await asyncio.sleep(0.1)
        fired = scheduler.fired
        await scheduler.shutdown()
        return session, scheduler, fired

    session, scheduler, fired = asyncio.run(scenario())
    assert fired >= 8
    assert scheduler.active is False
    for vx, vy in _velocities(session).values():
        assert 0.3 <= vx <= 0.8
        assert -0.8 <= vy <= -0.3


def test_chains_stop_when_phase_leaves_racing():
    async def scenario():
        session = _session()
        scheduler = PerturbationScheduler(delay_range_ms=(1, 2))
        scheduler.start(session)
        session.phase = Phase.FINISHED
        frozen = _velocities(session)
        await asyncio.sleep(0.05)
        return scheduler, frozen, _velocities(session)

    scheduler, before, after = asyncio.run(scenario())
    assert before == after
    assert scheduler.active is False


def test_finished_racer_chain_stops_while_others_continue():
    async def scenario():
        session = _session()
        session.racers[5] = replace(session.racers[5], finished=True, vx=9.0, vy=9.0)
        scheduler = PerturbationScheduler(delay_range_ms=(1, 2))
        scheduler.start(session)
        await asyncio.sleep(0.05)
        count = scheduler.task_count
        await scheduler.shutdown()
        return session, count

    session, live_chains = asyncio.run(scenario())
    assert (session.racers[5].vx, session.racers[5].vy) == (9.0, 9.0)
    assert live_chains == 7


def test_superseded_session_is_never_mutated():
    async def scenario():
        old = _session(seed=1)
        new = _session(seed=2)
        live = {"session": old}
        scheduler = PerturbationScheduler(delay_range_ms=(1, 2), live_session=lambda: live["session"])
        scheduler.start(old)
        live["session"] = new
        frozen = _velocities(old)
        await asyncio.sleep(0.05)
        return scheduler, frozen, _velocities(old)

    scheduler, before, after = asyncio.run(scenario())
    assert before == after
    assert scheduler.active is False


def test_restarting_scheduler_cancels_previous_chains():
    async def scenario():
        first = _session(seed=1)
        second = _session(seed=2)
        scheduler = PerturbationScheduler(delay_range_ms=(1, 2))
        scheduler.start(first)
        frozen = _velocities(first)
        scheduler.start(second)
        await asyncio.sleep(0.05)
        after = _velocities(first)
        await scheduler.shutdown()
        return frozen, after

    before, after = asyncio.run(scenario())
    assert before == after


def test_zero_width_delay_window_is_rejected():
    with pytest.raises(ValueError):
        PerturbationScheduler(delay_range_ms=(0, 0))


def test_simulated_chains_fire_once_their_deadline_passes():
    session = _session()
    scheduler = PerturbationScheduler(delay_range_ms=(200, 600))
    scheduler.start_simulated(session)
    assert scheduler.task_count == 8

    frozen = _velocities(session)
    session.elapsed = 0.15
    assert scheduler.advance(session) == 0
    assert _velocities(session) == frozen

    session.elapsed = 0.6
    kicks = scheduler.advance(session)
    assert kicks >= 8
    assert scheduler.fired == kicks
    assert _velocities(session) != frozen
    for vx, vy in _velocities(session).values():
        assert 0.3 <= vx <= 0.8
        assert -0.8 <= vy <= -0.3

    scheduler.cancel_all()
    session.elapsed = 10.0
    assert scheduler.advance(session) == 0
    assert scheduler.active is False


def test_simulated_chains_skip_finished_racers_and_ended_races():
    session = _session()
    session.racers[5] = replace(session.racers[5], finished=True, vx=9.0, vy=9.0)
    scheduler = PerturbationScheduler(delay_range_ms=(200, 600))
    scheduler.start_simulated(session)

    session.elapsed = 0.6
    scheduler.advance(session)
    assert (session.racers[5].vx, session.racers[5].vy) == (9.0, 9.0)
    assert scheduler.task_count == 7

    session.phase = Phase.FINISHED
    frozen = _velocities(session)
    session.elapsed = 5.0
    assert scheduler.advance(session) == 0
    assert _velocities(session) == frozen
    assert scheduler.active is False
