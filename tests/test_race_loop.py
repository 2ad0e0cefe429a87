import copy

import pytest

from micro_derby.config import FRAME_RATE
from micro_derby.engine import Phase, PerturbationScheduler, RaceLoop, RacerState, start_race, tick
from micro_derby.engine.roster import ROSTER, get_profile


def _loop(**kwargs) -> RaceLoop:
    kwargs.setdefault("rng_seed", 1234)
    return RaceLoop(1000, 800, **kwargs)


def test_new_loop_starts_in_setup_with_preview():
    loop = _loop()
    assert loop.phase is Phase.SETUP
    assert len(loop.session.racers) == 8
    assert len(loop.session.dust) == 80
    assert loop.session.rankings == []


def test_start_race_spawns_in_bottom_left_zone():
    session = start_race(3, (1000, 800), difficulty=4, rng_seed=9)

    assert session.phase is Phase.RACING
    assert session.bet == 3
    assert session.difficulty == 4
    assert list(session.racers) == [profile.racer_id for profile in ROSTER]
    for state in session.racers.values():
        assert 0.0 <= state.x <= 100.0
        assert 720.0 <= state.y <= 800.0
        assert 0.3 <= state.vx <= 0.8
        assert -0.8 <= state.vy <= -0.3
        assert state.tail == ()
        assert state.finished is False


@pytest.mark.parametrize("bad_bet", [0, 9, -1, "3", None, True, 2.0])
def test_start_race_rejects_unknown_bet(bad_bet):
    with pytest.raises(ValueError):
        start_race(bad_bet, (1000, 800))


@pytest.mark.parametrize("bad_difficulty", [0, 9, 2.5, True, "4"])
def test_start_race_rejects_bad_difficulty(bad_difficulty):
    with pytest.raises(ValueError):
        start_race(1, (1000, 800), difficulty=bad_difficulty)


def test_rejected_start_leaves_setup_session_in_place():
    loop = _loop()
    before = loop.session
    with pytest.raises(ValueError):
        loop.start_race(42)
    assert loop.session is before
    assert loop.phase is Phase.SETUP


def test_set_difficulty_clamps_and_is_locked_after_setup():
    loop = _loop()
    assert loop.set_difficulty(0) == 1
    assert loop.set_difficulty(12) == 8
    assert loop.set_difficulty(3) == 3

    loop.start_race(1)
    assert loop.set_difficulty(6) == 3
    assert loop.session.difficulty == 3


def test_race_ends_at_difficulty_four_without_fifth_finisher():
    loop = _loop(difficulty=4)
    loop.start_race(1)
    ticks = loop.run_until_finished(max_ticks=10_000)

    session = loop.session
    assert ticks < 10_000
    assert session.phase is Phase.FINISHED
    assert len(session.rankings) == 4
    assert len(set(session.rankings)) == 4

    frozen = copy.deepcopy(session.rankings)
    racers = session.racers
    loop.tick()
    assert session.rankings == frozen
    assert session.racers is racers


@pytest.mark.parametrize("seed", range(16))
def test_every_difficulty_terminates(seed):
    difficulty = seed % 8 + 1
    loop = RaceLoop(1000, 800, difficulty=difficulty, rng_seed=seed)
    loop.start_race(seed % 8 + 1)
    loop.run_until_finished(max_ticks=10_000)

    session = loop.session
    assert session.phase is Phase.FINISHED
    assert len(session.rankings) == difficulty
    assert len(session.rankings) == len(set(session.rankings))
    assert set(session.rankings) <= set(session.racers)


def test_finished_racers_stay_frozen_and_tails_stay_bounded():
    loop = _loop(difficulty=8)
    loop.start_race(2)
    frozen = {}
    for _ in range(10_000):
        if loop.phase is not Phase.RACING:
            break
        loop.tick()
        for racer_id, state in loop.session.racers.items():
            assert len(state.tail) <= 20
            if racer_id in frozen:
                assert (state.x, state.y, state.vx, state.vy) == frozen[racer_id]
            elif state.finished:
                frozen[racer_id] = (state.x, state.y, state.vx, state.vy)
                assert (state.final_x, state.final_y) == (state.x, state.y)
    assert loop.phase is Phase.FINISHED
    assert set(frozen) == set(loop.session.rankings)


def test_tick_replaces_collection_from_snapshot():
    session = start_race(1, (1000, 800), rng_seed=3)
    snapshot = session.racers
    copies = {racer_id: copy.deepcopy(state) for racer_id, state in snapshot.items()}

    result = tick(session, dt=1 / 60)

    assert session.racers is not snapshot
    assert snapshot == copies
    assert session.frame == 1
    assert session.elapsed == pytest.approx(1 / 60)
    assert result.phase_changed is False


def _parked_at_goal(order):
    return {
        racer_id: RacerState(profile=get_profile(racer_id), x=995.0, y=5.0, vx=0.1, vy=-0.1)
        for racer_id in order
    }


def test_same_tick_finishers_rank_in_collection_order_up_to_cutoff():
    session = start_race(7, (1000, 800), difficulty=2, rng_seed=1)
    session.racers = _parked_at_goal([5, 1, 3, 7, 2, 4, 6, 8])

    result = tick(session)

    assert session.rankings == [5, 1]
    assert result.new_finishers == [5, 1]
    assert result.phase_changed is True
    assert session.phase is Phase.FINISHED
    assert all(state.finished for state in session.racers.values())


def test_tick_is_noop_outside_racing():
    loop = _loop()
    session = loop.session
    racers = session.racers
    result = loop.tick()
    assert result.new_finishers == []
    assert session.racers is racers
    assert session.frame == 0


def test_resize_reseeds_only_during_setup():
    loop = _loop()
    assert loop.resize(400, 300) is True
    assert loop.session.width == 400.0
    for state in loop.session.racers.values():
        assert 0.0 <= state.x <= 40.0
        assert 270.0 <= state.y <= 300.0
    for particle in loop.session.dust:
        assert 0.0 <= particle.x <= 400.0
        assert 0.0 <= particle.y <= 300.0

    session = loop.start_race(4)
    assert loop.resize(1200, 900) is False
    assert loop.session is session
    assert session.width == 400.0
    assert loop.viewport == (1200.0, 900.0)


def test_restart_returns_fresh_setup_session():
    loop = _loop(difficulty=1)
    race = loop.start_race(5)
    loop.run_until_finished()

    fresh = loop.restart()
    assert fresh is not race
    assert fresh.phase is Phase.SETUP
    assert fresh.session_id != race.session_id
    assert fresh.rankings == []
    assert fresh.bet is None
    assert race.phase is Phase.FINISHED


def test_on_finished_callback_fires_once():
    calls = []
    loop = RaceLoop(1000, 800, difficulty=2, rng_seed=8, on_finished=calls.append)
    session = loop.start_race(1)
    loop.run_until_finished()
    loop.tick()
    assert calls == [session]


@pytest.mark.parametrize("seed", [7, 21, 99])
def test_headless_run_applies_velocity_kicks_on_simulated_clock(seed):
    loop = _loop(difficulty=4, rng_seed=seed)
    loop.start_race(2)
    scheduler = PerturbationScheduler(delay_range_ms=(200, 600))
    ticks = loop.run_until_finished(max_ticks=10_000, perturbation=scheduler)

    session = loop.session
    assert ticks < 10_000
    assert session.phase is Phase.FINISHED
    assert session.elapsed == pytest.approx(ticks / FRAME_RATE)
    assert scheduler.fired > 0
    assert scheduler.active is False
