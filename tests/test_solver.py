"""Tests für Solver, Stufen, Abbruch, Fortschritt, Pins und öffentliche API."""

import random
import threading
import time
from datetime import date
from pathlib import Path

import pytest

from config.schema import (
    EngineConfig,
    ProgressConfig,
    SolverConfig,
    TerminationConfig,
    TierConfig,
)
from data.fake_data import FakeDataGenerator
from models.exam_assignment import ExamAssignment
from models.exam_schedule import ExamSchedule, HardSoftScore
from models.student import Student
from models.teacher import Teacher
from solver import (
    InputError,
    NoSolutionError,
    PinManager,
    PinnedAssignment,
    ProgressEvent,
    SolvingContext,
    build_initial_schedule,
    quality_level,
    score_only,
    solve,
    solve_adaptive,
    validate_schedule,
)
from solver.construction import ConstructionHeuristic
from solver.departments import normalize_department
from solver.local_search import LocalSearchEngine
from solver.moves import MoveSelector
from solver.orchestrator import AdaptiveSolvingOrchestrator, TierResult, TierRunner
from solver.progress import ProgressDispatcher, ProgressEstimator, ease_in_out_cubic
from solver.scoring import ScoreDirector
from solver.termination import TerminationPolicy

WINDOW = ("2025-10-06", "2025-10-10")   # Montag bis Freitag


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_tier(name: str = "flash", step_limit: int = 150, **kw) -> TierConfig:
    """Kurze Stufe für Tests (Schrittgrenze statt langer Laufzeit)."""
    ranges = {"flash": (0, 30, 2), "standard": (30, 60, 1), "precise": (60, 95, None)}
    start, end, threshold = ranges[name]
    data = dict(
        name=name, max_runtime_seconds=20, min_runtime_seconds=0, stagnation_seconds=2,
        late_acceptance_size=0 if name == "flash" else 20, entity_tabu_size=3,
        accepted_count_limit=4, upgrade_threshold=threshold,
        progress_start=start, progress_end=end, step_limit=step_limit,
    )
    data.update(kw)
    return TierConfig(**data)


def make_config(step_limit: int = 150, seed: int = 7) -> EngineConfig:
    return EngineConfig(solver=SolverConfig(
        tiers=[make_tier(n, step_limit) for n in ("flash", "standard", "precise")],
        progress=ProgressConfig(throttle_ms=0),
        seed=seed,
    ))


def make_reproducible_tier(step_limit: int = 60) -> TierConfig:
    """Nur die Schrittgrenze beendet den Lauf (Zeitkriterien praktisch aus)."""
    return make_tier("standard", step_limit, max_runtime_seconds=1000,
                     min_runtime_seconds=1000, stagnation_seconds=1000)


def scenario_a() -> ExamSchedule:
    """1 Prüfling (Abt. 三), 5 Werktage, 6 Prüfer ohne Dienstkonflikte."""
    teachers = [
        Teacher(id="T1", name="王伟", department="三", team="行政班"),
        Teacher(id="T2", name="李芳", department="三", team="行政班"),
        Teacher(id="T3", name="张敏", department="七", team="行政班"),
        Teacher(id="T4", name="刘强", department="七", team="行政班"),
        Teacher(id="T5", name="陈静", department="一", team="行政班"),
        Teacher(id="T6", name="杨磊", department="二", team="行政班"),
    ]
    students = [Student(id="S1", name="赵刚", department="三", exam_days=2)]
    return build_initial_schedule(students, teachers, WINDOW)


def scenario_b() -> ExamSchedule:
    """Keine Prüfer aus Abt. 三 oder der Austausch-Abteilung 七."""
    teachers = [
        Teacher(id=f"T{i}", name=f"Prüfer {i}", department=dept, team="行政班")
        for i, dept in enumerate(["一", "二", "四", "五", "一", "二"], start=1)
    ]
    students = [Student(id="S1", name="赵刚", department="三", exam_days=1)]
    return build_initial_schedule(students, teachers, WINDOW)


def generated(num_students: int = 8, seed: int = 2) -> ExamSchedule:
    return FakeDataGenerator(num_students=num_students, num_departments=5,
                             seed=seed).generate().to_schedule()


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TickingClock(FakeClock):
    """Jeder Aufruf rückt die Zeit um `tick` Sekunden vor."""

    def __init__(self, tick: float = 1.0) -> None:
        super().__init__()
        self.tick = tick

    def __call__(self) -> float:
        self.now += self.tick
        return self.now


def make_engine(schedule: ExamSchedule, tier: TierConfig, clock, progress=None,
                seed: int = 1) -> LocalSearchEngine:
    """Konstruierter Plan plus Suche mit eigener Uhr für den Abbruch."""
    ctx = SolvingContext(constraint_config=schedule.constraint_config)
    director = ScoreDirector(schedule, ctx)
    selector = MoveSelector(director, random.Random(seed))
    ConstructionHeuristic(director, selector).run()
    termination = TerminationPolicy(tier, None, ctx, clock)
    return LocalSearchEngine(director, selector, tier, termination, random.Random(seed), progress)


# ─── SZENARIEN ────────────────────────────────────────────────────────────────

class TestScenarios:
    def test_scenario_a_feasible(self):
        result, score = solve(scenario_a(), make_tier("flash"), config=make_config(), seed=1)
        assert score.hard == 0
        depts = {t.id: normalize_department(t.department) for t in result.teachers}
        for a in result.assignments:
            assert a.is_complete()
            assert depts[a.examiner1_id] in {"三", "七"}
            assert depts[a.examiner2_id] != "三"
            assert depts[a.examiner1_id] != depts[a.examiner2_id]
            assert a.backup_examiner_id not in {a.examiner1_id, a.examiner2_id}
            assert depts[a.backup_examiner_id] not in {depts[a.examiner1_id],
                                                       depts[a.examiner2_id]}

    def test_scenario_a_consecutive_days(self):
        result, _ = solve(scenario_a(), make_tier("flash"), config=make_config(), seed=1)
        days = sorted(date.fromisoformat(a.exam_date) for a in result.assignments)
        assert (days[1] - days[0]).days == 1

    def test_scenario_b_infeasible_names_student(self):
        result, score, tier = solve_adaptive(scenario_b(), config=make_config(step_limit=40))
        assert score.hard < 0
        assert tier == "precise"
        hard, _, violations = score_only(result)
        assert hard == score.hard
        assert any(v.constraint_id == "HC2" and v.entity == "S1" for v in violations)

    def test_input_not_mutated(self):
        schedule = scenario_a()
        solve(schedule, make_tier("flash"), config=make_config())
        assert all(a.exam_date is None for a in schedule.assignments)
        assert schedule.score is None

    def test_result_score_is_full_rescore(self):
        result, score = solve(generated(), make_tier("flash", 50), config=make_config())
        assert result.score == score
        hard, soft, _ = score_only(result)
        assert (hard, soft) == tuple(score)


# ─── SUCHE ────────────────────────────────────────────────────────────────────

class TestSearch:
    def test_seeded_runs_identical(self):
        tier = make_reproducible_tier()
        config = make_config()
        a, score_a = solve(generated(), tier, config=config, seed=5)
        b, score_b = solve(generated(), tier, config=config, seed=5)
        assert score_a == score_b
        assert [x.snapshot() for x in a.assignments] == [x.snapshot() for x in b.assignments]

    def test_never_worse_than_construction(self):
        schedule = generated()
        ctx = SolvingContext(constraint_config=schedule.constraint_config)
        work = schedule.model_copy(deep=True)
        director = ScoreDirector(work, ctx)
        constructed = ConstructionHeuristic(director, MoveSelector(director, random.Random(0))).run()
        _, score = solve(schedule, make_reproducible_tier(80), config=make_config(), seed=3)
        assert score >= constructed

    def test_pinned_assignment_kept(self):
        schedule = scenario_a()
        pins = PinManager()
        pin = PinnedAssignment(assignment_id="S1_day1", exam_date="2025-10-07",
                               examiner1_id="T1", examiner2_id="T5", backup_examiner_id="T6")
        pins.add_pin(pin)
        assert pins.apply(schedule) == []
        result, score = solve(schedule, make_tier("flash"), config=make_config())
        day1 = next(a for a in result.assignments if a.id == "S1_day1")
        day2 = next(a for a in result.assignments if a.id == "S1_day2")
        assert day1.snapshot() == pin.snapshot()
        assert day1.pinned
        assert score.hard == 0
        assert day2.exam_date in {"2025-10-06", "2025-10-08"}

    def test_incomplete_pin_is_released(self):
        schedule = scenario_a()
        schedule.assignments[0].pinned = True
        schedule.assignments[0].exam_date = "2025-10-08"
        result, _ = solve(schedule, make_tier("flash"), config=make_config())
        a = result.assignments[0]
        assert not a.pinned
        assert a.is_complete()

    def test_cancelled_before_start(self):
        cancel = threading.Event()
        cancel.set()
        result, _, tier = solve_adaptive(generated(), config=make_config(), cancel_event=cancel)
        assert tier == "flash"
        assert all(a.is_complete() for a in result.assignments)

    def test_cancelled_during_search(self, monkeypatch):
        schedule = scenario_b()
        config = make_config(step_limit=100_000)
        ctx = SolvingContext(config, schedule.constraint_config)
        step = TerminationPolicy.step

        def step_then_cancel(self):
            step(self)
            if self.steps == 3:
                ctx.cancel()

        monkeypatch.setattr("solver.termination.TerminationPolicy.step", step_then_cancel)
        result = AdaptiveSolvingOrchestrator(config, ctx).solve(schedule)
        assert [t.tier_name for t in result.tiers] == ["flash"]
        assert result.tiers[0].termination_reason == "cancelled"
        assert all(a.is_complete() for a in result.schedule.assignments)

    def test_holidays_never_used(self):
        schedule = build_initial_schedule(
            scenario_a().students, scenario_a().teachers, ("2025-10-06", "2025-10-12"),
            holiday_predicate=lambda d: d == date(2025, 10, 8),
        )
        assert "2025-10-08" not in schedule.available_dates
        result, _ = solve(schedule, make_tier("flash"), config=make_config())
        assert all(a.exam_date != "2025-10-08" for a in result.assignments)


# ─── LOKALE SUCHE ─────────────────────────────────────────────────────────────

class TestLocalSearch:
    def test_heartbeat_without_accepted_moves(self, monkeypatch):
        tier = make_tier("standard", step_limit=5, max_runtime_seconds=1000,
                         stagnation_seconds=1000)
        progress = ProgressEstimator(tier, ProgressConfig(throttle_ms=300, heartbeat_ms=2000),
                                     clock=TickingClock())
        engine = make_engine(scenario_b(), tier, FakeClock(), progress)
        assert engine.director.score.hard < 0
        monkeypatch.setattr(engine, "_accepts", lambda *args: False)
        engine.run()
        assert engine.stats.accepted == 0
        assert engine.termination.reason == "step_limit"
        assert len(progress.events) >= 2

    def test_late_acceptance_slot_holds_score_after_step(self):
        tier = make_reproducible_tier()
        engine = make_engine(generated(), tier, FakeClock())
        director = engine.director
        start = director.score
        engine._late = [start] * tier.late_acceptance_size
        moves = (engine.selector.next_move() for _ in range(500))
        move = next(m for m in moves if m is not None and director.evaluate(m.changes()) != start)
        director.apply(move.changes())
        engine._after_step(move)
        assert engine._late[0] == director.score
        assert engine._late[0] != start
        assert engine.stats.steps == 1


# ─── STUFEN ───────────────────────────────────────────────────────────────────

class TestTiers:
    @pytest.mark.parametrize("score,level", [
        (None, 4), (HardSoftScore(-1, 500), 4), (HardSoftScore(0, 0), 1),
        (HardSoftScore(0, -20), 1), (HardSoftScore(0, -50), 2),
        (HardSoftScore(0, -200), 3), (HardSoftScore(0, -1000), 4),
    ])
    def test_quality_level(self, score, level):
        assert quality_level(score) == level

    def test_partial_result_on_search_error(self, monkeypatch):
        def boom(self):
            raise RuntimeError("kaputt")

        monkeypatch.setattr("solver.orchestrator.LocalSearchEngine.run", boom)
        schedule = generated()
        config = make_config()
        ctx = SolvingContext(config, schedule.constraint_config)
        result = TierRunner(config, ctx).run(schedule, make_tier("flash"), seed=1)
        assert result.status == "partial"
        assert "RuntimeError" in result.error
        assert result.has_solution
        assert all(a.is_complete() for a in result.schedule.assignments)

    def test_no_solution_raises_with_diagnosis(self, monkeypatch):
        def nothing(self, schedule, tier, seed=None):
            return TierResult(tier_name=tier.name, status="partial", error="kaputt")

        monkeypatch.setattr("solver.orchestrator.TierRunner.run", nothing)
        schedule = scenario_b()
        config = make_config()
        ctx = SolvingContext(config, schedule.constraint_config)
        with pytest.raises(NoSolutionError) as exc:
            AdaptiveSolvingOrchestrator(config, ctx).solve(schedule)
        assert "department_imbalance" in exc.value.causes

    def test_escalation_records_every_tier(self):
        schedule = scenario_b()
        config = make_config(step_limit=20)
        ctx = SolvingContext(config, schedule.constraint_config)
        result = AdaptiveSolvingOrchestrator(config, ctx).solve(schedule)
        assert [t.tier_name for t in result.tiers] == ["flash", "standard", "precise"]
        assert result.score == max(t.score for t in result.tiers)


# ─── ABBRUCH ──────────────────────────────────────────────────────────────────

class TestTermination:
    def _policy(self, clock, ctx=None, **kw) -> TerminationPolicy:
        data = dict(name="flash", max_runtime_seconds=10, min_runtime_seconds=3,
                    stagnation_seconds=5)
        data.update(kw)
        return TerminationPolicy(TierConfig(**data), TerminationConfig(), ctx, clock)

    def test_perfect(self):
        policy = self._policy(FakeClock())
        policy.record(HardSoftScore(0, 0))
        assert policy.should_terminate()
        assert policy.reason == "perfect"

    def test_max_runtime(self):
        clock = FakeClock()
        policy = self._policy(clock, stagnation_seconds=100)
        policy.record(HardSoftScore(-5, 0))
        clock.now = 9.9
        assert not policy.should_terminate()
        clock.now = 10
        assert policy.should_terminate()
        assert policy.reason == "max_runtime"

    def test_acceptable_after_min_runtime(self):
        clock = FakeClock()
        policy = self._policy(clock)
        policy.record(HardSoftScore(0, -100))
        clock.now = 2
        assert not policy.should_terminate()
        clock.now = 3
        assert policy.should_terminate()
        assert policy.reason == "acceptable"

    def test_stagnation(self):
        clock = FakeClock()
        policy = self._policy(clock)
        policy.record(HardSoftScore(-1, 0))
        clock.now = 4
        assert not policy.should_terminate()
        clock.now = 5
        assert policy.should_terminate()
        assert policy.reason == "stagnation"

    def test_convergence(self):
        clock = FakeClock()
        tier = TierConfig(name="flash", max_runtime_seconds=100, min_runtime_seconds=1,
                          stagnation_seconds=50)
        policy = TerminationPolicy(
            tier, TerminationConfig(convergence_window=3, convergence_soft_delta=100), None, clock,
        )
        for soft in (-1000, -990, -980):
            assert policy.record(HardSoftScore(0, soft))
        clock.now = 2
        assert policy.should_terminate()
        assert policy.reason == "convergence"

    def test_step_limit(self):
        policy = self._policy(FakeClock(), step_limit=3)
        policy.record(HardSoftScore(-1, 0))
        for _ in range(3):
            assert not policy.should_terminate()
            policy.step()
        assert policy.should_terminate()
        assert policy.reason == "step_limit"

    def test_cancelled_first(self):
        ctx = SolvingContext()
        ctx.cancel()
        policy = self._policy(FakeClock(), ctx=ctx)
        policy.record(HardSoftScore(0, 0))
        assert policy.should_terminate()
        assert policy.reason == "cancelled"

    def test_record_only_improvements(self):
        policy = self._policy(FakeClock())
        assert policy.record(HardSoftScore(-2, 0))
        assert not policy.record(HardSoftScore(-2, 0))
        assert not policy.record(HardSoftScore(-3, 100))
        assert policy.record(HardSoftScore(-1, -500))


# ─── FORTSCHRITT ──────────────────────────────────────────────────────────────

class TestProgress:
    def test_ease_in_out_cubic(self):
        assert ease_in_out_cubic(0) == 0
        assert ease_in_out_cubic(0.5) == 0.5
        assert ease_in_out_cubic(1) == 1
        assert ease_in_out_cubic(2) == 1

    def test_estimator_monotonic_and_capped(self):
        clock = FakeClock()
        tier = make_tier("standard")
        est = ProgressEstimator(tier, ProgressConfig(throttle_ms=0), clock=clock)
        scores = [HardSoftScore(-5, 0), HardSoftScore(-8, 0), HardSoftScore(-2, 0),
                  HardSoftScore(0, -300), HardSoftScore(-1, 0), HardSoftScore(0, -10)]
        last = tier.progress_start
        for i, s in enumerate(scores * 4):
            clock.now = i * 0.8
            est.update(s, moves=i * 50)
            assert est.percent >= last
            assert est.percent <= tier.progress_end - 1
            last = est.percent
        event = est.complete(HardSoftScore(0, -10))
        assert event.percent == tier.progress_end
        assert event.tier_name == "standard"

    def test_throttle(self):
        clock = FakeClock()
        est = ProgressEstimator(make_tier("flash"), ProgressConfig(throttle_ms=300), clock=clock)
        assert est.update(HardSoftScore(-3, 0), 0) is not None
        clock.now = 0.1
        assert est.update(HardSoftScore(-1, 0), 10) is None
        assert est.update(HardSoftScore(-1, 0), 10, force=True) is not None

    def test_solve_reports_tier_range(self):
        events: list[ProgressEvent] = []
        finished = threading.Event()
        tier = make_tier("flash", 60)

        def sink(event: ProgressEvent) -> None:
            events.append(event)
            if event.percent == tier.progress_end:
                finished.set()

        solve(generated(), tier, config=make_config(), progress_sink=sink)
        assert finished.wait(5)
        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert percents[-1] == tier.progress_end
        assert all(tier.progress_start <= p <= tier.progress_end for p in percents)

    def test_adaptive_ends_with_post_processing(self):
        events: list[ProgressEvent] = []
        finished = threading.Event()

        def sink(event: ProgressEvent) -> None:
            events.append(event)
            if event.tier_name == "done" and event.percent == 100.0:
                finished.set()

        solve_adaptive(scenario_b(), progress_sink=sink, config=make_config(step_limit=20))
        assert finished.wait(5)
        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert (events[-1].tier_name, events[-1].percent) == ("done", 100.0)
        assert events[-2].percent == 95.0

    def test_slow_sink_does_not_delay_solver(self):
        release = threading.Event()

        def slow(event: ProgressEvent) -> None:
            release.wait(10)

        started = time.perf_counter()
        try:
            result, _, _ = solve_adaptive(scenario_a(), config=make_config(step_limit=5),
                                          progress_sink=slow)
            elapsed = time.perf_counter() - started
        finally:
            release.set()
        assert all(a.is_complete() for a in result.assignments)
        assert elapsed < 5

    def test_dispatcher_keeps_newest_events(self):
        release = threading.Event()
        finished = threading.Event()
        received: list[ProgressEvent] = []

        def blocked(event: ProgressEvent) -> None:
            release.wait(5)
            received.append(event)
            if event.percent == 19:
                finished.set()

        dispatcher = ProgressDispatcher(blocked, max_pending=4)
        for i in range(20):
            dispatcher.submit(ProgressEvent(percent=i, tier_name="flash",
                                            score_text="0hard/0soft", elapsed_ms=i))
        dispatcher.close()
        release.set()
        assert finished.wait(5)
        percents = [e.percent for e in received]
        assert percents == sorted(percents)
        assert len(received) <= 1 + 4
        assert dispatcher.dropped == 20 - len(received)

    def test_failing_sink_does_not_break_solver(self):
        def broken(event):
            raise RuntimeError("Empfänger defekt")

        _, score = solve(scenario_a(), make_tier("flash", 30), config=make_config(),
                         progress_sink=broken)
        assert isinstance(score, HardSoftScore)


# ─── ÖFFENTLICHE API / EINGABEFEHLER ──────────────────────────────────────────

class TestApi:
    def test_initial_schedule_ids(self):
        students = [
            Student(id="A", name="a", department="三", exam_days=2),
            Student(id="B", name="b", department="三", exam_days=1),
        ]
        teachers = [Teacher(id="T1", name="t", department="三")]
        schedule = build_initial_schedule(students, teachers, WINDOW)
        assert [a.id for a in schedule.assignments] == ["A_day1", "A_day2", "B_day1"]
        assert schedule.available_dates == [
            "2025-10-06", "2025-10-07", "2025-10-08", "2025-10-09", "2025-10-10",
        ]

    def test_accepts_date_objects(self):
        s = scenario_a()
        schedule = build_initial_schedule(s.students, s.teachers,
                                          (date(2025, 10, 6), date(2025, 10, 7)))
        assert len(schedule.available_dates) == 2

    def test_empty_students(self):
        with pytest.raises(InputError):
            build_initial_schedule([], scenario_a().teachers, WINDOW)

    def test_empty_teachers(self):
        with pytest.raises(InputError):
            build_initial_schedule(scenario_a().students, [], WINDOW)

    def test_reversed_window(self):
        s = scenario_a()
        with pytest.raises(InputError):
            build_initial_schedule(s.students, s.teachers, ("2025-10-10", "2025-10-06"))

    def test_unparseable_date(self):
        s = scenario_a()
        with pytest.raises(InputError):
            build_initial_schedule(s.students, s.teachers, ("2025-13-01", "2025-10-06"))

    def test_only_holidays(self):
        s = scenario_a()
        with pytest.raises(InputError):
            build_initial_schedule(s.students, s.teachers, WINDOW, holiday_predicate=lambda d: True)

    def test_duplicate_student_ids(self):
        s = scenario_a()
        with pytest.raises(InputError):
            build_initial_schedule(s.students * 2, s.teachers, WINDOW)

    def test_unknown_teacher_in_assignment(self):
        schedule = scenario_a()
        schedule.assignments[0].examiner1_id = "T999"
        with pytest.raises(InputError):
            validate_schedule(schedule)
        with pytest.raises(InputError):
            solve(schedule, make_tier("flash"), config=make_config())

    def test_missing_exam_day(self):
        schedule = scenario_a()
        schedule.assignments = [a for a in schedule.assignments if a.exam_type != "day2"]
        with pytest.raises(InputError, match="S1"):
            validate_schedule(schedule)
        with pytest.raises(InputError):
            solve_adaptive(schedule, config=make_config())

    def test_duplicate_exam_day(self):
        schedule = scenario_a()
        schedule.assignments.append(
            ExamAssignment(id="S1_extra", student_id="S1", exam_type="day1"))
        with pytest.raises(InputError):
            validate_schedule(schedule)
        with pytest.raises(InputError):
            score_only(schedule)

    def test_day2_for_one_day_student(self):
        schedule = scenario_b()
        schedule.assignments.append(
            ExamAssignment(id="S1_day2", student_id="S1", exam_type="day2"))
        with pytest.raises(InputError):
            solve(schedule, make_tier("flash"), config=make_config())

    def test_empty_dates(self):
        schedule = scenario_a()
        schedule.available_dates = []
        with pytest.raises(InputError):
            score_only(schedule)

    def test_unknown_tier_name(self):
        with pytest.raises(InputError):
            solve(scenario_a(), "turbo", config=make_config())

    def test_invalid_constraint_mapping(self):
        with pytest.raises(InputError):
            solve_adaptive(scenario_a(), {"SC1": {"weight": -5}}, config=make_config())

    def test_score_only_is_read_only(self):
        schedule = scenario_a()
        hard, soft, violations = score_only(schedule)
        assert hard < 0
        assert schedule.score is None
        assert all(v.constraint_id == "HC7" for v in violations)


# ─── PINS ─────────────────────────────────────────────────────────────────────

class TestPinManager:
    def test_add_replaces_same_assignment(self):
        pm = PinManager()
        pm.add_pin(PinnedAssignment(assignment_id="S1_day1", exam_date="2025-10-06"))
        pm.add_pin(PinnedAssignment(assignment_id="S1_day1", exam_date="2025-10-07"))
        assert len(pm) == 1
        assert pm.get_pins()[0].exam_date == "2025-10-07"

    def test_remove(self):
        pm = PinManager()
        pm.add_pin(PinnedAssignment(assignment_id="S1_day1"))
        assert pm.remove_pin("S1_day1")
        assert not pm.remove_pin("S1_day1")

    def test_json_roundtrip(self, tmp_path: Path):
        pm = PinManager()
        pm.add_pin(PinnedAssignment(assignment_id="S1_day1", exam_date="2025-10-06",
                                    examiner1_id="T1", examiner2_id="T5",
                                    backup_examiner_id="T6"))
        path = tmp_path / "pins.json"
        pm.save_json(path)
        loaded = PinManager()
        loaded.load_json(path)
        assert loaded.get_pins() == pm.get_pins()

    def test_unknown_assignment(self):
        pm = PinManager()
        pm.add_pin(PinnedAssignment(assignment_id="S9_day1"))
        with pytest.raises(InputError):
            pm.apply(scenario_a())

    def test_incomplete_pin_released_on_apply(self):
        pm = PinManager()
        pm.add_pin(PinnedAssignment(assignment_id="S1_day1", exam_date="2025-10-06"))
        schedule = scenario_a()
        assert pm.apply(schedule) == ["S1_day1"]
        assert not schedule.assignments[0].pinned

    def test_verify_and_restore(self):
        schedule = scenario_a()
        a = schedule.assignments[0]
        a.restore(("2025-10-06", "T1", "T5", "T6"))
        a.pinned = True
        snapshot = PinManager.snapshot(schedule)
        a.examiner2_id = "T6"
        assert PinManager.verify(schedule, snapshot) == [a.id]
        assert PinManager.restore(schedule, snapshot) == 1
        assert a.snapshot() == ("2025-10-06", "T1", "T5", "T6")
