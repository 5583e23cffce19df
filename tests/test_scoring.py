"""Tests für Dienstrotation, Abteilungen, Constraints, Bewertung und Züge."""

import random
from datetime import date, timedelta

import pytest

from config.schema import ConstraintConfig, DutyRotationConfig
from data.fake_data import FakeDataGenerator
from models.exam_assignment import ExamAssignment
from models.exam_schedule import ExamSchedule, HardSoftScore
from models.student import Student
from models.teacher import Teacher, UnavailablePeriod
from solver.constraints import ScoringView
from solver.constraints.soft import gap_penalty
from solver.construction import ConstructionHeuristic
from solver.context import SolvingContext
from solver.departments import DepartmentNormalizer, normalize_department
from solver.duty import DateShiftCalculator, parse_exam_date
from solver.errors import InputError
from solver.moves import (
    DISTANCE_BARRED,
    DISTANCE_OTHER,
    DISTANCE_RECOMMENDED,
    ConsecutivePairMove,
    MoveSelector,
    SwapMove,
    department_distance,
)
from solver.scoring import ScoreDirector, ScoreResult, ScoringEngine

# Montag; Rotation: Nacht 一组, Tag 二组, Ruhetag 1 三组, Ruhetag 2 四组
DAY = "2025-10-06"
SATURDAY = "2025-10-11"
HARD = 1_000_000


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_teachers() -> list[Teacher]:
    """Prüfer im Nachtdienst (一组) plus ein Tagdienst- und ein Verwaltungs-Prüfer."""
    return [
        Teacher(id="T1", name="王伟", department="三室", team="一组"),
        Teacher(id="T2", name="李芳", department="一室", team="一组"),
        Teacher(id="T3", name="张敏", department="二室", team="一组"),
        Teacher(id="T4", name="刘强", department="七室", team="一组"),
        Teacher(id="T5", name="陈静", department="三室", team="二组"),
        Teacher(id="T6", name="杨磊", department="四室", team="行政班"),
        Teacher(id="T7", name="黄军", department="第1科室", team="一组"),
    ]


def make_student(sid: str = "S1", exam_days: int = 1, **kw) -> Student:
    data = dict(id=sid, name=f"Prüfling {sid}", department="三室", exam_days=exam_days,
                recommended_examiner1_dept="一", recommended_examiner2_dept="二")
    data.update(kw)
    return Student(**data)


def make_assignment(sid: str = "S1", exam_type: str = "day1", exam_date=DAY,
                    ex1="T1", ex2="T2", backup="T3") -> ExamAssignment:
    return ExamAssignment(
        id=f"{sid}_{exam_type}", student_id=sid, exam_type=exam_type,
        exam_date=exam_date, examiner1_id=ex1, examiner2_id=ex2, backup_examiner_id=backup,
    )


def make_schedule(assignments, students=None, teachers=None, dates=None,
                  constraints=None, hard_weight=None) -> ExamSchedule:
    start = date(2025, 10, 6)
    return ExamSchedule(
        assignments=assignments,
        available_dates=dates or [(start + timedelta(days=i)).isoformat() for i in range(21)],
        students=students or [make_student()],
        teachers=teachers or make_teachers(),
        constraint_config=ConstraintConfig.from_mapping(constraints, hard_weight=hard_weight),
    )


def score(schedule: ExamSchedule, holiday_predicate=None) -> ScoreResult:
    ctx = SolvingContext(constraint_config=schedule.constraint_config,
                         holiday_predicate=holiday_predicate)
    return ScoringEngine(ctx).score(schedule)


def total(result: ScoreResult, constraint_id: str) -> int:
    return sum(t.score for t in result.totals if t.constraint_id == constraint_id)


# ─── DIENSTROTATION ───────────────────────────────────────────────────────────

class TestDutyRotation:
    def test_anchor_date(self):
        duty = DateShiftCalculator().for_date(date(2025, 9, 4))
        assert duty.night_shift == "一组"
        assert duty.day_shift == "二组"
        assert (duty.rest1, duty.rest2) == ("三组", "四组")

    def test_four_day_period(self):
        """Ankerdatum und Anker + 4 Tage haben dieselbe Rotation."""
        calc = DateShiftCalculator()
        anchor = calc.rotation.anchor_date
        a = calc.for_date(anchor)
        b = calc.for_date(anchor + timedelta(days=4))
        assert a.model_dump(exclude={"date"}) == b.model_dump(exclude={"date"})

    def test_before_anchor(self):
        duty = DateShiftCalculator().for_date(date(2025, 9, 3))
        assert duty.night_shift == "四组"
        assert duty.day_shift == "一组"
        assert (duty.rest1, duty.rest2) == ("二组", "三组")

    def test_custom_rotation(self):
        rotation = DutyRotationConfig(anchor_date=date(2025, 1, 1), teams=["A", "B", "C", "D"])
        duty = DateShiftCalculator(rotation).for_date(date(2025, 1, 2))
        assert duty.night_shift == "B"
        assert duty.day_shift == "C"

    def test_status_of(self):
        duty = DateShiftCalculator().team_for(DAY)
        assert duty.status_of("一组") == "night"
        assert duty.status_of("二组") == "day"
        assert duty.status_of("行政班") is None

    def test_team_for_memoized(self):
        calc = DateShiftCalculator()
        first = calc.team_for(DAY)
        assert calc.team_for(DAY) is first
        assert calc.team_for("kein Datum") is None
        assert calc.cache_size() == 2

    def test_separate_calculators_share_nothing(self):
        a, b = DateShiftCalculator(), DateShiftCalculator()
        a.team_for(DAY)
        assert b.cache_size() == 0

    @pytest.mark.parametrize("text", ["2025-10-06", "2025/10/6", "2025.10.06", " 2025-10-06 "])
    def test_parse_formats(self, text: str):
        assert parse_exam_date(text) == date(2025, 10, 6)

    @pytest.mark.parametrize("text", ["2025-02-30", "06.10.2025", "", "morgen"])
    def test_parse_invalid(self, text: str):
        with pytest.raises(InputError):
            parse_exam_date(text)


# ─── ABTEILUNGEN ──────────────────────────────────────────────────────────────

class TestDepartments:
    @pytest.mark.parametrize("raw", ["三", "三室", "3室", "区域三室", "第3科室", "3", " 三室 "])
    def test_spellings(self, raw: str):
        assert normalize_department(raw) == "三"

    def test_fuzzy_contains(self):
        assert normalize_department("飞行三室") == "三"
        assert normalize_department("第10科室") == "十"

    @pytest.mark.parametrize("raw", ["模拟机", "现场", "口试", None, "", "   "])
    def test_rejected(self, raw):
        assert normalize_department(raw) is None

    def test_unknown_text_kept(self):
        assert normalize_department("外科") == "外科"

    def test_interchange(self):
        norm = DepartmentNormalizer()
        assert norm.is_interchange("三", "七")
        assert norm.is_interchange("七", "三")
        assert not norm.is_interchange("三", "一")
        assert norm.matches_or_interchange("三", "三")
        assert not norm.matches_or_interchange(None, "三")

    def test_memoized(self):
        norm = DepartmentNormalizer()
        assert norm("第3科室") == "三"
        assert norm("模拟机") is None
        assert norm("第3科室") == "三"


# ─── HARTE CONSTRAINTS ────────────────────────────────────────────────────────

class TestHardConstraints:
    def test_baseline_feasible(self):
        result = score(make_schedule([make_assignment()]))
        assert result.hard == 0
        assert result.hard_violations() == []

    def test_hc2_wrong_department_names_student(self):
        result = score(make_schedule([make_assignment(ex1="T2", ex2="T3", backup="T6")]))
        assert result.hard == -HARD
        (v,) = result.violations_of("HC2")
        assert v.entity == "S1"
        assert v.score_impact == -HARD

    def test_hc2_interchange_allowed(self):
        result = score(make_schedule([make_assignment(ex1="T4")]))
        assert result.hard == 0
        assert total(result, "SC9") == 20

    def test_hc3_day_shift(self):
        result = score(make_schedule([make_assignment(ex1="T5")]))
        (v,) = result.violations_of("HC3")
        assert v.entity == "T5"
        assert result.hard == -HARD

    def test_hc4_shared_teacher_same_date(self):
        students = [make_student("S1"), make_student("S2")]
        assignments = [
            make_assignment("S1"),
            make_assignment("S2", ex1="T1", ex2="T3", backup="T6"),
        ]
        result = score(make_schedule(assignments, students=students))
        (v,) = result.violations_of("HC4")
        assert v.entity == "T1"

    def test_hc4_not_across_dates(self):
        students = [make_student("S1"), make_student("S2")]
        assignments = [make_assignment("S1"), make_assignment("S2", exam_date="2025-10-07")]
        result = score(make_schedule(assignments, students=students))
        assert result.violations_of("HC4") == []

    def test_hc6_days_not_consecutive(self):
        assignments = [
            make_assignment("S1", "day1", DAY),
            make_assignment("S1", "day2", "2025-10-08", ex1="T4"),
        ]
        result = score(make_schedule(assignments, students=[make_student(exam_days=2)]))
        (v,) = result.violations_of("HC6")
        assert v.entity == "S1"

    def test_hc6_reverse_order_accepted(self):
        assignments = [
            make_assignment("S1", "day1", "2025-10-07"),
            make_assignment("S1", "day2", DAY, ex1="T4"),
        ]
        result = score(make_schedule(assignments, students=[make_student(exam_days=2)]))
        assert result.violations_of("HC6") == []

    def test_hc6_student_on_day_shift(self):
        result = score(make_schedule([make_assignment()],
                                     students=[make_student(team="二组")]))
        (v,) = result.violations_of("HC6")
        assert v.entity == "S1"

    def test_hc7_missing_examiner2(self):
        result = score(make_schedule([make_assignment(ex2=None)]))
        (v,) = result.violations_of("HC7")
        assert v.entity == "S1_day1"

    def test_hc7_counts_each_reason(self):
        """Prüfer 2 aus eigener Abteilung und gleiche Abteilung wie Prüfer 1."""
        result = score(make_schedule([make_assignment(ex2="T5", backup="T3")]))
        (v,) = result.violations_of("HC7")
        assert v.score_impact == -2 * HARD

    def test_hc8_backup_is_examiner(self):
        result = score(make_schedule([make_assignment(backup="T2")]))
        (v,) = result.violations_of("HC8")
        assert v.entity == "T2"

    def test_hc8b_backup_department_clash(self):
        result = score(make_schedule([make_assignment(backup="T7")]))
        assert result.violations_of("HC8") == []
        (v,) = result.violations_of("HC8b")
        assert v.entity == "T7"

    def test_hc9_unavailable(self):
        teachers = make_teachers()
        teachers[1] = teachers[1].model_copy(update={"unavailable_periods": [
            UnavailablePeriod(start_date=date(2025, 10, 5), end_date=date(2025, 10, 7)),
        ]})
        result = score(make_schedule([make_assignment()], teachers=teachers))
        (v,) = result.violations_of("HC9")
        assert v.entity == "T2"

    def test_hc1_admin_on_weekend(self):
        result = score(make_schedule([make_assignment(exam_date=SATURDAY, backup="T6")]))
        (v,) = result.violations_of("HC1")
        assert v.entity == "S1_day1"
        assert result.violations_of("SC16")

    def test_hc1_holiday(self):
        result = score(make_schedule([make_assignment()]),
                       holiday_predicate=lambda d: d == date(2025, 10, 6))
        assert len(result.violations_of("HC1")) == 1

    def test_unassigned_only_hc7(self):
        a = ExamAssignment(id="S1_day1", student_id="S1", exam_type="day1")
        result = score(make_schedule([a]))
        assert result.score == HardSoftScore(-HARD, 0)
        assert [v.constraint_id for v in result.violations] == ["HC7"]

    def test_disabled_constraint(self):
        schedule = make_schedule([make_assignment(ex1="T2", ex2="T3", backup="T6")],
                                 constraints={"HC2": False})
        assert score(schedule).hard == 0

    def test_shared_hard_weight(self):
        schedule = make_schedule([make_assignment(ex1="T2", ex2="T3", backup="T6")],
                                 hard_weight=10)
        assert score(schedule).hard == -10


# ─── WEICHE CONSTRAINTS ───────────────────────────────────────────────────────

class TestSoftConstraints:
    def test_baseline_soft_total(self):
        """Nacht-Prüfer (SC1), Empfehlungen (SC2, SC4, SC6)."""
        result = score(make_schedule([make_assignment()]))
        assert total(result, "SC1") == 200 + 200 + 80
        assert total(result, "SC2") == 200
        assert total(result, "SC4") == 180
        assert total(result, "SC6") == 150
        assert result.score == HardSoftScore(0, 1010)

    def test_rewards_not_listed_as_violations(self):
        result = score(make_schedule([make_assignment()]))
        assert result.violations == []

    def test_weekend_weight_override(self):
        schedule = make_schedule([make_assignment(exam_date=SATURDAY)], constraints={"SC16": 100})
        (v,) = score(schedule).violations_of("SC16")
        assert v.score_impact == -100

    def test_admin_as_examiner(self):
        teachers = make_teachers() + [
            Teacher(id="T8", name="赵刚", department="一室", team=None),
        ]
        result = score(make_schedule([make_assignment(ex2="T8")], teachers=teachers))
        (v,) = result.violations_of("SC13")
        assert v.score_impact == -80

    def test_admin_as_backup_rewarded(self):
        result = score(make_schedule([make_assignment(backup="T6")]))
        assert total(result, "SC7") == 60

    @pytest.mark.parametrize("gap,expected", [(1, 50), (2, 20), (3, 20), (4, 8), (5, 8), (6, 0)])
    def test_gap_penalty(self, gap: int, expected: int):
        assert gap_penalty(gap) == expected

    def test_daily_load(self):
        students = [make_student(f"S{i}") for i in range(1, 6)]
        assignments = [
            ExamAssignment(id=f"S{i}_day1", student_id=f"S{i}", exam_type="day1", exam_date=DAY)
            for i in range(1, 6)
        ]
        (v,) = score(make_schedule(assignments, students=students)).violations_of("SC11")
        assert v.score_impact == -5 * 5

    def test_workload_over_three(self):
        students = [make_student(f"S{i}") for i in range(1, 5)]
        start = date(2025, 10, 6)
        assignments = [
            make_assignment(f"S{i}", exam_date=(start + timedelta(days=6 * (i - 1))).isoformat(),
                            ex2=None, backup=None)
            for i in range(1, 5)
        ]
        result = score(make_schedule(assignments, students=students))
        assert sum(v.score_impact for v in result.violations_of("SC10")) == -25

    def test_backup_balance(self):
        students = [make_student(f"S{i}") for i in range(1, 4)]
        assignments = [
            make_assignment(f"S{i}", exam_date=f"2025-10-{6 + 7 * (i - 1):02d}", ex1=None, ex2=None)
            for i in range(1, 4)
        ]
        (v,) = score(make_schedule(assignments, students=students)).violations_of("SC12")
        assert v.score_impact == -4 * 50

    def test_same_examiner1_both_days(self):
        assignments = [
            make_assignment("S1", "day1", DAY),
            make_assignment("S1", "day2", "2025-10-07", ex2="T3", backup="T6"),
        ]
        result = score(make_schedule(assignments, students=[make_student(exam_days=2)]))
        (v,) = result.violations_of("SC15")
        assert v.entity == "S1"
        assert v.score_impact == -60

    @pytest.mark.parametrize("team,constraint_id,expected", [
        ("三组", "SC3", 120 + 120 + 40),
        ("四组", "SC5", 80 + 80 + 30),
    ])
    def test_rest_day_examiners(self, team: str, constraint_id: str, expected: int):
        """Ruhetag-Prüfer in allen drei Rollen; Ersatzprüfer mit reduziertem Faktor."""
        teachers = [t.model_copy(update={"team": team}) if t.id in {"T1", "T2", "T3"} else t
                    for t in make_teachers()]
        result = score(make_schedule([make_assignment()], teachers=teachers))
        assert total(result, constraint_id) == expected
        assert total(result, "SC1") == 0

    def test_weekend_night_shift(self):
        # 2025-10-18 ist ein Samstag mit Nachtdienst 一组
        result = score(make_schedule([make_assignment(exam_date="2025-10-18")]))
        assert total(result, "SC17") == 300 + 300 + 200
        assert total(score(make_schedule([make_assignment()])), "SC17") == 0

    def test_pool_fallback_level3(self):
        """Prüfer 2 im Pool, Verwaltungs-Ersatz außerhalb: Stufe 3 mit Nacht-Priorität."""
        result = score(make_schedule([make_assignment(backup="T6")]))
        assert total(result, "SC8") == 30 + 100
        assert total(score(make_schedule([make_assignment()])), "SC8") == 0

    @pytest.mark.parametrize("ex2,expected", [("T3", 50 + 80), ("T2", 0)])
    def test_day2_examiner2_recommendation(self, ex2: str, expected: int):
        """Tag 2 erwartet Prüfer 2 aus Empf. 2; Priorität am 07.10. = Ruhetag 1."""
        a = make_assignment("S1", "day2", "2025-10-07", ex1="T4", ex2=ex2, backup="T6")
        result = score(make_schedule([a], students=[make_student(exam_days=2)]))
        assert total(result, "SC6") == expected

    @pytest.mark.parametrize("ex2,backup,expected", [("T3", "T2", 110), ("T7", "T6", 0)])
    def test_examiner2_diversity(self, ex2: str, backup: str, expected: int):
        assignments = [
            make_assignment("S1", "day1", DAY),
            make_assignment("S1", "day2", "2025-10-07", ex1="T4", ex2=ex2, backup=backup),
        ]
        result = score(make_schedule(assignments, students=[make_student(exam_days=2)]))
        assert total(result, "SC14") == expected


# ─── BEWERTUNG ────────────────────────────────────────────────────────────────

@pytest.fixture()
def constructed():
    """Konstruierter Plan aus Testdaten mit Director und Selector."""
    schedule = FakeDataGenerator(num_students=10, num_departments=5, seed=3).generate().to_schedule()
    ctx = SolvingContext(constraint_config=schedule.constraint_config)
    director = ScoreDirector(schedule, ctx)
    selector = MoveSelector(director, random.Random(1))
    ConstructionHeuristic(director, selector).run()
    return schedule, ctx, director, selector


class TestScoringEngine:
    def test_deterministic(self, constructed):
        schedule, ctx, _, _ = constructed
        a = ScoringEngine(ctx).score(schedule)
        b = ScoringEngine(SolvingContext(constraint_config=schedule.constraint_config)).score(schedule)
        assert a.model_dump() == b.model_dump()

    def test_calculate_matches_explained_score(self, constructed):
        schedule, ctx, _, _ = constructed
        engine = ScoringEngine(ctx)
        assert engine.calculate(schedule) == engine.score(schedule).score

    def test_totals_sum_to_score(self, constructed):
        schedule, ctx, _, _ = constructed
        result = ScoringEngine(ctx).score(schedule)
        assert sum(t.score for t in result.totals if t.hard) == result.hard
        assert sum(t.score for t in result.totals if not t.hard) == result.soft

    def test_construction_completes_everything(self, constructed):
        schedule, _, _, _ = constructed
        assert all(a.is_complete() for a in schedule.assignments)


class TestScoreDirector:
    def test_initial_matches_full(self, constructed):
        schedule, ctx, director, _ = constructed
        assert director.score == ScoringEngine(ctx).calculate(schedule)

    def test_incremental_matches_full_after_moves(self, constructed):
        schedule, ctx, director, selector = constructed
        engine = ScoringEngine(ctx)
        for i in range(300):
            move = selector.next_move()
            if move is None:
                continue
            director.apply(move.changes())
            if i % 25 == 0:
                assert director.score == engine.calculate(schedule)
        assert director.score == engine.calculate(schedule)

    def test_evaluate_leaves_state(self, constructed):
        schedule, _, director, selector = constructed
        before = [a.snapshot() for a in schedule.assignments]
        score_before = director.score
        for _ in range(50):
            director.evaluate(selector.next_move().changes())
        assert [a.snapshot() for a in schedule.assignments] == before
        assert director.score == score_before

    def test_undo_restores_score(self, constructed):
        _, _, director, selector = constructed
        start = director.score
        undo = director.apply(selector.next_move().changes())
        director.apply(undo)
        assert director.score == start

    def test_date_change_updates_double_booking(self):
        students = [make_student("S1"), make_student("S2")]
        assignments = [make_assignment("S1"), make_assignment("S2", exam_date="2025-10-07")]
        schedule = make_schedule(assignments, students=students)
        ctx = SolvingContext(constraint_config=schedule.constraint_config)
        director = ScoreDirector(schedule, ctx)
        assert director.score.hard == 0
        director.apply([(assignments[1], "exam_date", DAY)])
        assert director.score.hard == -HARD
        assert director.score == ScoringEngine(ctx).calculate(schedule)

    def test_rejects_non_planning_field(self, constructed):
        schedule, _, director, _ = constructed
        with pytest.raises(ValueError):
            director.apply([(schedule.assignments[0], "student_id", "S999")])

    def test_selector_skips_pinned(self, constructed):
        schedule, ctx, _, _ = constructed
        schedule.assignments[0].pinned = True
        director = ScoreDirector(schedule, ctx)
        selector = MoveSelector(director, random.Random(2))
        pinned_id = schedule.assignments[0].id
        for _ in range(200):
            move = selector.next_move()
            assert move is None or pinned_id not in move.entity_ids()


# ─── ZÜGE ─────────────────────────────────────────────────────────────────────

def director_for(schedule: ExamSchedule) -> tuple[ScoreDirector, ScoringEngine]:
    ctx = SolvingContext(constraint_config=schedule.constraint_config)
    return ScoreDirector(schedule, ctx), ScoringEngine(ctx)


class TestMoves:
    def test_pair_move_repairs_gap_atomically(self):
        day1 = make_assignment("S1", "day1", "2025-10-10")
        day2 = make_assignment("S1", "day2", "2025-10-12", ex1="T4", ex2="T3", backup="T2")
        schedule = make_schedule([day1, day2], students=[make_student(exam_days=2)])
        director, engine = director_for(schedule)
        assert len(engine.score(schedule).violations_of("HC6")) == 1
        start = director.score

        move = ConsecutivePairMove(day1, day2, DAY, "2025-10-07")
        assert move.entity_ids() == ("S1_day1", "S1_day2")
        undo = director.apply(move.changes())
        assert (day1.exam_date, day2.exam_date) == (DAY, "2025-10-07")
        assert engine.score(schedule).violations_of("HC6") == []
        assert director.score == engine.calculate(schedule)
        assert director.score.hard > start.hard

        director.apply(undo)
        assert (day1.exam_date, day2.exam_date) == ("2025-10-10", "2025-10-12")
        assert director.score == start

    def test_swap_same_date(self):
        students = [make_student("S1"), make_student("S2")]
        a1 = make_assignment("S1")
        a2 = make_assignment("S2", ex1="T4", ex2="T7", backup="T6")
        schedule = make_schedule([a1, a2], students=students)
        director, engine = director_for(schedule)
        start = director.score

        undo = director.apply(SwapMove(a1, a2, "examiner2_id").changes())
        assert (a1.examiner2_id, a2.examiner2_id) == ("T7", "T2")
        assert director.score == engine.calculate(schedule)

        director.apply(undo)
        assert (a1.examiner2_id, a2.examiner2_id) == ("T2", "T7")
        assert director.score == start

    def test_selector_swaps_only_same_date(self, constructed):
        _, _, _, selector = constructed
        for _ in range(300):
            move = selector.next_move()
            if isinstance(move, SwapMove):
                assert move.left.exam_date == move.right.exam_date

    @pytest.mark.parametrize("role,teacher_id,expected", [
        ("examiner1_id", "T1", DISTANCE_RECOMMENDED),        # eigene Abteilung
        ("examiner1_id", "T4", DISTANCE_RECOMMENDED),        # Austausch 三 ↔ 七
        ("examiner1_id", "T2", DISTANCE_BARRED),
        ("examiner2_id", "T5", DISTANCE_BARRED),             # Abteilung des Prüflings
        ("examiner2_id", "T2", DISTANCE_RECOMMENDED),        # im Pool
        ("examiner2_id", "T6", DISTANCE_OTHER),
        ("backup_examiner_id", "T6", DISTANCE_RECOMMENDED),  # Verwaltung
        ("backup_examiner_id", "T4", DISTANCE_OTHER),
    ])
    def test_department_distance(self, role: str, teacher_id: str, expected: int):
        schedule = make_schedule([make_assignment()])
        view = ScoringView(schedule, SolvingContext(constraint_config=schedule.constraint_config))
        assert department_distance(view, schedule.assignments[0], role, teacher_id) == expected
