from models.teacher import Teacher, UnavailablePeriod
from models.student import Student
from models.exam_assignment import ExamAssignment
from models.exam_schedule import ExamSchedule, HardSoftScore
from models.duty_schedule import DutySchedule
from models.problem import ProblemInput

__all__ = [
    "Teacher",
    "UnavailablePeriod",
    "Student",
    "ExamAssignment",
    "ExamSchedule",
    "HardSoftScore",
    "DutySchedule",
    "ProblemInput",
]
