"""Sample applicants shown when no database is configured."""
from typing import List

from .schema import Applicant, EvaluationProgress, RegistrationType, StageId

D = RegistrationType.DIRECT
P = RegistrationType.POSTED

_ROWS = [
    # Application: long column to exercise scrolling
    ("A001", "Kim Jiwon", "application", D, "2025. 09. 02", 0, 1),
    ("A002", "Lee Seojun", "application", P, "2025. 09. 03", 1, 2),
    ("A003", "Park Minseo", "application", D, "2025. 09. 04", 0, 1),
    ("A004", "Choi Sua", "application", P, "2025. 09. 05", 2, 3),
    ("A005", "Jung Yejun", "application", D, "2025. 09. 06", 0, 1),
    ("A006", "Kang Hayun", "application", P, "2025. 09. 07", 1, 1),
    ("A007", "Cho Siwoo", "application", D, "2025. 09. 08", 0, 2),
    ("A008", "Yoon Doyun", "application", P, "2025. 09. 09", 1, 2),
    ("A009", "Jang Seoyun", "application", D, "2025. 09. 10", 0, 1),
    ("A010", "Lim Juwon", "application", P, "2025. 09. 11", 2, 2),
    ("A011", "Han Jiho", "application", D, "2025. 09. 12", 0, 1),
    ("A012", "Oh Minjun", "application", P, "2025. 09. 13", 1, 3),
    ("B001", "Seo Yujin", "screen_call", D, "2025. 08. 25", 1, 2),
    ("B002", "Shin Hajun", "screen_call", P, "2025. 08. 26", 0, 1),
    ("B003", "Kwon Jian", "screen_call", D, "2025. 08. 27", 2, 2),
    ("B004", "Hwang Eunwoo", "screen_call", P, "2025. 08. 28", 1, 1),
    ("C001", "Song Taehyun", "coding_test", D, "2025. 08. 20", 0, 1),
    ("C002", "Jeon Sohee", "coding_test", P, "2025. 08. 21", 1, 2),
    ("C003", "Hong Minjae", "coding_test", D, "2025. 08. 22", 0, 1),
    ("D001", "Moon Jiyoung", "interview_1", P, "2025. 08. 15", 1, 1),
    ("D002", "Bae Sungmin", "interview_1", D, "2025. 08. 16", 0, 2),
    ("E001", "Baek Seungho", "interview_2", P, "2025. 08. 10", 2, 2),
    ("E002", "Yoo Nayeon", "interview_2", D, "2025. 08. 11", 1, 1),
    ("F001", "Noh Hyunwoo", "final_negotiation", P, "2025. 08. 05", 1, 1),
    ("G001", "Ahn Junghoon", "hired", D, "2025. 08. 01", 1, 1),
]


def initial_applicants() -> List[Applicant]:
    """Fresh copy of the sample board."""
    return [
        Applicant(
            id=applicant_id,
            name=name,
            stage=StageId(stage),
            registration_type=registration,
            applied_date=applied,
            evaluation_progress=EvaluationProgress(current, total),
        )
        for applicant_id, name, stage, registration, applied, current, total in _ROWS
    ]
