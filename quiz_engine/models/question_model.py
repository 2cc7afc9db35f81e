from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

import config


class Category(BaseModel):
    """
    퀴즈 카테고리 (외부 소유, 엔진에서는 읽기 전용)
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="카테고리 식별자")
    name: str = Field(..., min_length=1, description="카테고리명 (예: Arrays)")
    description: str = Field("", description="설명")
    difficulty: Literal["beginner", "intermediate", "advanced"] = Field(
        "beginner",
        description="난이도 등급"
    )
    is_active: bool = True

    @property
    def is_language_partitioned(self) -> bool:
        """언어별로 문제가 나뉘는 카테고리인지 (Program-Based Questions 등)."""
        return self.name in config.LANGUAGE_PARTITIONED_CATEGORIES


class QuestionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    is_correct: bool = False


class ProgramQuestion(BaseModel):
    """코드 분석형 문제에 포함되는 코드 스니펫."""
    model_config = ConfigDict(frozen=True)

    code_snippet: str = ""
    language: str = "javascript"
    expected_output: Optional[str] = None


class QuestionSpec(BaseModel):
    """
    세션에 출제되는 문제 모델
    세션에 한 번 들어오면 변경되지 않는다 (frozen).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="문제 식별자"
    )
    question_text: str = Field(
        ...,
        min_length=1,
        description="발문"
    )
    question_type: Literal["mcq", "program"] = Field(
        "mcq",
        description="문제 유형"
    )
    options: List[QuestionOption] = Field(
        default_factory=list,
        description="보기 리스트. 자유 입력형이면 빈 리스트"
    )
    correct_answer: Optional[str] = Field(
        None,
        description="정답 값. 원격 세션 payload 처럼 정답이 숨겨진 경우 None"
    )
    points: int = Field(
        1,
        ge=1,
        le=100,
        description="배점"
    )
    difficulty: Literal["easy", "medium", "hard"] = "easy"
    explanation: str = ""
    program_question: Optional[ProgramQuestion] = None

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v: List[QuestionOption]) -> List[QuestionOption]:
        """
        검증 로직 1: 보기가 있다면 최소 2개 이상이어야 한다.
        """
        if v and len(v) < 2:
            raise ValueError("A question with options needs at least two of them.")
        return v

    @model_validator(mode='after')
    def validate_answer_in_options(self) -> 'QuestionSpec':
        """
        검증 로직 2: 보기가 있는 문제에 정답이 주어졌다면 보기 중 하나여야 한다.
        """
        if self.options and self.correct_answer is not None:
            texts = [o.text for o in self.options]
            if self.correct_answer not in texts:
                raise ValueError(
                    f"Correct answer {self.correct_answer!r} is not one of the options {texts}."
                )
        return self

    @property
    def correct_value(self) -> Optional[str]:
        """
        채점 기준 값.
        correct_answer 우선, 없으면 is_correct 표시된 첫 보기, 둘 다 없으면 None (판정 불가).
        """
        if self.correct_answer is not None:
            return self.correct_answer
        for option in self.options:
            if option.is_correct:
                return option.text
        return None

    @property
    def language(self) -> Optional[str]:
        return self.program_question.language if self.program_question else None

    def public_view(self) -> dict:
        """정답 정보를 제외한 출제용 dict (진행 중 세션 응답용)."""
        data = {
            "id": self.id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "options": [o.text for o in self.options],
            "points": self.points,
            "difficulty": self.difficulty,
        }
        if self.program_question is not None:
            data["program_question"] = {
                "code_snippet": self.program_question.code_snippet,
                "language": self.program_question.language,
            }
        return data
