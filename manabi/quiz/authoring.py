"""
Validation of quiz definitions written by admins.

The payload mirrors the curriculum editor's `quizData` object. Validation
happens before anything touches the database so a rejected definition
leaves the stored quiz unchanged.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import object_session

from manabi.quiz.errors import QuizValidationError
from manabi.quiz.models import (
    ANSWER_KIND_SINGLE,
    ANSWER_KINDS,
    QUIZ_TYPE_MCQ,
    QUIZ_TYPE_OPEN_ENDED,
    QUIZ_TYPES,
    Question,
    QuestionOption,
)

MIN_OPTIONS = 2


@dataclass
class OptionDefinition:
    text: str
    is_correct: bool


@dataclass
class QuestionDefinition:
    question_text: str
    points: float
    options: List[OptionDefinition]
    explanation: Optional[str] = None
    answer_kind: str = ANSWER_KIND_SINGLE


@dataclass
class QuizDefinition:
    title: str
    quiz_type: str
    total_points: float
    passing_score: float
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    allow_multiple_attempts: bool = False
    show_answers_after_submission: bool = True
    randomize_questions: bool = False
    randomize_options: bool = False
    is_published: bool = False
    questions: List[QuestionDefinition] = field(default_factory=list)
    open_ended_question: Optional[str] = None
    open_ended_question_file: Optional[str] = None
    accept_text_answer: bool = True
    accept_file_upload: bool = True


def _number(value, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise QuizValidationError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise QuizValidationError(f"{name} must be a number")


def _flag(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise QuizValidationError(f"{key} must be true or false")
    return value


def _text(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise QuizValidationError("Expected a string value")
    return value.strip() or None


def _parse_question(position: int, raw) -> QuestionDefinition:
    label = f"Question {position + 1}"
    if not isinstance(raw, dict):
        raise QuizValidationError(f"{label} must be an object")

    answer_kind = raw.get("answerKind") or ANSWER_KIND_SINGLE
    if answer_kind not in ANSWER_KINDS:
        raise QuizValidationError(f"{label}: unsupported answer kind '{answer_kind}'")

    question_text = _text(raw.get("question"))
    if not question_text:
        raise QuizValidationError(f"{label}: question text is required")

    points = _number(raw.get("points", 1), f"{label}: points")
    if points <= 0:
        raise QuizValidationError(f"{label}: points must be greater than 0")

    raw_options = raw.get("options") or []
    if not isinstance(raw_options, list) or len(raw_options) < MIN_OPTIONS:
        raise QuizValidationError(f"{label}: at least {MIN_OPTIONS} options are required")

    options = []
    for option in raw_options:
        if not isinstance(option, dict):
            raise QuizValidationError(f"{label}: each option must be an object")
        text = _text(option.get("text"))
        if not text:
            raise QuizValidationError(f"{label}: option text is required")
        options.append(OptionDefinition(text=text, is_correct=option.get("isCorrect") is True))

    correct_count = sum(1 for o in options if o.is_correct)
    if correct_count != 1:
        raise QuizValidationError(
            f"{label}: exactly one option must be marked correct (found {correct_count})"
        )

    return QuestionDefinition(
        question_text=question_text,
        points=points,
        options=options,
        explanation=_text(raw.get("explanation")),
        answer_kind=answer_kind,
    )


def parse_quiz_definition(payload: dict) -> QuizDefinition:
    """
    Validate an authoring payload and return a QuizDefinition.

    Raises:
        QuizValidationError: describing the first problem found
    """
    if not isinstance(payload, dict):
        raise QuizValidationError("Request body must be a JSON object")

    title = _text(payload.get("title"))
    if not title:
        raise QuizValidationError("Quiz title is required")

    data = payload.get("quizData")
    if not isinstance(data, dict):
        raise QuizValidationError("quizData is required")

    quiz_type = data.get("quizType")
    if quiz_type not in QUIZ_TYPES:
        raise QuizValidationError(f"quizType must be one of: {', '.join(QUIZ_TYPES)}")

    time_limit = data.get("timeLimit")
    if time_limit is not None:
        if isinstance(time_limit, bool) or not isinstance(time_limit, int) or time_limit <= 0:
            raise QuizValidationError("timeLimit must be a positive number of minutes")

    passing_score = _number(data.get("passingScore", 60), "passingScore")
    if not 0 <= passing_score <= 100:
        raise QuizValidationError("passingScore must be between 0 and 100")

    definition = QuizDefinition(
        title=title,
        description=_text(payload.get("description")),
        quiz_type=quiz_type,
        total_points=0.0,
        passing_score=passing_score,
        time_limit_minutes=time_limit,
        allow_multiple_attempts=_flag(data, "allowMultipleAttempts", False),
        show_answers_after_submission=_flag(data, "showAnswersAfterSubmission", True),
        randomize_questions=_flag(data, "randomizeQuestions", False),
        randomize_options=_flag(data, "randomizeOptions", False),
        is_published=_flag(payload, "isPublished", False),
    )

    if quiz_type == QUIZ_TYPE_MCQ:
        raw_questions = data.get("mcqQuestions") or []
        if not isinstance(raw_questions, list) or not raw_questions:
            raise QuizValidationError("Please add at least one question to the quiz")
        definition.questions = [_parse_question(i, q) for i, q in enumerate(raw_questions)]
        points_sum = sum(q.points for q in definition.questions)
        if data.get("totalPoints") is not None:
            declared = _number(data.get("totalPoints"), "totalPoints")
            if abs(declared - points_sum) > 1e-9:
                raise QuizValidationError(
                    f"totalPoints ({declared:g}) must equal the sum of question points ({points_sum:g})"
                )
        definition.total_points = points_sum
    else:
        definition.open_ended_question = _text(data.get("openEndedQuestion"))
        definition.open_ended_question_file = _text(data.get("openEndedQuestionFile"))
        if not definition.open_ended_question and not definition.open_ended_question_file:
            raise QuizValidationError("Please add a question or upload a question file")
        definition.accept_text_answer = _flag(data, "acceptTextAnswer", True)
        definition.accept_file_upload = _flag(data, "acceptFileUpload", True)
        if not definition.accept_text_answer and not definition.accept_file_upload:
            raise QuizValidationError("An open-ended quiz must accept a text answer or a file upload")
        definition.total_points = _number(data.get("totalPoints", 100), "totalPoints")
        if definition.total_points <= 0:
            raise QuizValidationError("totalPoints must be greater than 0")

    return definition


def apply_definition(quiz, definition: QuizDefinition) -> None:
    """Copy a validated definition onto a Quiz row, replacing its questions."""
    quiz.title = definition.title
    quiz.description = definition.description
    quiz.quiz_type = definition.quiz_type
    quiz.time_limit_minutes = definition.time_limit_minutes
    quiz.total_points = definition.total_points
    quiz.passing_score = definition.passing_score
    quiz.allow_multiple_attempts = definition.allow_multiple_attempts
    quiz.show_answers_after_submission = definition.show_answers_after_submission
    quiz.randomize_questions = definition.randomize_questions
    quiz.randomize_options = definition.randomize_options
    quiz.is_published = definition.is_published

    quiz.open_ended_question = definition.open_ended_question
    quiz.open_ended_question_file = definition.open_ended_question_file
    quiz.accept_text_answer = definition.accept_text_answer
    quiz.accept_file_upload = definition.accept_file_upload

    had_questions = bool(quiz.questions)
    quiz.questions.clear()
    session = object_session(quiz)
    if had_questions and session is not None:
        # old rows must be gone before new ones reuse their question_index
        session.flush()
    for question_index, question in enumerate(definition.questions):
        quiz.questions.append(Question(
            question_index=question_index,
            answer_kind=question.answer_kind,
            question_text=question.question_text,
            points=question.points,
            explanation=question.explanation,
            options=[
                QuestionOption(option_index=option_index, text=option.text, is_correct=option.is_correct)
                for option_index, option in enumerate(question.options)
            ],
        ))


def definition_to_dict(quiz, include_answers: bool = True) -> dict:
    """Serialize a stored quiz in the same shape the authoring payload uses."""
    data = {
        'quizType': quiz.quiz_type,
        'timeLimit': quiz.time_limit_minutes,
        'totalPoints': quiz.total_points,
        'passingScore': quiz.passing_score,
        'allowMultipleAttempts': quiz.allow_multiple_attempts,
        'showAnswersAfterSubmission': quiz.show_answers_after_submission,
        'randomizeQuestions': quiz.randomize_questions,
        'randomizeOptions': quiz.randomize_options,
    }
    if quiz.quiz_type == QUIZ_TYPE_MCQ:
        data['mcqQuestions'] = [question_to_dict(q, include_answers) for q in quiz.questions]
    elif quiz.quiz_type == QUIZ_TYPE_OPEN_ENDED:
        data.update({
            'openEndedQuestion': quiz.open_ended_question,
            'openEndedQuestionFile': quiz.open_ended_question_file,
            'acceptTextAnswer': quiz.accept_text_answer,
            'acceptFileUpload': quiz.accept_file_upload,
        })
    return {
        'id': quiz.id,
        **quiz.slot(),
        'title': quiz.title,
        'description': quiz.description,
        'isPublished': quiz.is_published,
        'quizData': data,
    }


def question_to_dict(question, include_answers: bool = True) -> dict:
    data = {
        'questionIndex': question.question_index,
        'question': question.question_text,
        'points': question.points,
        'answerKind': question.answer_kind,
        'options': [],
    }
    for option in question.options:
        option_data = {'optionIndex': option.option_index, 'text': option.text}
        if include_answers:
            option_data['isCorrect'] = option.is_correct
        data['options'].append(option_data)
    if include_answers:
        data['explanation'] = question.explanation
    return data
