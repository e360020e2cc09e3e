"""
Presentation of submissions: student results, grading queues and summaries.

All functions take already-loaded model objects and return JSON-ready dicts.
"""
from manabi.quiz.authoring import question_to_dict
from manabi.quiz.models import QUIZ_TYPE_MCQ, UNANSWERED

STATUS_PENDING = 'pending'
STATUS_GRADED = 'graded'


def _iso(value):
    return value.isoformat() if value else None


def submission_summary(submission) -> dict:
    return {
        'id': submission.id,
        'quizType': submission.quiz_type,
        'attemptNumber': submission.attempt_number,
        'score': submission.score,
        'totalPoints': submission.total_points,
        'percentage': submission.percentage,
        'passed': submission.passed,
        'submittedAt': _iso(submission.submitted_at),
        'timeSpent': submission.time_spent,
        'autoSubmitted': submission.auto_submitted,
    }


def open_ended_details(submission) -> dict:
    """Answer plus grading state of an open-ended submission."""
    grade = submission.current_grade
    data = {
        'textAnswer': submission.text_answer,
        'fileUrl': submission.file_url,
        'status': STATUS_GRADED if grade else STATUS_PENDING,
    }
    if grade:
        data.update({
            'gradedScore': grade.score,
            'feedback': grade.feedback,
            'gradedAt': _iso(grade.graded_at),
            'gradedBy': grade.graded_by_name,
        })
    return data


def mcq_review(quiz, submission) -> list:
    """
    Per-question review: the option the student chose, the correct option,
    and the explanation when the student got it wrong.
    """
    chosen = {a.question_index: a for a in submission.mcq_answers}
    review = []
    for question in quiz.questions:
        answer = chosen.get(question.question_index)
        selected = answer.selected_option_index if answer else UNANSWERED
        is_correct = bool(answer and answer.is_correct)
        item = {
            'questionIndex': question.question_index,
            'question': question.question_text,
            'selectedOptionIndex': selected,
            'correctOptionIndex': question.correct_option_index(),
            'isCorrect': is_correct,
            'pointsEarned': answer.points_earned if answer else 0,
            'points': question.points,
        }
        if not is_correct and question.explanation:
            item['explanation'] = question.explanation
        review.append(item)
    return review


def build_student_results(quiz, submissions) -> dict:
    """
    Results view for one student and one quiz.

    `submissions` must be ordered newest attempt first; the first one is
    flagged as expanded. The answer key is included only when the quiz
    shows answers after submission.
    """
    show_answers = quiz.is_mcq and quiz.show_answers_after_submission
    items = []
    for position, submission in enumerate(submissions):
        item = submission_summary(submission)
        item['expanded'] = position == 0
        if submission.quiz_type == QUIZ_TYPE_MCQ:
            if show_answers:
                item['mcqAnswers'] = [
                    {
                        'questionIndex': a.question_index,
                        'selectedOptionIndex': a.selected_option_index,
                        'isCorrect': a.is_correct,
                        'pointsEarned': a.points_earned,
                    }
                    for a in submission.mcq_answers
                ]
                item['review'] = mcq_review(quiz, submission)
        else:
            item.update(open_ended_details(submission))
        items.append(item)

    response = {
        'success': True,
        'quizType': quiz.quiz_type,
        'passingScore': quiz.passing_score,
        'allowMultipleAttempts': quiz.allow_multiple_attempts,
        'submissions': items,
    }
    if quiz.is_mcq:
        response['showAnswers'] = show_answers
        if show_answers:
            response['questions'] = [question_to_dict(q, include_answers=True) for q in quiz.questions]
    else:
        response['question'] = quiz.open_ended_question
        response['questionFile'] = quiz.open_ended_question_file
    return response


def grading_entry(submission) -> dict:
    """A row in the admin grading queue."""
    entry = submission_summary(submission)
    entry.update({
        'studentId': submission.student_id,
        'studentName': submission.student_name,
        'studentEmail': submission.student.email if submission.student else None,
    })
    entry.update(open_ended_details(submission))
    return entry


def partition_for_grading(submissions) -> dict:
    """Split open-ended submissions into the ungraded queue and the graded list."""
    ungraded, graded = [], []
    for submission in submissions:
        (graded if submission.is_graded else ungraded).append(grading_entry(submission))
    return {
        'success': True,
        'ungraded': ungraded,
        'graded': graded,
        'total': len(ungraded) + len(graded),
    }
