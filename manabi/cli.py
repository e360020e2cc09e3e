"""Flask CLI commands: `flask create-admin` and `flask seed-demo`."""
import click
from flask import Flask

from manabi import db


def register_commands(app: Flask) -> None:

    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--full-name", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin(email, full_name, password):
        """Create an admin account."""
        from manabi.auth.models import User
        from manabi.auth.utils import hash_password, is_valid_email, normalize_email, validate_password

        email = normalize_email(email)
        if not is_valid_email(email):
            raise click.BadParameter("Invalid email address", param_hint="--email")
        ok, message = validate_password(password)
        if not ok:
            raise click.BadParameter(message, param_hint="--password")

        if User.query.filter_by(email=email).first():
            click.echo(f"User {email} already exists")
            return

        db.session.add(User(
            email=email,
            full_name=full_name.strip(),
            password_hash=hash_password(password),
            user_type="admin",
        ))
        db.session.commit()
        click.echo(f"Admin {email} created successfully")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Create a demo course with one published MCQ and one open-ended quiz."""
        from manabi.courses.models import Course
        from manabi.quiz.authoring import apply_definition, parse_quiz_definition
        from manabi.quiz.models import Quiz

        if Course.query.filter_by(title="Japanese Basics").first():
            click.echo("Demo course already exists")
            return

        course = Course(title="Japanese Basics", description="Hiragana and first phrases")
        db.session.add(course)
        db.session.flush()

        definitions = [
            (0, 1, {
                "title": "Hiragana check",
                "isPublished": True,
                "quizData": {
                    "quizType": "mcq",
                    "timeLimit": 10,
                    "passingScore": 70,
                    "mcqQuestions": [
                        {
                            "question": "How is あ read?",
                            "points": 25,
                            "options": [{"text": "a", "isCorrect": True}, {"text": "o"}, {"text": "u"}],
                            "explanation": "あ is the first vowel, 'a'.",
                        },
                        {
                            "question": "How is か read?",
                            "points": 25,
                            "options": [{"text": "ga"}, {"text": "ka", "isCorrect": True}],
                        },
                        {
                            "question": "Which kana is 'shi'?",
                            "points": 25,
                            "options": [{"text": "し", "isCorrect": True}, {"text": "つ"}, {"text": "ち"}],
                        },
                        {
                            "question": "Which kana is 'n'?",
                            "points": 25,
                            "options": [{"text": "ん", "isCorrect": True}, {"text": "そ"}],
                        },
                    ],
                },
            }),
            (0, 2, {
                "title": "Self introduction",
                "isPublished": True,
                "quizData": {
                    "quizType": "open-ended",
                    "totalPoints": 10,
                    "passingScore": 50,
                    "openEndedQuestion": "Introduce yourself in Japanese in three sentences.",
                },
            }),
        ]
        for module_index, item_index, payload in definitions:
            quiz = Quiz(course_id=course.id, module_index=module_index, item_index=item_index)
            apply_definition(quiz, parse_quiz_definition(payload))
            db.session.add(quiz)

        db.session.commit()
        click.echo(f"Demo course {course.id} created with {len(definitions)} quizzes")
