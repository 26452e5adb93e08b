#!/usr/bin/env python3
"""
Quiz import script
Loads quizzes (with questions, answers and optional episode) from JSON files
"""
import sys
import json
import os
from pathlib import Path

# Add src/backend to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / ".." / "src" / "backend"))

# Change to backend directory so relative paths work
os.chdir(project_root / ".." / "src" / "backend")

from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.exceptions import CPDError
from app.models import init_db
from app.services.quiz_service import QuizService


def import_quizzes_from_json(json_file: str, db: Session, update_existing: bool = False) -> dict:
    """
    Import one JSON file (a quiz object or a list of them)

    Args:
        json_file: JSON file path
        db: database session
        update_existing: replace quizzes whose id already exists

    Returns:
        dict: import statistics
    """
    with open(json_file, 'r', encoding='utf-8') as f:
        quizzes_data = json.load(f)

    if isinstance(quizzes_data, dict):
        quizzes_list = [quizzes_data]
    elif isinstance(quizzes_data, list):
        quizzes_list = quizzes_data
    else:
        raise ValueError("Invalid JSON: expected an object or an array")

    imported = 0
    skipped = 0
    errors = []

    for index, quiz_data in enumerate(quizzes_list, start=1):
        try:
            quiz = QuizService.import_quiz(db, quiz_data, update_existing=update_existing)
        except CPDError as e:
            errors.append(f"Quiz {index} ({quiz_data.get('title', '?')}): {e}")
            skipped += 1
            continue

        if quiz is None:
            skipped += 1
            continue

        imported += 1
        print(f"  Imported: {quiz.title} ({len(quiz.questions)} questions)")

    db.commit()

    return {
        "total": len(quizzes_list),
        "imported": imported,
        "skipped": skipped,
        "errors": len(errors),
        "error_details": errors[:10]
    }


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Import quizzes from JSON')
    parser.add_argument('--json-file', '-f', required=True, help='JSON file path(s), comma separated')
    parser.add_argument('--update', '-u', action='store_true', help='Replace quizzes that already exist')
    parser.add_argument('--init-db', '-i', action='store_true', help='Create database tables first')

    args = parser.parse_args()

    if args.init_db:
        Path("data").mkdir(exist_ok=True)
        print("Initialising database...")
        init_db()

    db = SessionLocal()

    try:
        totals = {"total": 0, "imported": 0, "skipped": 0, "errors": 0}
        error_details = []

        for json_file in [f.strip() for f in args.json_file.split(',') if f.strip()]:
            print(f"\nImporting from {json_file}...")
            result = import_quizzes_from_json(json_file, db, update_existing=args.update)
            for key in totals:
                totals[key] += result[key]
            error_details.extend(result["error_details"])

        print("\nImport finished!")
        print(f"  Quizzes: {totals['total']}")
        print(f"  Imported: {totals['imported']}")
        print(f"  Skipped: {totals['skipped']}")
        print(f"  Errors: {totals['errors']}")

        if error_details:
            print("\nErrors (first 10):")
            for error in error_details[:10]:
                print(f"  - {error}")

    except (OSError, ValueError) as e:
        print(f"\nError: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
