"""
Database setup script
Creates the exam engine tables (exams, questions, results, ai_call_logs)
"""

from dotenv import load_dotenv
load_dotenv()

from database.database import engine, Base
from database.models import Exam, Question, Result, AiCallLog  # noqa: F401


def create_tables():
    """Create all tables in the database"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")
    print("\nCreated tables:")
    print("  - exams, questions")
    print("  - results (unique per user + exam)")
    print("  - ai_call_logs")


if __name__ == "__main__":
    create_tables()
