"""
Entry point for the adaptive learning CLI.

Run with:
    python main.py due STUDENT_ID
    learn due STUDENT_ID          (after pip install -e .)
"""
from adaptive_learning.cli import main

if __name__ == "__main__":
    main()
