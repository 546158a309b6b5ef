"""
Entry point for running Prompt Practice as a module.

Usage:
    python -m prompt_practice submit --lab practice-basics --model local-stub "Explain photosynthesis"
    python -m prompt_practice status <attempt-id>
    python -m prompt_practice models
"""

from .cli import main

if __name__ == "__main__":
    exit(main())
