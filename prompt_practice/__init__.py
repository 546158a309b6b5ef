"""
Prompt Practice: model invocation and evaluation pipeline

Takes a learner's prompt, runs it against one or more language models and
scores every response for clarity and completeness.

Main components:
- providers: Model registry, hosted/local providers and the fallback dispatcher
- evaluation: Deterministic heuristic scoring, rubric notes and reports
- attempts: Attempt/Evaluation records, validation, storage and the pipeline
"""

__version__ = "0.1.0"
