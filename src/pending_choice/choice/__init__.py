"""
Choice resolution.

Components:
- prompts.py: option-extraction prompt, options listing, JSON parsing
- extractor.py: asks the model which task/option a reply selects
- workers.py: per-task-name executors
- engine.py: validate/handle flow and outcome reporting
"""
