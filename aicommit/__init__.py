"""
AI Commit

AI-powered commit creation from staged git changes.
"""

__version__ = "0.2.0"

# Centralized commit types - single source of truth
# Used by: prompts/builder.py, llm/base.py (validation), output (coloring)
COMMIT_TYPES = {
    'feat': 'A new feature or capability',
    'fix': 'A bug fix',
    'refactor': 'Code restructuring without behavior change',
    'chore': 'Maintenance tasks, dependencies, tooling',
    'docs': 'Documentation only changes',
    'test': 'Adding or updating tests',
    'style': 'Formatting, whitespace, no code change',
    'perf': 'Performance improvement',
    'ci': 'CI/CD configuration changes',
    'build': 'Build system or external dependency changes',
    'revert': 'Reverts a previous commit',
}

COMMIT_TYPE_NAMES = list(COMMIT_TYPES.keys())

# Breaking changes use "!" after the type/scope: feat(api)!: drop v1 endpoints
