"""Web API and session state for reviewing rubric checks."""
