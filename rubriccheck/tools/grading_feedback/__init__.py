"""One-shot grading from the command line."""
