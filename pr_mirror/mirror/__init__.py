"""
Mirror Integration — Talk to GitHub and run the merge script.

This package holds the collaborators the sync cycle drives: the upstream
lister, the merge executor, and the downstream publisher, plus the
REST client the first and last share.
"""
