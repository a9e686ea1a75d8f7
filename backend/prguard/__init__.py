"""PR security gate: diff-aware vulnerability scans of pull requests."""
