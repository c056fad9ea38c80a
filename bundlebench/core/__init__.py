"""Parameter model, solvers and adjustment pipeline."""
