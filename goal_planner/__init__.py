"""Goal planner relay backend."""
