"""Run orchestration: clock, configuration, executor and orchestrator."""
