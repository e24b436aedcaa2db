"""Turn pipeline: context assembly, decision extraction, learning, orchestration."""
