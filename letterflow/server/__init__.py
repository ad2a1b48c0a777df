"""HTTP façade in front of the agent orchestrator."""
