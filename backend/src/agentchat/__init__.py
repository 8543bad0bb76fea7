"""Server side orchestration of agent to agent chat."""
