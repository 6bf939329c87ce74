"""Service layer for job orchestration and external integrations."""
