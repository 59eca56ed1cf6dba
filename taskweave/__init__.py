"""
Taskweave - turn requirement documents into dependency-ordered task lists.

Generation is delegated to interchangeable LLM providers through a role-based
fallback chain with retries and usage telemetry.
"""

__version__ = "0.1.0"
__author__ = "Taskweave Team"

from taskweave.ai.service import AIService
from taskweave.core.context import RunContext
from taskweave.decomposition.driver import TaskGenerationDriver

__all__ = ["AIService", "RunContext", "TaskGenerationDriver", "__version__"]
