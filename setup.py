"""Setup script for the agent coordination package."""

from setuptools import setup, find_packages

setup(
    name="agent-coordination",
    version="0.1.0",
    packages=find_packages(include=["agent_coordination", "agent_coordination.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=23.2",
        "prometheus-client>=0.19",
        "httpx>=0.25",
        "tenacity>=8.2",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    description="Agent Coordination Engine - multi-agent plan execution",
    author="NeuraForge Team",
)
