[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pantheon"
version = "0.1.0"
description = "Agentic AI toolkit: skill-defined agents with tools, team orchestration, pipelines and parallel review"
requires-python = ">=3.10"
keywords = ["llm", "agents", "react", "tools", "orchestration", "openai-compatible"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "httpx>=0.24",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "respx>=0.20",
]

[project.scripts]
pantheon = "pantheon.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pantheon"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
