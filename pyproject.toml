[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arenaapi"
version = "0.1.0"
description = "WSGI API for queueing agent comparison runs and reading runs, run agents, replays and scorecards"
requires-python = ">=3.10"
keywords = ["wsgi", "api", "agents", "evaluation", "runs", "scorecards", "werkzeug"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "werkzeug>=2.3",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["arenaapi"]

[tool.pytest.ini_options]
addopts = "-ra"
