[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wolfictl"
version = "0.1.0"
description = "Library for Melange package configurations: reading, indexing and editing, dependency graphs, linting, git tags, GitHub releases and issues, APK indexes."
requires-python = ">=3.10"
keywords = ["melange", "apk", "apkindex", "packaging", "lint", "dependency-graph", "release"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: System :: Software Distribution",
]
dependencies = [
    "ruamel-yaml>=0.17",
    "networkx>=3.0",
    "requests>=2.28",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["wolfictl"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
