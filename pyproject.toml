[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slmkit"
version = "0.1.0"
description = "Host-side toolkit for talking to a serial LTE modem over AT commands"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = [
    "at-commands",
    "serial",
    "lte",
    "modem",
    "uart",
]
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
    "Topic :: Communications",
    "Topic :: Terminals :: Serial",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
slmkit-shell = "slmkit.shell:main"

[tool.hatch.build.targets.wheel]
packages = ["slmkit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
