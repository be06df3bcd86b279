[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pocir"
version = "0.1.0"
description = "Lower the syntax tree of a small statically typed language into an SSA-style intermediate representation"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "intermediate representation", "ir", "lowering", "ssa"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pocir"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
