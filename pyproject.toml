[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gokitgen"
version = "0.1.0"
description = "Generate go-kit service code and Markdown documentation from service definitions"
requires-python = ">=3.10"
keywords = ["go-kit", "code generation", "protobuf", "grpc", "http transport", "documentation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Code Generators",
]
dependencies = [
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gokitgen"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
