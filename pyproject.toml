[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webcfgbus"
version = "0.1.0"
description = "Web configuration data model, force-sync handling and sync timers over an in-process message bus"
requires-python = ">=3.10"
keywords = ["webconfig", "message-bus", "data-model", "force-sync", "timers"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "msgpack",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["webcfgbus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
