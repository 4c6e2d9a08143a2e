[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chainxt"
version = "0.1.0"
description = "Storage keys, signed extrinsics and transaction tracking for chains described by runtime metadata"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "extrinsic", "storage", "scale", "transactions", "xxhash", "blake2"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["chainxt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
