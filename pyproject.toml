[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "barry"
version = "0.1.0"
description = "A file-routed dynamic HTML framework with page caching, asset minification and live reload"
requires-python = ">=3.10"
keywords = ["web", "framework", "html", "jinja2", "templates", "cache", "live-reload", "asgi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]
dependencies = [
    "pyyaml",
    "jinja2",
    "starlette",
    "uvicorn",
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
    "httpx",
    "pytest-asyncio",
]

[project.scripts]
barry = "barry.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["barry"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
