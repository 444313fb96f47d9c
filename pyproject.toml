[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "resticwatch"
version = "0.1.0"
description = "Checks OneDrive folders for daily restic snapshots and reports backup status to Telegram"
requires-python = ">=3.10"
keywords = ["restic", "backup", "onedrive", "telegram", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "requests>=2.28",
    "cryptography>=41",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "responses>=0.23",
]

[project.scripts]
resticwatch = "resticwatch.cli:main"
restic-backup-checker = "resticwatch.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["resticwatch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
