[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "espflash"
version = "0.1.0"
description = "Bootloader protocol, chip descriptions and ELF firmware tooling for Espressif ESP32 and ESP8266 devices"
requires-python = ">=3.11"
keywords = [
    "esp32",
    "esp8266",
    "espressif",
    "bootloader",
    "firmware",
    "serial",
    "slip",
    "elf",
    "cargo",
    "embedded",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: System :: Hardware",
]
dependencies = [
    "pyserial>=3.5",
    "platformdirs>=3.0",
    "tomli-w>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["espflash"]

[tool.hatch.build.targets.sdist]
include = [
    "espflash",
    "tests",
    "README.md",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
