[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "locengine"
version = "0.1.0"
description = "GNSS location engine building blocks: NMEA sentences, XTRA messages, network-initiated sessions, daemon control messages and named-pipe framing"
requires-python = ">=3.10"
dependencies = []
keywords = ["gps", "glonass", "nmea", "gnss", "location", "agps", "xtra"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["locengine"]

[tool.pytest.ini_options]
addopts = "-ra"
